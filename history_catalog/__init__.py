"""Top-level package for the history catalog project.

This package simply exposes the public run() helper so callers can do
`python -m history_catalog ingest` or `from history_catalog import run; run()`.
"""

from importlib import metadata as _metadata

try:
    __version__: str = _metadata.version("history-catalog")
except _metadata.PackageNotFoundError:  # pragma: no cover – running from source
    __version__ = "0.0.0"

from .workflows.ingest_pipeline import run  # convenience re-export

__all__ = ["run", "__version__"]
