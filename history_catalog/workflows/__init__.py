"""Runnable workflows: ingestion and offline image prefetch."""
