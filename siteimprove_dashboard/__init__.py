"""Siteimprove spelling-report dashboard: ingest, store, filter and export."""

__version__ = "0.3.0"
