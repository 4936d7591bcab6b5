"""Snapshot capture and ref resolution."""

from devbrowser.snapshot.indexer import SnapshotIndexer, fetch_element

__all__ = ["SnapshotIndexer", "fetch_element"]
