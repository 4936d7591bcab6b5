from __future__ import annotations

import pytest

from devbrowser.core.registry import PageRegistry
from devbrowser.snapshot.indexer import SnapshotIndexer
from fakes import FakeContext


@pytest.fixture
def context() -> FakeContext:
    return FakeContext()


@pytest.fixture
def registry(context: FakeContext) -> PageRegistry:
    return PageRegistry(context)


@pytest.fixture
def indexer() -> SnapshotIndexer:
    return SnapshotIndexer()
