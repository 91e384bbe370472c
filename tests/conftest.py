from __future__ import annotations

import pytest

from cqrs_ddd_optimistic_lock import InMemoryRecordStore, RecordRepository

from .records import Invoice


@pytest.fixture()
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture()
def invoices(store: InMemoryRecordStore) -> RecordRepository[Invoice]:
    return RecordRepository(Invoice, store)
