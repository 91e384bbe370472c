"""Integration tests for SQLAlchemyRecordStore on SQLite."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import Integer, String, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from cqrs_ddd_optimistic_lock import (
    ConflictError,
    MatchCondition,
    RecordConfigurationError,
    RecordRepository,
    StorageError,
    VersionedRecord,
)
from cqrs_ddd_optimistic_lock.persistence import (
    AuditableModelMixin,
    LockVersionMixin,
    SQLAlchemyRecordStore,
    SQLAlchemyUnitOfWork,
)


class Base(DeclarativeBase):
    pass


class AccountModel(LockVersionMixin, Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner: Mapped[str] = mapped_column(String)
    balance: Mapped[int] = mapped_column(Integer, default=0)


class PageModel(AuditableModelMixin, Base):
    __tablename__ = "pages"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    body: Mapped[str] = mapped_column(String)
    revision: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Account(VersionedRecord):
    id: int
    owner: str
    balance: int = 0
    lock_version: int = 0


class Page(VersionedRecord):
    lock_field = "revision"
    timestamps = True

    id: str
    body: str
    revision: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Unmapped(VersionedRecord):
    id: int


@pytest.fixture()
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
def store() -> SQLAlchemyRecordStore:
    return SQLAlchemyRecordStore({Account: AccountModel, Page: PageModel})


@pytest.fixture()
def accounts(store: SQLAlchemyRecordStore) -> RecordRepository[Account]:
    return RecordRepository(Account, store)


async def _seed(session_factory, accounts: RecordRepository[Account]) -> None:
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        await accounts.add(Account(id=1, owner="ada", balance=100), uow=uow)


async def _stored_version(session_factory) -> int:
    async with session_factory() as session:
        return (
            await session.execute(select(AccountModel.lock_version).where(AccountModel.id == 1))
        ).scalar_one()


@pytest.mark.asyncio()
async def test_insert_uses_schema_default_version(session_factory, accounts) -> None:
    await _seed(session_factory, accounts)
    assert await _stored_version(session_factory) == 0


@pytest.mark.asyncio()
async def test_insert_reads_back_column_defaults(session_factory, store) -> None:
    pages = RecordRepository(Page, store)
    page = Page(id="home", body="hello")
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        await pages.add(page, uow=uow)

    assert page.created_at is not None
    assert page.revision is None
    assert not page.is_dirty()


@pytest.mark.asyncio()
async def test_guarded_save_bumps_version(session_factory, accounts) -> None:
    await _seed(session_factory, accounts)

    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        account = await accounts.get_or_raise(1, uow=uow)
        account.balance = 150
        assert await accounts.save(account.enable_lock(), uow=uow) is True

    assert account.lock_version == 1
    assert await _stored_version(session_factory) == 1


@pytest.mark.asyncio()
async def test_concurrent_writers(session_factory, accounts) -> None:
    await _seed(session_factory, accounts)

    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        writer_a = await accounts.get_or_raise(1, uow=uow)
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        writer_b = await accounts.get_or_raise(1, uow=uow)

    writer_b.balance = 50
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        await accounts.save(writer_b.enable_lock(), uow=uow)

    async def _write_a() -> None:
        writer_a.balance = 500
        async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
            await accounts.save(writer_a.enable_lock(), uow=uow)

    with pytest.raises(ConflictError):
        await _write_a()

    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        stored = await accounts.get_or_raise(1, uow=uow)
    assert stored.balance == 50
    assert stored.lock_version == 1
    assert writer_a.lock_version == 1


@pytest.mark.asyncio()
async def test_conflict_rolls_back_the_unit_of_work(session_factory, accounts) -> None:
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        await accounts.add(Account(id=1, owner="ada"), uow=uow)
        await accounts.add(Account(id=2, owner="bob"), uow=uow)

    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        first = await accounts.get_or_raise(1, uow=uow)
        second = await accounts.get_or_raise(2, uow=uow)
    second.lock_version = 99

    async def _batch() -> None:
        async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
            first.balance = 10
            await accounts.save(first, uow=uow, lock=True)
            second.balance = 20
            await accounts.save(second, uow=uow, lock=True)

    with pytest.raises(ConflictError):
        await _batch()

    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        reloaded = await accounts.get_or_raise(1, uow=uow)
    assert reloaded.balance == 0
    assert reloaded.lock_version == 0


@pytest.mark.asyncio()
async def test_consecutive_saves_increment_by_one(session_factory, accounts) -> None:
    await _seed(session_factory, accounts)
    versions = []
    for n in range(4):
        async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
            account = await accounts.get_or_raise(1, uow=uow)
            account.balance += n + 1
            await accounts.save(account, uow=uow, lock=True)
        versions.append(await _stored_version(session_factory))

    assert versions == [1, 2, 3, 4]


@pytest.mark.asyncio()
async def test_unlocked_save_ignores_version(session_factory, accounts) -> None:
    await _seed(session_factory, accounts)
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        stale = await accounts.get_or_raise(1, uow=uow)
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        current = await accounts.get_or_raise(1, uow=uow)
        current.owner = "grace"
        await accounts.save(current, uow=uow, lock=True)

    stale.balance = 1
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        assert await accounts.save(stale, uow=uow) is True

    assert await _stored_version(session_factory) == 1


@pytest.mark.asyncio()
async def test_null_version_is_matched_with_is_null(session_factory, store) -> None:
    pages = RecordRepository(Page, store)
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        await pages.add(Page(id="home", body="hello"), uow=uow)

    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        page = await pages.get_or_raise("home", uow=uow)
        page.body = "hello world"
        await pages.save(page, uow=uow, lock=True)

    assert page.revision == 1
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        stored = await pages.get_or_raise("home", uow=uow)
    assert stored.revision == 1
    assert stored.body == "hello world"
    assert stored.updated_at is not None


@pytest.mark.asyncio()
async def test_execute_returns_row_count(session_factory, store) -> None:
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        await store.insert(Account(id=1, owner="ada"), uow)
        match = MatchCondition.for_key("id", 1).where("lock_version", 0)
        assert await store.execute(Account, match, {"balance": 5, "lock_version": 1}, uow) == 1
        assert await store.execute(Account, match, {"balance": 6, "lock_version": 1}, uow) == 0


def test_build_where_renders_is_null() -> None:
    clause = SQLAlchemyRecordStore.build_where(
        PageModel, MatchCondition.for_key("id", "home").where("revision", None)
    )
    assert "pages.revision IS NULL" in str(clause)


def test_build_where_rejects_unknown_column() -> None:
    with pytest.raises(RecordConfigurationError):
        SQLAlchemyRecordStore.build_where(
            AccountModel, MatchCondition.for_key("id", 1).where("ver", 1)
        )


def test_unmapped_record_type(store) -> None:
    with pytest.raises(RecordConfigurationError, match="Unmapped"):
        store.model_for(Unmapped)


class UncreatedBase(DeclarativeBase):
    pass


class GhostModel(UncreatedBase):
    __tablename__ = "ghosts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    balance: Mapped[int] = mapped_column(Integer)


@pytest.mark.asyncio()
async def test_driver_errors_become_storage_errors(session_factory) -> None:
    ghost_store = SQLAlchemyRecordStore({Account: GhostModel})

    async def _update_missing_table() -> None:
        async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
            await ghost_store.execute(
                Account, MatchCondition.for_key("id", 1), {"balance": 1}, uow
            )

    with pytest.raises(StorageError, match="Conditional update of Account failed"):
        await _update_missing_table()



@pytest.mark.asyncio()
async def test_missing_unit_of_work(store) -> None:
    with pytest.raises(ValueError, match="No UnitOfWork"):
        await store.execute(Account, MatchCondition.for_key("id", 1), {"balance": 1})


def test_lock_version_mixin_column() -> None:
    col = AccountModel.__table__.c.lock_version
    assert not col.nullable
    assert col.server_default is not None
    assert "version_id_col" not in getattr(AccountModel, "__mapper_args__", {})
