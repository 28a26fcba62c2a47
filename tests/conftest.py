import numpy as np
import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from slotduel.create_sqlite_engine import create_sqlite_engine
from slotduel.db import create_session_factory, create_tables
from slotduel.load_secrets import LedgerSettings
from slotduel.services.balance_store import BalanceStore
from slotduel.services.duel_log import DuelLogWriter
from slotduel.services.duel_registry import DuelRegistry
from slotduel.services.duel_service import DuelService


class FakeClock:
    """Epoch-seconds clock the tests move by hand."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
async def redis():
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
async def engine(tmp_path):
    engine = create_sqlite_engine(tmp_path / "slotduel.sqlite3")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def Session(engine):
    return create_session_factory(engine)


@pytest.fixture
def settings():
    return LedgerSettings()


@pytest.fixture
def kv_only_settings():
    return LedgerSettings(sql_enabled=False, dual_write=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def balance_store(redis, Session, settings):
    return BalanceStore(redis, Session, settings)


@pytest.fixture
def registry(redis, Session, settings, clock):
    return DuelRegistry(redis, settings, Session, clock=clock)


@pytest.fixture
def duel_log(Session, settings):
    return DuelLogWriter(Session, settings)


@pytest.fixture
def duel_service(balance_store, registry, duel_log, settings):
    return DuelService(
        balance_store=balance_store,
        registry=registry,
        duel_log=duel_log,
        settings=settings,
        rng=np.random.default_rng(1234),
    )
