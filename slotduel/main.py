from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager
from redis.asyncio import Redis

from slotduel.create_postgres_engine import create_postgres_engine
from slotduel.crud import SQL_FAULTS
from slotduel.db import create_session_factory, create_tables
from slotduel.load_secrets import load_settings, redis_host, redis_port
from slotduel.routers import duel
from slotduel.services.balance_store import BalanceStore
from slotduel.services.duel_alarm import DuelTimeoutAlarm
from slotduel.services.duel_log import DuelLogWriter
from slotduel.services.duel_registry import DuelRegistry
from slotduel.services.duel_service import DuelService

scheduler = AsyncIOScheduler()
logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app):
    """Connect both stores and build the duel service.
    This function is called to start the server.
    """
    settings = load_settings()
    redis = Redis(host=redis_host, port=redis_port, decode_responses=True, health_check_interval=30)

    engine = None
    Session = None
    if settings.sql_enabled:
        engine = create_postgres_engine()
        try:
            await create_tables(engine)
        except SQL_FAULTS as e:
            logging.warning(f"Relational store unreachable at startup, balance updates will fall back: {e}")
        Session = create_session_factory(engine)
    else:
        logging.warning("Relational store disabled, balance updates use the Redis fallback")

    registry = DuelRegistry(redis, settings, Session)
    app.state.duel_service = DuelService(
        balance_store=BalanceStore(redis, Session, settings),
        registry=registry,
        duel_log=DuelLogWriter(Session, settings),
        settings=settings,
        alarm=DuelTimeoutAlarm(scheduler, registry, redis),
    )

    scheduler.start()
    try:
        yield
    finally:
        scheduler.shutdown()
        await redis.aclose()
        if engine is not None:
            await engine.dispose()
        logging.info("Stop Server")


app = FastAPI(lifespan=lifespan)
app.include_router(duel.duel_router)

