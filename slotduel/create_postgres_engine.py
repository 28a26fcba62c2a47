from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from slotduel.load_secrets import user, password, host, port, db_name


def create_postgres_engine() -> AsyncEngine:
    postgres_database_url = (
        f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db_name}"
    )
    return create_async_engine(postgres_database_url, pool_size=20, max_overflow=20)
