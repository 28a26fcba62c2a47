import os
from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

user = os.getenv("DB_USER")
password = os.getenv("DB_PASSWORD")
host = os.getenv("DB_HOST")
port = os.getenv("DB_PORT")
db_name = os.getenv("DB_NAME")
sqlite_path = os.getenv("SQLITE_PATH")
redis_host = os.getenv("REDIS_HOST", "redis")
redis_port = int(os.getenv("REDIS_PORT", "6379"))


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class LedgerSettings(BaseModel):
    """Flags and game constants handed to the ledger and duel components.

    sql_enabled: use the relational store for conditioned balance updates.
    dual_write: mirror key/value writes (set_balance, opt-out) into the relational store.
    """

    sql_enabled: bool = True
    dual_write: bool = True
    max_balance: int = 999_999_999
    starting_balance: int = 100
    duel_min_amount: int = 100
    duel_timeout_seconds: int = 60
    duel_cooldown_seconds: int = 30
    claim_ttl_seconds: int = 10


def load_settings() -> LedgerSettings:
    return LedgerSettings(
        sql_enabled=_env_flag("LEDGER_SQL_ENABLED", True),
        dual_write=_env_flag("LEDGER_DUAL_WRITE", True),
    )


if __name__ == "__main__":
    print(user, host, port, db_name, redis_host, redis_port, load_settings())
