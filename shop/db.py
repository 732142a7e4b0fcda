"""
PostgreSQL connection for the product catalog (async SQLAlchemy + asyncpg).

Environment Variables:
- DATABASE_URL: Connection string (postgres://, postgresql:// or postgresql+asyncpg://)
- DB_DISABLE_PREPARED_STATEMENTS: "true" disables the asyncpg statement cache (PgBouncer)
- DB_POOL_SIZE: Connection pool size (default: 2)
- DB_MAX_OVERFLOW: Max overflow connections (default: 3)
- DB_POOL_PRE_PING: Connection health checks (default: true)
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .env_config import get_bool_env, get_database_url, get_int_env, mask_url_credentials

load_dotenv()

DEFAULT_PORT = 5432


@dataclass(frozen=True)
class PoolConfig:
    pool_size: int
    max_overflow: int
    pool_pre_ping: bool
    disable_prepared_statements: bool

    @classmethod
    def from_env(cls) -> "PoolConfig":
        return cls(
            pool_size=get_int_env("DB_POOL_SIZE", 2),
            max_overflow=get_int_env("DB_MAX_OVERFLOW", 3),
            pool_pre_ping=get_bool_env("DB_POOL_PRE_PING", default=True),
            disable_prepared_statements=get_bool_env("DB_DISABLE_PREPARED_STATEMENTS", default=True),
        )

    @property
    def connect_args(self) -> dict:
        # PgBouncer transaction pooling breaks asyncpg's prepared statement cache
        if self.disable_prepared_statements:
            return {"statement_cache_size": 0, "prepared_statement_cache_size": 0}
        return {}


def normalize_database_url(url: str) -> str:
    """postgres:// and postgresql:// -> postgresql+asyncpg://"""
    if not url:
        raise ValueError("DATABASE_URL is empty")
    return re.sub(r'^postgres(ql)?://', 'postgresql+asyncpg://', url)


async def _select_one(engine: AsyncEngine) -> int:
    async with engine.connect() as conn:
        row = (await conn.execute(text("SELECT 1"))).fetchone()
    return row[0] if row else 0


class DatabaseManager:
    """Owns the process-wide async engine; repositories get it through this handle."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.connection_info = {"port": None, "connected": False}

    @property
    def connected(self) -> bool:
        return bool(self.connection_info.get("connected"))

    async def initialize(self) -> Tuple[bool, str]:
        """
        Create the engine and check it with SELECT 1.
        Returns (success, message); never raises.
        """
        database_url, warnings = get_database_url(required=False)
        for warning in warnings:
            print(f"⚠️ [DB CONFIG] {warning}")

        if not database_url:
            return False, "DATABASE_URL environment variable is not set"

        pool = PoolConfig.from_env()
        print(f"🔧 [DB CONFIG] pool_size={pool.pool_size}, max_overflow={pool.max_overflow}, "
              f"pre_ping={pool.pool_pre_ping}, disable_prepared_statements={pool.disable_prepared_statements}")

        try:
            url = normalize_database_url(database_url)
            self.engine = create_async_engine(
                url,
                pool_size=pool.pool_size,
                max_overflow=pool.max_overflow,
                pool_pre_ping=pool.pool_pre_ping,
                connect_args=pool.connect_args,
                echo=False
            )
            await _select_one(self.engine)
        except Exception as e:
            # Driver errors can echo the DSN back
            self.connection_info = {"port": None, "connected": False}
            return False, f"Connection failed: {mask_url_credentials(str(e))[:200]}"

        port = urlparse(url).port or DEFAULT_PORT
        self.connection_info = {
            "port": port,
            "connected": True,
            "prepared_statements_disabled": pool.disable_prepared_statements,
        }
        return True, f"Connected (port {port})"

    async def test_connection(self) -> Tuple[bool, int]:
        """SELECT 1 -> (True, 1). Raises if initialize() never created an engine."""
        if not self.engine:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return True, await _select_one(self.engine)

    async def close(self):
        if self.engine:
            await self.engine.dispose()
        self.connection_info = {"port": None, "connected": False}


db_manager = DatabaseManager()
