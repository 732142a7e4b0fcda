"""
Product repository (read side).

The face replacement endpoints only need `find_by_id`; the catalog reads back
the public product routes. Writes are owned by the admin tooling, not this API.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import text

from .db import DatabaseManager, db_manager
from .errors import DatabaseError


PRODUCT_COLUMNS = "id, name, description, price, image, category, is_featured, created_at, updated_at"
RECOMMENDATION_SAMPLE_SIZE = 4


def _row_to_dict(row) -> Optional[Dict[str, Any]]:
    """SQLAlchemy row -> dict (price as float for JSON)."""
    if row is None:
        return None
    product = dict(row._mapping)
    if product.get("price") is not None:
        product["price"] = float(product["price"])
    return product


class ProductStore:
    """Async product lookups against the `products` table."""

    def __init__(self, manager: DatabaseManager):
        self._manager = manager

    def _require_engine(self):
        if not self._manager.connected or self._manager.engine is None:
            raise DatabaseError("Database not connected")
        return self._manager.engine

    async def _fetch_all(self, sql: str, params: Optional[dict] = None) -> List[Dict[str, Any]]:
        engine = self._require_engine()
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text(sql), params or {})
                return [_row_to_dict(row) for row in result.fetchall()]
        except Exception as e:
            raise DatabaseError("Product query failed", detail=str(e))

    async def find_by_id(self, product_id: str) -> Optional[Dict[str, Any]]:
        """
        Product by id, or None if it does not exist.

        Raises:
            DatabaseError: If the database is unavailable or the query fails.
        """
        rows = await self._fetch_all(
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = :id",
            {"id": product_id}
        )
        return rows[0] if rows else None

    async def list_all(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(f"SELECT {PRODUCT_COLUMNS} FROM products ORDER BY created_at DESC")

    async def list_featured(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE is_featured ORDER BY created_at DESC"
        )

    async def list_by_category(self, category: str) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE category = :category ORDER BY created_at DESC",
            {"category": category}
        )

    async def list_recommended(self, size: int = RECOMMENDATION_SAMPLE_SIZE) -> List[Dict[str, Any]]:
        """Random sample of products (id, name, description, image, price)."""
        return await self._fetch_all(
            "SELECT id, name, description, image, price FROM products ORDER BY random() LIMIT :size",
            {"size": size}
        )


def get_product_store() -> ProductStore:
    """FastAPI dependency."""
    return ProductStore(db_manager)
