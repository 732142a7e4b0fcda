#!/usr/bin/env python3
"""
Create the product catalog tables from sql/schema.sql.
Safe to re-run: every statement is IF NOT EXISTS / OR REPLACE, and
"already exists" errors are counted as skips.

Usage:
    python3 scripts/apply_schema.py
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List

ROOT = Path(__file__).resolve().parent.parent

# Make the shop package importable when run as a script
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine

from shop.db import normalize_database_url
from shop.env_config import get_database_url, mask_url_credentials

load_dotenv()

SCHEMA_PATH = ROOT / "sql" / "schema.sql"
EXPECTED_TABLES = ("products",)


def _is_comment_only(chunk: str) -> bool:
    return all(not line.strip() or line.strip().startswith("--") for line in chunk.splitlines())


def split_sql_statements(sql: str) -> List[str]:
    """
    Split on ';' at line ends, except inside $$ ... $$ function bodies.
    Chunks holding only comments are dropped.
    """
    statements = []
    buffer: List[str] = []
    in_body = False

    for line in sql.splitlines():
        buffer.append(line)
        if line.count("$$") % 2:
            in_body = not in_body
        if in_body or not line.rstrip().endswith(";"):
            continue

        chunk = "\n".join(buffer).strip()
        buffer = []
        if not _is_comment_only(chunk):
            statements.append(chunk)

    return statements


async def _run_statements(conn: AsyncConnection, statements: List[str]) -> Dict[str, int]:
    counts = {"executed": 0, "skipped": 0, "errors": 0}
    total = len(statements)

    for i, stmt in enumerate(statements, 1):
        label = stmt.splitlines()[0][:60]
        try:
            await conn.execute(text(stmt))
        except Exception as e:
            message = str(e)
            if "already exists" in message.lower() or "duplicate" in message.lower():
                counts["skipped"] += 1
                print(f"   ⏭️  [{i}/{total}] Already exists: {label}")
            else:
                counts["errors"] += 1
                print(f"   ❌ [{i}/{total}] {label}: {message[:150].replace(chr(10), ' ')}")
            continue
        counts["executed"] += 1
        print(f"   ✅ [{i}/{total}] {label}")

    return counts


async def _existing_tables(conn: AsyncConnection) -> List[str]:
    result = await conn.execute(
        text(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = ANY(:tables)"
        ),
        {"tables": list(EXPECTED_TABLES)},
    )
    return sorted(row[0] for row in result.fetchall())


async def apply_schema() -> bool:
    database_url, warnings = get_database_url(required=True)
    for warning in warnings:
        print(f"⚠️ {warning}")
    if not database_url:
        return False

    if not SCHEMA_PATH.exists():
        print(f"❌ Schema file not found: {SCHEMA_PATH}")
        return False

    statements = split_sql_statements(SCHEMA_PATH.read_text())
    print(f"📦 Target: {mask_url_credentials(database_url)[:60]}")
    print(f"📝 {len(statements)} statements in {SCHEMA_PATH.name}")

    # DDL runs outside a transaction
    engine = create_async_engine(normalize_database_url(database_url), isolation_level="AUTOCOMMIT")
    try:
        async with engine.connect() as conn:
            counts = await _run_statements(conn, statements)
            tables = await _existing_tables(conn)
    finally:
        await engine.dispose()

    print(f"\n📊 {counts['executed']} executed, {counts['skipped']} skipped, {counts['errors']} errors")
    print(f"📊 Tables present: {', '.join(tables) or 'none'}")

    return counts["errors"] == 0 and len(tables) == len(EXPECTED_TABLES)


if __name__ == "__main__":
    ok = asyncio.run(apply_schema())
    print("\n🎉 Schema is up to date" if ok else "\n⚠️  Schema deployment incomplete")
    sys.exit(0 if ok else 1)
