#!/usr/bin/env python3
"""
Remove leftover face replacement temp files.

Results are written to DOWNLOADS_DIR before upload and deleted right after;
a crash or a failed delete leaves them behind. This sweeps the stragglers.

Environment variables:
    DOWNLOADS_DIR: Directory to sweep (default: downloads)
    DOWNLOADS_TTL_HOURS: Only delete files older than this (default: 24)
    DRY_RUN: If "true", only show what would be deleted (default: true)

Usage:
    python3 scripts/cleanup_downloads.py
    DRY_RUN=false python3 scripts/cleanup_downloads.py
"""

import sys
import time
from pathlib import Path
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from shop.env_config import get_bool_env, get_env, get_int_env

load_dotenv()


def find_stale_files(directory: Path, ttl_hours: int, now: float = None) -> List[Path]:
    """PNG files in `directory` last modified more than ttl_hours ago."""
    if not directory.is_dir():
        return []
    cutoff = (now or time.time()) - ttl_hours * 3600
    return sorted(p for p in directory.glob("*.png") if p.is_file() and p.stat().st_mtime < cutoff)


def cleanup_downloads(directory: Path, ttl_hours: int, dry_run: bool) -> int:
    """Delete (or list, when dry_run) stale files. Returns how many were deleted."""
    stale = find_stale_files(directory, ttl_hours)

    if not stale:
        print(f"✅ No files older than {ttl_hours}h in {directory}/")
        return 0

    print(f"📋 Found {len(stale)} files to {'review' if dry_run else 'delete'}:")
    for path in stale:
        age_hours = (time.time() - path.stat().st_mtime) / 3600
        print(f"  📁 {path.name} ({age_hours:.1f}h old)")

    if dry_run:
        print("\n🔍 DRY RUN - No changes made.")
        print("   Set DRY_RUN=false to actually delete.")
        return 0

    deleted = 0
    for path in stale:
        try:
            path.unlink()
            deleted += 1
        except OSError as e:
            print(f"   ⚠️ Failed to delete {path}: {e}")

    print(f"✅ Deleted {deleted} files.")
    return deleted


if __name__ == "__main__":
    print("=" * 60)
    print("🧹 Face replacement temp file cleanup")
    print("=" * 60)

    cleanup_downloads(
        Path(get_env("DOWNLOADS_DIR", default="downloads")),
        get_int_env("DOWNLOADS_TTL_HOURS", 24),
        get_bool_env("DRY_RUN", default=True),
    )
