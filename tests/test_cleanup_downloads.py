"""
Tests for the temp file sweeper script

Run with:
    pytest tests/test_cleanup_downloads.py -v
"""

import os
import sys
import time

# Add parent and scripts directories to path
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)
sys.path.insert(0, os.path.join(ROOT, "scripts"))

from cleanup_downloads import cleanup_downloads, find_stale_files


def make_file(directory, name, age_hours):
    path = directory / name
    path.write_bytes(b"png")
    mtime = time.time() - age_hours * 3600
    os.utime(path, (mtime, mtime))
    return path


class TestCleanupDownloads:

    def test_only_old_pngs_are_stale(self, tmp_path):
        old = make_file(tmp_path, "enhanced_face_1.png", 48)
        make_file(tmp_path, "enhanced_face_2.png", 1)
        make_file(tmp_path, "notes.txt", 48)

        assert find_stale_files(tmp_path, 24) == [old]

    def test_dry_run_keeps_files(self, tmp_path):
        old = make_file(tmp_path, "organic_replacement_1.png", 48)

        assert cleanup_downloads(tmp_path, 24, dry_run=True) == 0
        assert old.exists()

    def test_deletes_stale_files(self, tmp_path):
        old = make_file(tmp_path, "advanced_shoulder_1.png", 48)
        fresh = make_file(tmp_path, "advanced_shoulder_2.png", 1)

        assert cleanup_downloads(tmp_path, 24, dry_run=False) == 1
        assert not old.exists()
        assert fresh.exists()

    def test_missing_directory(self, tmp_path):
        assert find_stale_files(tmp_path / "nope", 24) == []
