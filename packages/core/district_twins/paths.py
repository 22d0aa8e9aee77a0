"""Default filesystem locations."""

from __future__ import annotations

from pathlib import Path


def default_cache_dir() -> Path:
    """Return the per-user cache directory."""
    return Path.home() / ".district_twins" / "cache"


def default_zccd_path() -> Path:
    """Return the bundled ZCTA to congressional district table."""
    return Path(__file__).resolve().parent / "data" / "zccd.csv"
