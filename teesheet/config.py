"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "teesheet.db"))

# ── JWT ───────────────────────────────────────────────────────────────────

JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me-in-production")
JWT_ALGORITHM: str = "HS256"
JWT_EXPIRY_DAYS: int = int(os.getenv("JWT_EXPIRY_DAYS", "7"))

# ── Booking ───────────────────────────────────────────────────────────────

# Players allowed per slot-key (course, date, time, nine).
MAX_PLAYERS_PER_SLOT: int = int(os.getenv("MAX_PLAYERS_PER_SLOT", "4"))

# Lifetime of a slot lock. Must exceed the validate+persist duration.
SLOT_LOCK_TTL_SECONDS: float = float(os.getenv("SLOT_LOCK_TTL_SECONDS", "30"))

# "memory" keeps locks in-process; "sqlite" shares them through the database
# so several worker processes on one host serialize bookings.  The course and
# schedule cache stays per process and never expires, so running several
# workers also needs a shared CacheService or schedule edits go stale.
LOCK_BACKEND: str = os.getenv("LOCK_BACKEND", "memory")

# How often expired locks are purged in the background (seconds).
LOCK_SWEEP_INTERVAL: float = float(os.getenv("LOCK_SWEEP_INTERVAL", "15"))

# ── Server ────────────────────────────────────────────────────────────────

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
API_RELOAD: bool = os.getenv("API_RELOAD", "false").lower() == "true"
