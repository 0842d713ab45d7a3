"""
Database connection settings and engine construction.

The connection URL is resolved from, in order:
  1. DATABASE_URL
  2. POSTGRES_* variables (when POSTGRES_HOST is set)
  3. the local settings file (AUTOMCQ_SETTINGS_PATH, written when a user connects)
  4. a local SQLite file
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

log = logging.getLogger(__name__)

SETTINGS_PATH = Path(os.getenv("AUTOMCQ_SETTINGS_PATH", str(Path.home() / ".automcq" / "settings.json")))
FALLBACK_DATABASE_URL = "sqlite:///./automcq.db"

# Base class for declarative models
Base = declarative_base()


def _postgres_url_from_env() -> Optional[str]:
    host = os.getenv("POSTGRES_HOST")
    if not host:
        return None
    user = os.getenv("POSTGRES_USER", "automcq_user")
    password = os.getenv("POSTGRES_PASSWORD", "automcq_pass")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "automcq")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


def load_saved_url(path: Optional[Path] = None) -> Optional[str]:
    path = path or SETTINGS_PATH
    try:
        return json.loads(path.read_text()).get("database_url") or None
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        log.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return None


def save_url(url: str, path: Optional[Path] = None) -> None:
    path = path or SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"database_url": url}))


def forget_saved_url(path: Optional[Path] = None) -> None:
    path = path or SETTINGS_PATH
    path.unlink(missing_ok=True)


def resolve_database_url() -> str:
    return (
        os.getenv("DATABASE_URL")
        or _postgres_url_from_env()
        or load_saved_url()
        or FALLBACK_DATABASE_URL
    )


def make_engine(url: str) -> Engine:
    """Create an engine; SQLite gets thread-safe settings so autosave can run off-loop."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)
