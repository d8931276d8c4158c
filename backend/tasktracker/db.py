from __future__ import annotations

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

# set by the app on startup
engine: Engine | None = None


def get_engine() -> Engine:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required")
    connect_args = {}
    if url.startswith("sqlite"):
        # route handlers run in a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)
