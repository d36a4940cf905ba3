"""Persistence layer for per-user loan snapshots.

The engine keeps no state, so the web app stores the last loan inputs and
prepayment rules of each user here and recomputes the schedule from them. It
defaults to SQLite for local development, but accepts any
SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


class LoanSnapshotModel(Base):
    __tablename__ = "loan_snapshots"

    user_token = Column(String(64), primary_key=True)
    inputs_json = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SnapshotStore:
    """Database-backed store holding one input snapshot per user."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def load(self, user_token: str) -> Optional[Dict[str, Any]]:
        if not user_token:
            return None
        with self._session_factory() as session:
            row = session.get(LoanSnapshotModel, user_token)
            return json.loads(row.inputs_json) if row else None

    def save(self, user_token: str, snapshot: Dict[str, Any]) -> None:
        if not user_token:
            return
        payload = json.dumps(snapshot)
        with self._session_factory() as session:
            row = session.get(LoanSnapshotModel, user_token)
            if row is None:
                session.add(LoanSnapshotModel(user_token=user_token, inputs_json=payload))
            else:
                row.inputs_json = payload
            session.commit()
        logger.debug("Saved loan snapshot for %s", user_token)

    def clear(self, user_token: str) -> None:
        if not user_token:
            return
        with self._session_factory() as session:
            row = session.get(LoanSnapshotModel, user_token)
            if row:
                session.delete(row)
                session.commit()


def create_store_from_env(url: str | None) -> SnapshotStore:
    return SnapshotStore(url or "sqlite:///loan_snapshots.sqlite3")
