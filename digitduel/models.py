"""
SQLAlchemy ORM models for the networked store.

Tables:
- games: one row per game. The whole aggregate lives in `document` (JSON);
  phase and the current turn pair are mirrored into plain columns so a
  commit can be a single conditional UPDATE.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import String, Integer, DateTime, Enum, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base
from .types import Phase


class GameRow(Base):
    __tablename__ = "games"

    # Room code doubles as the id
    id: Mapped[str] = mapped_column(String(8), primary_key=True)

    phase: Mapped[Phase] = mapped_column(
        Enum("lobby", "setup", "playing", "game_over", name="game_phase"),
        nullable=False,
        default="lobby",
    )
    current_guesser_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    current_target_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
