"""
DB-backed repository that mirrors the in-memory InMemoryGameStore API.

Public methods:
- create(game) -> Game
- exists(game_id) -> bool
- read(game_id) -> Game | None
- subscribe(game_id, callback) -> unsubscribe
- commit(game_id, precondition, patch) -> bool

Commits are optimistic: read the row, check the precondition, then issue an
UPDATE guarded by the version we read. If another writer got there first the
UPDATE touches no rows and the commit is reported as a conflict.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .db import SessionLocal
from .models import GameRow
from .store import (
    Game, Precondition, Subscriber, Subscriptions,
    apply_patch, game_from_dict, game_to_dict,
)

logger = logging.getLogger(__name__)

# Subscribers are per process: every DBGameStore in this process shares them.
_SUBSCRIPTIONS = Subscriptions()


def _to_row(game: Game) -> GameRow:
    now = datetime.utcnow()
    return GameRow(
        id=game.id,
        phase=game.phase,
        current_guesser_id=game.turn.current_guesser_id,
        current_target_id=game.turn.current_target_id,
        version=game.version,
        document=game_to_dict(game),
        created_at=now,
        updated_at=now,
    )


class DBGameStore:
    """Drop-in replacement for the in-memory store, backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def _session(self) -> Session:
        return self.session_factory()

    def create(self, game: Game) -> Game:
        with self._session() as db:
            db.add(_to_row(game))
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise ValueError(f"Game {game.id} already exists.") from exc
        return game

    def exists(self, game_id: str) -> bool:
        with self._session() as db:
            return db.get(GameRow, game_id) is not None

    def read(self, game_id: str) -> Optional[Game]:
        with self._session() as db:
            row = db.get(GameRow, game_id)
            if not row:
                return None
            return game_from_dict(row.document)

    def subscribe(self, game_id: str, callback: Subscriber) -> Callable[[], None]:
        return _SUBSCRIPTIONS.add(game_id, callback)

    def commit(self, game_id: str, precondition: Precondition, patch: Dict[str, Any]) -> bool:
        with self._session() as db:
            row = db.get(GameRow, game_id)
            if not row:
                return False

            game = game_from_dict(row.document)
            if not precondition.matches(game):
                logger.info(f"[commit-conflict] game={game_id} precondition={precondition}")
                return False

            read_version = row.version
            apply_patch(game, patch)

            stmt = (
                update(GameRow)
                .where(GameRow.id == game_id, GameRow.version == read_version)
                .values(
                    phase=game.phase,
                    current_guesser_id=game.turn.current_guesser_id,
                    current_target_id=game.turn.current_target_id,
                    version=game.version,
                    document=game_to_dict(game),
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            result = db.execute(stmt)
            if result.rowcount != 1:
                db.rollback()
                logger.info(f"[commit-conflict] game={game_id} stale_version={read_version}")
                return False
            db.commit()

        _SUBSCRIPTIONS.notify(game)
        return True
