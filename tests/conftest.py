"""
- Point configuration at throwaway settings before the package is imported
- Provide a seeded RandomSource and a ManualScheduler so every test is reproducible
- Provide both stores: in-memory and SQLAlchemy on SQLite in-memory
- Provide a client fixture (TestClient(app)) whose controller is the test controller
"""
import os
import random
from typing import Dict, Generator, Iterable, List, Optional

import pytest

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("GAME_STORE", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("USE_RANDOM_ORG", "0")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from digitduel.controller import GameController
from digitduel.db import Base
from digitduel.main import app, get_controller
from digitduel.random_client import RandomSource
from digitduel.repository import DBGameStore
from digitduel.scheduler import ManualScheduler
from digitduel.store import Game, GameSettings, InMemoryGameStore, Player, TurnState
from digitduel import models  # noqa: F401

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def randomness(rng) -> RandomSource:
    return RandomSource(rng)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def memory_store() -> InMemoryGameStore:
    return InMemoryGameStore()


@pytest.fixture
def controller(memory_store, scheduler, randomness) -> Generator:
    ctrl = GameController(memory_store, scheduler=scheduler, randomness=randomness)
    yield ctrl
    ctrl.close()


@pytest.fixture
def engine():
    # StaticPool + check_same_thread=False lets every session share ONE
    # in-memory SQLite database. Otherwise each connection sees an empty DB.
    engine = create_engine(
        TEST_DATABASE_URL,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_store(engine) -> DBGameStore:
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    return DBGameStore(factory)


@pytest.fixture
def make_game():
    """
    Build a game already in the playing phase with a fixed seating order.

    make_game({"A": "1234", "B": "5678"}, bots={"B"}) -> Game with ids "A", "B"
    seated in dict order, B as first target and A as first guesser.
    """
    def _make(
        secrets: Dict[str, str],
        bots: Iterable[str] = (),
        order: Optional[List[str]] = None,
        time_limit: int = 0,
        game_id: str = "ROOM",
    ) -> Game:
        bots = set(bots)
        ids = list(secrets)
        order = order if order is not None else ids
        digit_count = len(next(iter(secrets.values())))
        players = [
            Player(id=pid, name=f"Player {pid}", is_bot=pid in bots, secret_code=list(code))
            for pid, code in secrets.items()
        ]
        return Game(
            id=game_id,
            host_id=ids[0],
            phase="playing",
            settings=GameSettings(
                digit_count=digit_count,
                turn_time_limit_seconds=time_limit,
                player_count=len(ids),
            ),
            players=players,
            turn=TurnState(
                turn_order=list(order),
                current_guesser_id=order[0] if order else None,
                current_target_id=order[1] if len(order) > 1 else None,
                turn_number=1,
            ),
        )
    return _make


@pytest.fixture
def client(controller) -> Generator:
    # The app talks to our controller (in-memory store, manual timers)
    app.dependency_overrides[get_controller] = lambda: controller
    yield TestClient(app)
    app.dependency_overrides.clear()
