"""
In-memory store
Holds game state in memory ("local" mode).

Every change goes through commit(precondition, patch): the precondition is
checked and the patch applied under one lock, so two transitions computed
from the same snapshot can never both land.
"""

import copy
import logging
from dataclasses import asdict, dataclass, field, fields
from threading import RLock
from time import time
from typing import Any, Callable, Dict, List, Optional

from .types import Code, Phase, PlayerId

logger = logging.getLogger(__name__)

Subscriber = Callable[["Game"], None]


@dataclass
class GuessResult:
    raw_value: Code
    exact_matches: int
    misplaced_matches: int
    guesser_id: PlayerId
    guesser_display_name: str
    timestamp: float = field(default_factory=time)


@dataclass
class ChatMessage:
    text: str
    timestamp: float = field(default_factory=time)


@dataclass
class Player:
    id: PlayerId
    name: str
    is_bot: bool = False
    secret_code: Code = field(default_factory=list)
    is_eliminated: bool = False
    guess_history: List[GuessResult] = field(default_factory=list)
    outcome_title: Optional[str] = None
    last_message: Optional[ChatMessage] = None


@dataclass
class GameSettings:
    digit_count: int = 4
    turn_time_limit_seconds: int = 0  # 0 = unlimited
    player_count: int = 4


@dataclass
class TurnState:
    turn_order: List[PlayerId] = field(default_factory=list)
    current_guesser_id: Optional[PlayerId] = None
    current_target_id: Optional[PlayerId] = None
    # bumped on every committed transition; keys deferred bot/timeout work
    turn_number: int = 0


@dataclass
class BotGuess:
    guesser_id: PlayerId
    guess: Code


@dataclass
class Game:
    id: str
    host_id: PlayerId
    phase: Phase = "lobby"
    settings: GameSettings = field(default_factory=GameSettings)
    players: List[Player] = field(default_factory=list)
    turn: TurnState = field(default_factory=TurnState)
    winner_id: Optional[PlayerId] = None
    last_bot_guess: Optional[BotGuess] = None
    version: int = 0
    created_at: float = field(default_factory=time)
    updated_at: float = field(default_factory=time)

    def player(self, player_id: Optional[PlayerId]) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def eliminated_ids(self) -> List[PlayerId]:
        return [p.id for p in self.players if p.is_eliminated]

    def active_ids(self) -> List[PlayerId]:
        return [p.id for p in self.players if not p.is_eliminated]


@dataclass(frozen=True)
class Precondition:
    """What the live game must still look like for a commit to apply. None = don't care."""
    phase: Optional[Phase] = None
    guesser_id: Optional[PlayerId] = None
    target_id: Optional[PlayerId] = None
    version: Optional[int] = None
    turn_number: Optional[int] = None

    @classmethod
    def for_turn(cls, game: Game) -> "Precondition":
        return cls(
            phase=game.phase,
            guesser_id=game.turn.current_guesser_id,
            target_id=game.turn.current_target_id,
            turn_number=game.turn.turn_number,
        )

    @classmethod
    def for_edit(cls, game: Game) -> "Precondition":
        return cls(phase=game.phase, version=game.version)

    def matches(self, game: Game) -> bool:
        if self.phase is not None and game.phase != self.phase:
            return False
        if self.guesser_id is not None and game.turn.current_guesser_id != self.guesser_id:
            return False
        if self.target_id is not None and game.turn.current_target_id != self.target_id:
            return False
        if self.version is not None and game.version != self.version:
            return False
        if self.turn_number is not None and game.turn.turn_number != self.turn_number:
            return False
        return True


_GAME_FIELDS = {f.name for f in fields(Game)} - {"id", "version", "created_at"}


def apply_patch(game: Game, patch: Dict[str, Any]) -> Game:
    """Apply a field patch in place and bump the version."""
    unknown = set(patch) - _GAME_FIELDS
    if unknown:
        raise ValueError(f"Unknown game fields in patch: {sorted(unknown)}")
    for name, value in patch.items():
        setattr(game, name, copy.deepcopy(value))
    game.version += 1
    game.updated_at = time()
    return game


# --- dict conversion (JSON documents, API) ---

def game_to_dict(game: Game) -> Dict[str, Any]:
    return asdict(game)


def _player_from_dict(data: Dict[str, Any]) -> Player:
    data = dict(data)
    data["guess_history"] = [GuessResult(**g) for g in data.get("guess_history", [])]
    if data.get("last_message"):
        data["last_message"] = ChatMessage(**data["last_message"])
    return Player(**data)


def game_from_dict(data: Dict[str, Any]) -> Game:
    data = dict(data)
    data["settings"] = GameSettings(**data.get("settings", {}))
    data["players"] = [_player_from_dict(p) for p in data.get("players", [])]
    data["turn"] = TurnState(**data.get("turn", {}))
    if data.get("last_bot_guess"):
        data["last_bot_guess"] = BotGuess(**data["last_bot_guess"])
    return Game(**data)


class Subscriptions:
    """Per-game callback lists, notified after each accepted commit."""

    def __init__(self) -> None:
        self._callbacks: Dict[str, List[Subscriber]] = {}
        self._lock = RLock()

    def add(self, game_id: str, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._callbacks.setdefault(game_id, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._callbacks.get(game_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._callbacks.pop(game_id, None)

        return unsubscribe

    def notify(self, game: Game) -> None:
        with self._lock:
            callbacks = list(self._callbacks.get(game.id, []))
        for callback in callbacks:
            try:
                callback(copy.deepcopy(game))
            except Exception:
                logger.exception(f"[subscriber-error] game={game.id}")


class InMemoryGameStore:
    def __init__(self) -> None:
        self._games: Dict[str, Game] = {}
        self._lock = RLock()
        self._subscriptions = Subscriptions()

    def create(self, game: Game) -> Game:
        with self._lock:
            if game.id in self._games:
                raise ValueError(f"Game {game.id} already exists.")
            self._games[game.id] = copy.deepcopy(game)
            return copy.deepcopy(game)

    def exists(self, game_id: str) -> bool:
        with self._lock:
            return game_id in self._games

    def read(self, game_id: str) -> Optional[Game]:
        with self._lock:
            game = self._games.get(game_id)
            return copy.deepcopy(game) if game is not None else None

    def subscribe(self, game_id: str, callback: Subscriber) -> Callable[[], None]:
        return self._subscriptions.add(game_id, callback)

    def commit(self, game_id: str, precondition: Precondition, patch: Dict[str, Any]) -> bool:
        with self._lock:
            game = self._games.get(game_id)
            if game is None or not precondition.matches(game):
                logger.info(f"[commit-conflict] game={game_id} precondition={precondition}")
                return False
            apply_patch(game, patch)
            snapshot = copy.deepcopy(game)

        self._subscriptions.notify(snapshot)
        return True
