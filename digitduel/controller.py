"""
Game lifecycle controller.

All mutation of a game goes through this class. Every operation follows the
same shape: read a snapshot, validate, build a patch, commit it guarded by
the snapshot we read. A commit that loses a race is retried from a fresh
read. Guesses and timeouts are held to the turn they were made for (bots
and timers pin it up front); once that turn has moved on the stale work is
dropped with "conflict".

Operations return a GameEvent whose status is one of:
  ok, game_over                                    -> change applied
  not_found, wrong_phase, not_your_turn, forbidden,
  invalid, invalid_guess, target_eliminated         -> rejected, nothing changed
  conflict                                          -> lost a race, nothing changed
"""

import copy
import logging
from dataclasses import dataclass, replace
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
from uuid import uuid4

from . import config
from .engine import is_found, score_guess
from .random_client import RandomSource, secret_code
from .rotation import first_turn, next_turn
from .scheduler import ThreadingScheduler
from .store import (
    BotGuess, ChatMessage, Game, GuessResult, Player,
    Precondition, TurnState, apply_patch,
)
from .titles import assign_outcomes
from .types import Code, DIGITS, PlayerId

logger = logging.getLogger(__name__)

COMMIT_ATTEMPTS = 3

BOT_NAMES = ("Robo Rita", "Count Digit", "Beep Boop", "Cipher Sam", "Lady Luck")


@dataclass
class GameEvent:
    status: str
    game: Optional[Game] = None
    result: Optional[GuessResult] = None
    player_id: Optional[PlayerId] = None
    message: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status in ("ok", "game_over")


@dataclass
class _Change:
    patch: Dict[str, Any]
    status: str = "ok"
    result: Optional[GuessResult] = None
    player_id: Optional[PlayerId] = None


def _reject(status: str, message: str, game: Optional[Game] = None) -> GameEvent:
    return GameEvent(status=status, game=game, message=message)


def _clean_name(name: Optional[str]) -> Optional[str]:
    cleaned = (name or "").strip()
    if not cleaned or len(cleaned) > config.MAX_NAME_LENGTH:
        return None
    return cleaned


def _valid_code(code: Sequence[str], digit_count: int) -> bool:
    return len(code) == digit_count and all(len(d) == 1 and d in DIGITS for d in code)


class GameController:
    def __init__(self, store, scheduler=None, randomness: Optional[RandomSource] = None) -> None:
        self.store = store
        self.scheduler = scheduler if scheduler is not None else ThreadingScheduler()
        self.random = randomness if randomness is not None else RandomSource()
        self._watched: Dict[str, Callable[[], None]] = {}
        self._seen_versions: Dict[str, int] = {}
        self._lock = RLock()

    # ---------------- plumbing ----------------

    def _watch(self, game_id: str) -> None:
        with self._lock:
            if game_id not in self._watched:
                self._watched[game_id] = self.store.subscribe(game_id, self._on_commit)

    def _unwatch(self, game_id: str) -> None:
        with self._lock:
            unsubscribe = self._watched.pop(game_id, None)
            self._seen_versions.pop(game_id, None)
        if unsubscribe:
            unsubscribe()

    def close(self) -> None:
        with self._lock:
            game_ids = list(self._watched)
        for game_id in game_ids:
            self._unwatch(game_id)
        self.scheduler.shutdown()

    def _apply(
        self,
        game_id: str,
        build: Callable[[Game], Union[GameEvent, _Change]],
        pinned: Optional[Precondition] = None,
        hold_turn: bool = False,
    ) -> GameEvent:
        """
        ``hold_turn`` pins the turn seen on the first read: a retry may
        outlive an unrelated commit (chat, a new version) but never a turn
        change.
        """
        for _ in range(COMMIT_ATTEMPTS):
            game = self.store.read(game_id)
            if game is None:
                return _reject("not_found", "Game not found")
            if game.phase != "game_over":
                self._watch(game_id)
            if pinned is None and hold_turn:
                pinned = Precondition.for_turn(game)
            if pinned is not None and not pinned.matches(game):
                logger.info(f"[stale-drop] game={game_id} pinned={pinned}")
                return _reject("conflict", "The turn has already moved on.", game)

            outcome = build(game)
            if isinstance(outcome, GameEvent):
                return outcome

            guard = replace(Precondition.for_turn(game), version=game.version)
            if self.store.commit(game_id, guard, outcome.patch):
                committed = apply_patch(game, outcome.patch)
                return GameEvent(
                    status=outcome.status,
                    game=committed,
                    result=outcome.result,
                    player_id=outcome.player_id,
                )
        return _reject("conflict", "The game changed while your request was processed; try again.")

    def _on_commit(self, game: Game) -> None:
        """Keep deferred work in step with whatever turn the store now holds."""
        # Notifications from different threads can arrive out of order;
        # only the newest version may touch the timers.
        with self._lock:
            if game.version <= self._seen_versions.get(game.id, -1):
                logger.info(f"[stale-notify] game={game.id} version={game.version}")
                return
            self._seen_versions[game.id] = game.version

            turn_number = game.turn.turn_number if game.phase == "playing" else -1
            self.scheduler.cancel_game(game.id, keep_turn=turn_number)
            if game.phase == "game_over":
                self._unwatch(game.id)
                return
            if game.phase != "playing":
                return

            guesser = game.player(game.turn.current_guesser_id)
            if guesser is None:
                return
            if guesser.is_bot:
                self._schedule_bot(game)
            elif game.settings.turn_time_limit_seconds > 0:
                self._schedule_timeout(game)

    # ---------------- reading ----------------

    def get_game(self, game_id: str) -> Optional[Game]:
        return self.store.read(game_id)

    # ---------------- lobby ----------------

    def create_lobby(self, host_name: str) -> GameEvent:
        name = _clean_name(host_name)
        if name is None:
            return _reject("invalid", f"Name must be 1-{config.MAX_NAME_LENGTH} characters.")

        host = Player(id=str(uuid4()), name=name)
        while True:
            code = self.random.room_code()
            if not self.store.exists(code):
                break
        game = Game(id=code, host_id=host.id, players=[host])
        try:
            self.store.create(game)
        except ValueError:
            return _reject("conflict", "Room code collision; try again.")
        self._watch(game.id)
        logger.info(f"[lobby-created] game={game.id} host={host.id}")
        return GameEvent(status="ok", game=game, player_id=host.id)

    def join_lobby(self, game_id: str, name: str) -> GameEvent:
        cleaned = _clean_name(name)

        def build(game: Game):
            if game.phase != "lobby":
                return _reject("wrong_phase", "The game has already started.", game)
            if cleaned is None:
                return _reject("invalid", f"Name must be 1-{config.MAX_NAME_LENGTH} characters.", game)
            if len(game.players) >= game.settings.player_count:
                return _reject("invalid", "The lobby is full.", game)
            player = Player(id=str(uuid4()), name=cleaned)
            return _Change({"players": game.players + [player]}, player_id=player.id)

        return self._apply(game_id, build)

    def add_bot(self, game_id: str, as_player_id: PlayerId) -> GameEvent:
        def build(game: Game):
            rejection = self._host_only(game, as_player_id, "lobby")
            if rejection:
                return rejection
            if len(game.players) >= game.settings.player_count:
                return _reject("invalid", "The lobby is full.", game)
            taken = {p.name for p in game.players}
            name = next((n for n in BOT_NAMES if n not in taken), None)
            if name is None:
                name = f"Bot {len(game.players) + 1}"
            bot = Player(id=str(uuid4()), name=name, is_bot=True)
            return _Change({"players": game.players + [bot]}, player_id=bot.id)

        return self._apply(game_id, build)

    def remove_player(self, game_id: str, player_id: PlayerId, as_player_id: PlayerId) -> GameEvent:
        def build(game: Game):
            rejection = self._host_only(game, as_player_id, "lobby")
            if rejection:
                return rejection
            if player_id == game.host_id:
                return _reject("invalid", "The host cannot be removed.", game)
            if game.player(player_id) is None:
                return _reject("not_found", "Player not found", game)
            return _Change({"players": [p for p in game.players if p.id != player_id]})

        return self._apply(game_id, build)

    def update_settings(
        self,
        game_id: str,
        as_player_id: PlayerId,
        digit_count: Optional[int] = None,
        player_count: Optional[int] = None,
        turn_time_limit_seconds: Optional[int] = None,
    ) -> GameEvent:
        def build(game: Game):
            rejection = self._host_only(game, as_player_id, "lobby")
            if rejection:
                return rejection
            settings = copy.deepcopy(game.settings)
            if digit_count is not None:
                if not config.MIN_DIGITS <= digit_count <= config.MAX_DIGITS:
                    return _reject("invalid", f"Digit count must be {config.MIN_DIGITS}-{config.MAX_DIGITS}.", game)
                settings.digit_count = digit_count
            if player_count is not None:
                if not config.MIN_PLAYERS <= player_count <= config.MAX_PLAYERS:
                    return _reject("invalid", f"Player count must be {config.MIN_PLAYERS}-{config.MAX_PLAYERS}.", game)
                if player_count < len(game.players):
                    return _reject("invalid", "Remove players before lowering the player count.", game)
                settings.player_count = player_count
            if turn_time_limit_seconds is not None:
                if turn_time_limit_seconds not in config.TURN_TIME_LIMIT_OPTIONS:
                    return _reject("invalid", f"Turn time limit must be one of {config.TURN_TIME_LIMIT_OPTIONS}.", game)
                settings.turn_time_limit_seconds = turn_time_limit_seconds
            return _Change({"settings": settings})

        return self._apply(game_id, build)

    def start_game(self, game_id: str, as_player_id: PlayerId) -> GameEvent:
        def build(game: Game):
            rejection = self._host_only(game, as_player_id, "lobby")
            if rejection:
                return rejection
            count = len(game.players)
            if count < config.MIN_PLAYERS or count > game.settings.player_count:
                return _reject("invalid", f"Need {config.MIN_PLAYERS}-{game.settings.player_count} players to start.", game)
            players = []
            for p in game.players:
                p = copy.deepcopy(p)
                if p.is_bot:
                    p.secret_code = secret_code(game.settings.digit_count, self.random)
                players.append(p)
            return _Change({"players": players, "phase": "setup"})

        event = self._apply(game_id, build)
        if event.accepted:
            logger.info(f"[setup-start] game={game_id} players={len(event.game.players)}")
        return event

    def set_secret(self, game_id: str, player_id: PlayerId, code: Code) -> GameEvent:
        def build(game: Game):
            if game.phase != "setup":
                return _reject("wrong_phase", "Secrets can only be set during setup.", game)
            player = game.player(player_id)
            if player is None:
                return _reject("not_found", "Player not found", game)
            if not _valid_code(code, game.settings.digit_count):
                return _reject("invalid_guess", f"Secret must be exactly {game.settings.digit_count} digits.", game)

            players = copy.deepcopy(game.players)
            for p in players:
                if p.id == player_id:
                    p.secret_code = list(code)
            patch: Dict[str, Any] = {"players": players}

            if all(len(p.secret_code) == game.settings.digit_count for p in players):
                # Seating is owned by setup: shuffled once, then fixed for the game
                turn_order = self.random.shuffled([p.id for p in players])
                opening = first_turn(turn_order)
                patch["phase"] = "playing"
                patch["turn"] = TurnState(
                    turn_order=turn_order,
                    current_guesser_id=opening.guesser_id,
                    current_target_id=opening.target_id,
                    turn_number=1,
                )
            return _Change(patch)

        event = self._apply(game_id, build)
        if event.accepted and event.game.phase == "playing":
            turn = event.game.turn
            logger.info(f"[game-start] game={game_id} order={turn.turn_order} guesser={turn.current_guesser_id} target={turn.current_target_id}")
        return event

    def send_chat(self, game_id: str, player_id: PlayerId, text: str) -> GameEvent:
        cleaned = (text or "").strip()

        def build(game: Game):
            if game.phase == "game_over":
                return _reject("wrong_phase", "The game is over.", game)
            if game.player(player_id) is None:
                return _reject("not_found", "Player not found", game)
            if not cleaned or len(cleaned) > config.MAX_CHAT_LENGTH:
                return _reject("invalid", f"Message must be 1-{config.MAX_CHAT_LENGTH} characters.", game)
            players = copy.deepcopy(game.players)
            for p in players:
                if p.id == player_id:
                    p.last_message = ChatMessage(text=cleaned)
            return _Change({"players": players})

        return self._apply(game_id, build)

    def _host_only(self, game: Game, as_player_id: PlayerId, phase: str) -> Optional[GameEvent]:
        if game.phase != phase:
            return _reject("wrong_phase", f"Only allowed in the {phase} phase.", game)
        if as_player_id != game.host_id:
            return _reject("forbidden", "Only the host can do that.", game)
        return None

    # ---------------- turns ----------------

    def submit_guess(
        self,
        game_id: str,
        guess: Code,
        as_player_id: PlayerId,
        expected: Optional[Precondition] = None,
    ) -> GameEvent:
        """
        Score ``guess`` against the current target on behalf of ``as_player_id``.
        ``expected`` pins the turn the guess was made for; if the game has
        moved past it the guess is dropped with status "conflict".
        """
        guess = list(guess)

        def build(game: Game):
            if game.phase != "playing":
                return _reject("wrong_phase", "The game is not in progress.", game)
            if game.turn.current_guesser_id != as_player_id:
                return _reject("not_your_turn", "It is not your turn.", game)
            guesser = game.player(as_player_id)
            target = game.player(game.turn.current_target_id)
            if guesser is None or guesser.is_eliminated:
                return _reject("invalid", "Guesser is not an active player.", game)
            if target is None or target.is_eliminated:
                return _reject("target_eliminated", "That target has already been found.", game)
            digit_count = game.settings.digit_count
            if not _valid_code(guess, digit_count):
                return _reject("invalid_guess", f"Guess must be exactly {digit_count} digits.", game)

            exact, misplaced = score_guess(target.secret_code, guess)
            result = GuessResult(
                raw_value=list(guess),
                exact_matches=exact,
                misplaced_matches=misplaced,
                guesser_id=guesser.id,
                guesser_display_name=guesser.name,
            )
            found = is_found(target.secret_code, guess)

            players = copy.deepcopy(game.players)
            for p in players:
                if p.id == target.id:
                    p.guess_history.append(result)
                    p.is_eliminated = p.is_eliminated or found

            patch: Dict[str, Any] = {"players": players}
            if guesser.is_bot:
                patch["last_bot_guess"] = BotGuess(guesser_id=guesser.id, guess=list(guess))

            active = [p.id for p in players if not p.is_eliminated]
            if len(active) <= 1:
                winner_id = active[0] if active else None
                patch.update(self._game_over_patch(game, players, winner_id))
                return _Change(patch, status="game_over", result=result)

            eliminated = [p.id for p in players if p.is_eliminated]
            nxt = next_turn(game.turn.turn_order, eliminated, guesser.id, target.id, found)
            if nxt is None:
                logger.warning(f"[rotation-inconsistent] game={game.id} active={active} order={game.turn.turn_order}")
                patch.update(self._game_over_patch(game, players, None))
                return _Change(patch, status="game_over", result=result)

            patch["turn"] = TurnState(
                turn_order=list(game.turn.turn_order),
                current_guesser_id=nxt.guesser_id,
                current_target_id=nxt.target_id,
                turn_number=game.turn.turn_number + 1,
            )
            return _Change(patch, result=result)

        event = self._apply(game_id, build, pinned=expected, hold_turn=True)
        if event.accepted:
            self._log_transition("guess", event.game, event.result)
        return event

    def handle_turn_timeout(
        self,
        game_id: str,
        as_player_id: Optional[PlayerId] = None,
        expected: Optional[Precondition] = None,
    ) -> GameEvent:
        """The current human guesser ran out of time: pass the turn, nothing is scored."""

        def build(game: Game):
            if game.phase != "playing":
                return _reject("wrong_phase", "The game is not in progress.", game)
            if game.settings.turn_time_limit_seconds <= 0:
                return _reject("invalid", "This game has no turn time limit.", game)
            guesser_id = game.turn.current_guesser_id
            if as_player_id is not None and as_player_id != guesser_id:
                return _reject("not_your_turn", "It is not your turn.", game)
            guesser = game.player(guesser_id)
            if guesser is None or guesser.is_bot:
                return _reject("invalid", "Only a human guesser can time out.", game)

            eliminated = game.eliminated_ids()
            nxt = next_turn(game.turn.turn_order, eliminated, guesser_id, game.turn.current_target_id, False)
            if nxt is None:
                active = game.active_ids()
                winner_id = active[0] if len(active) == 1 else None
                if winner_id is None:
                    logger.warning(f"[rotation-inconsistent] game={game.id} active={active} order={game.turn.turn_order}")
                return _Change(self._game_over_patch(game, game.players, winner_id), status="game_over")

            return _Change({
                "turn": TurnState(
                    turn_order=list(game.turn.turn_order),
                    current_guesser_id=nxt.guesser_id,
                    current_target_id=nxt.target_id,
                    turn_number=game.turn.turn_number + 1,
                ),
            })

        event = self._apply(game_id, build, pinned=expected, hold_turn=True)
        if event.accepted:
            self._log_transition("timeout", event.game, None)
        return event

    def schedule_bot_turn(self, game_id: str) -> bool:
        """Arm the think-delay for the current bot guesser. False if the guesser is not a bot."""
        game = self.store.read(game_id)
        if game is None or game.phase != "playing":
            return False
        guesser = game.player(game.turn.current_guesser_id)
        if guesser is None or not guesser.is_bot:
            return False
        self._watch(game_id)
        self._schedule_bot(game)
        return True

    def _schedule_bot(self, game: Game) -> None:
        key = (game.id, game.turn.turn_number, "bot")
        if key in self.scheduler.pending():
            return
        expected = Precondition.for_turn(game)
        bot_id = game.turn.current_guesser_id
        digit_count = game.settings.digit_count

        def job() -> None:
            guess = self.random.code(digit_count)
            event = self.submit_guess(game.id, guess, bot_id, expected=expected)
            if not event.accepted:
                logger.info(f"[timer-abort] game={game.id} turn={expected.turn_number} kind=bot status={event.status}")

        self.scheduler.schedule(key, self.random.think_delay(), job)

    def _schedule_timeout(self, game: Game) -> None:
        key = (game.id, game.turn.turn_number, "timeout")
        if key in self.scheduler.pending():
            return
        expected = Precondition.for_turn(game)

        def job() -> None:
            event = self.handle_turn_timeout(game.id, expected=expected)
            if not event.accepted:
                logger.info(f"[timer-abort] game={game.id} turn={expected.turn_number} kind=timeout status={event.status}")

        self.scheduler.schedule(key, float(game.settings.turn_time_limit_seconds), job)

    # ---------------- outcomes ----------------

    def _game_over_patch(self, game: Game, players: List[Player], winner_id: Optional[PlayerId]) -> Dict[str, Any]:
        return {
            "players": assign_outcomes(players, winner_id, self.random.rng),
            "phase": "game_over",
            "winner_id": winner_id,
            "turn": TurnState(
                turn_order=list(game.turn.turn_order),
                current_guesser_id=None,
                current_target_id=None,
                turn_number=game.turn.turn_number + 1,
            ),
        }

    def _log_transition(self, cause: str, game: Game, result: Optional[GuessResult]) -> None:
        scored = f" exact={result.exact_matches} misplaced={result.misplaced_matches}" if result else ""
        if game.phase == "game_over":
            logger.info(f"[game-over] game={game.id} cause={cause} winner={game.winner_id}{scored}")
        else:
            logger.info(
                f"[turn-commit] game={game.id} cause={cause} guesser={game.turn.current_guesser_id} "
                f"target={game.turn.current_target_id} turn={game.turn.turn_number}{scored}"
            )
