"""Deferred turn work: bot think delays and turn countdowns.

Each pending job is keyed by ``(game_id, turn_number, kind)``. Cancelling
before the timer fires leaves no trace; a job that fires late must check
its own preconditions (the controller does, through the store's commit
guard).
"""

import logging
import threading
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

TurnKey = Tuple[str, int, str]  # (game_id, turn_number, "bot" | "timeout")
Job = Callable[[], None]


class ThreadingScheduler:
    """Runs each job on its own ``threading.Timer``."""

    def __init__(self) -> None:
        self._timers: Dict[TurnKey, threading.Timer] = {}
        self._lock = threading.RLock()

    def schedule(self, key: TurnKey, delay: float, job: Job) -> None:
        def _fire() -> None:
            with self._lock:
                timer = self._timers.pop(key, None)
            if timer is None:
                # cancelled between expiry and this callback
                return
            logger.info(f"[timer-fire] game={key[0]} turn={key[1]} kind={key[2]}")
            try:
                job()
            except Exception:
                logger.exception(f"[timer-error] game={key[0]} turn={key[1]} kind={key[2]}")

        timer = threading.Timer(delay, _fire)
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancel()
            self._timers[key] = timer
        logger.info(f"[timer-set] game={key[0]} turn={key[1]} kind={key[2]} delay={delay:.2f}s")
        timer.start()

    def cancel(self, key: TurnKey) -> bool:
        with self._lock:
            timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        logger.info(f"[timer-cancel] game={key[0]} turn={key[1]} kind={key[2]}")
        return True

    def cancel_game(self, game_id: str, keep_turn: int = -1) -> None:
        """Cancel every job of ``game_id`` except those keyed to ``keep_turn``."""
        with self._lock:
            keys = [k for k in self._timers if k[0] == game_id and k[1] != keep_turn]
        for key in keys:
            self.cancel(key)

    def pending(self) -> List[TurnKey]:
        with self._lock:
            return list(self._timers)

    def shutdown(self) -> None:
        with self._lock:
            keys = list(self._timers)
        for key in keys:
            self.cancel(key)


class ManualScheduler:
    """Test double: nothing runs until ``fire`` is called."""

    def __init__(self) -> None:
        self.jobs: Dict[TurnKey, Tuple[float, Job]] = {}

    def schedule(self, key: TurnKey, delay: float, job: Job) -> None:
        self.jobs[key] = (delay, job)

    def cancel(self, key: TurnKey) -> bool:
        return self.jobs.pop(key, None) is not None

    def cancel_game(self, game_id: str, keep_turn: int = -1) -> None:
        for key in [k for k in self.jobs if k[0] == game_id and k[1] != keep_turn]:
            self.jobs.pop(key, None)

    def pending(self) -> List[TurnKey]:
        return list(self.jobs)

    def delay(self, key: TurnKey) -> float:
        return self.jobs[key][0]

    def fire(self, key: TurnKey) -> None:
        _, job = self.jobs.pop(key)
        job()

    def shutdown(self) -> None:
        self.jobs.clear()
