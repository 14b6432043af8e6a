'''
Digit Duel API

Lobby:
POST   /games                      -> create a lobby (you become host)
POST   /games/{id}/join            -> join a lobby
POST   /games/{id}/bots            -> add a bot (host)
DELETE /games/{id}/players/{pid}   -> remove a player (host)
PATCH  /games/{id}/settings        -> change settings (host)
POST   /games/{id}/start           -> lobby -> setup (host)

Play:
POST   /games/{id}/secret          -> set your secret code
POST   /games/{id}/guess           -> guess the current target's code
POST   /games/{id}/timeout         -> your turn clock ran out
POST   /games/{id}/chat            -> short chat message
GET    /games/{id}                 -> read state (other players' secrets hidden)

GAME_STORE picks the store: "memory" (default) or "db" (SQLAlchemy).
'''

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .controller import GameController, GameEvent

from .schemas import (
    CreateGameRequest,
    JoinRequest,
    PlayerRequest,
    SettingsRequest,
    SecretRequest,
    GuessRequest,
    ChatRequest,
    GameStateOut,
    JoinResponse,
    GuessResponse,
    game_state_out,
    guess_out,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Digit Duel API", version="1.0.0")

# Allow everything in dev so the docs and front-end work easily
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

_controller: Optional[GameController] = None


def _build_store():
    if config.GAME_STORE == "db":
        from .repository import DBGameStore
        return DBGameStore()
    from .store import InMemoryGameStore
    return InMemoryGameStore()


# --- Dev convenience: auto-create tables locally ---
if config.APP_ENV == "local" and config.GAME_STORE == "db":
    @app.on_event("startup")
    def _dev_create_tables():
        from .bootstrap_db import create_all
        create_all()


@app.on_event("shutdown")
def _stop_timers():
    if _controller is not None:
        _controller.close()


# One controller per process; it owns the bot/timeout timers
def get_controller() -> GameController:
    global _controller
    if _controller is None:
        _controller = GameController(_build_store())
        logger.info(f"[startup] store={config.GAME_STORE}")
    return _controller


_HTTP_STATUS = {
    "not_found": 404,
    "forbidden": 403,
    "wrong_phase": 409,
    "not_your_turn": 409,
    "target_eliminated": 409,
    "conflict": 409,
    "invalid": 400,
    "invalid_guess": 400,
}


def _raise_for(event: GameEvent) -> None:
    if not event.accepted:
        raise HTTPException(status_code=_HTTP_STATUS.get(event.status, 400), detail=event.message)

# ---------------- Routes ----------------

@app.post("/games", response_model=JoinResponse, summary="Create a lobby")
def create_game(
    payload: CreateGameRequest,
    controller: GameController = Depends(get_controller),
) -> JoinResponse:
    event = controller.create_lobby(payload.name)
    _raise_for(event)
    return JoinResponse(
        game_id=event.game.id,
        player_id=event.player_id,
        state=game_state_out(event.game, event.player_id),
    )


@app.get("/games/{game_id}", response_model=GameStateOut, summary="Get current game state")
def get_game(
    game_id: str,
    player_id: Optional[str] = None,
    controller: GameController = Depends(get_controller),
) -> GameStateOut:
    game = controller.get_game(game_id.upper())
    if not game:
        raise HTTPException(status_code=404, detail="Game not found")
    return game_state_out(game, player_id)


@app.post("/games/{game_id}/join", response_model=JoinResponse, summary="Join a lobby")
def join_game(
    game_id: str,
    payload: JoinRequest,
    controller: GameController = Depends(get_controller),
) -> JoinResponse:
    event = controller.join_lobby(game_id.upper(), payload.name)
    _raise_for(event)
    return JoinResponse(
        game_id=event.game.id,
        player_id=event.player_id,
        state=game_state_out(event.game, event.player_id),
    )


@app.post("/games/{game_id}/bots", response_model=GameStateOut, summary="Add a bot (host only)")
def add_bot(
    game_id: str,
    payload: PlayerRequest,
    controller: GameController = Depends(get_controller),
) -> GameStateOut:
    event = controller.add_bot(game_id.upper(), payload.player_id)
    _raise_for(event)
    return game_state_out(event.game, payload.player_id)


@app.delete("/games/{game_id}/players/{target_player_id}", response_model=GameStateOut, summary="Remove a player (host only)")
def remove_player(
    game_id: str,
    target_player_id: str,
    player_id: str,
    controller: GameController = Depends(get_controller),
) -> GameStateOut:
    event = controller.remove_player(game_id.upper(), target_player_id, player_id)
    _raise_for(event)
    return game_state_out(event.game, player_id)


@app.patch("/games/{game_id}/settings", response_model=GameStateOut, summary="Change lobby settings (host only)")
def update_settings(
    game_id: str,
    payload: SettingsRequest,
    controller: GameController = Depends(get_controller),
) -> GameStateOut:
    event = controller.update_settings(
        game_id.upper(),
        payload.player_id,
        digit_count=payload.digit_count,
        player_count=payload.player_count,
        turn_time_limit_seconds=payload.turn_time_limit_seconds,
    )
    _raise_for(event)
    return game_state_out(event.game, payload.player_id)


@app.post("/games/{game_id}/start", response_model=GameStateOut, summary="Start setup (host only)")
def start_game(
    game_id: str,
    payload: PlayerRequest,
    controller: GameController = Depends(get_controller),
) -> GameStateOut:
    event = controller.start_game(game_id.upper(), payload.player_id)
    _raise_for(event)
    return game_state_out(event.game, payload.player_id)


@app.post("/games/{game_id}/secret", response_model=GameStateOut, summary="Set your secret code")
def set_secret(
    game_id: str,
    payload: SecretRequest,
    controller: GameController = Depends(get_controller),
) -> GameStateOut:
    event = controller.set_secret(game_id.upper(), payload.player_id, payload.code)
    _raise_for(event)
    return game_state_out(event.game, payload.player_id)


@app.post("/games/{game_id}/guess", response_model=GuessResponse, summary="Submit a guess")
def submit_guess(
    game_id: str,
    payload: GuessRequest,
    controller: GameController = Depends(get_controller),
) -> GuessResponse:
    # the controller checks turn, target and length; schemas only check digits
    event = controller.submit_guess(game_id.upper(), payload.guess, payload.player_id)
    _raise_for(event)
    return GuessResponse(
        status=event.status,
        feedback=guess_out(event.result),
        state=game_state_out(event.game, payload.player_id),
        note="Game over. No more guesses." if event.status == "game_over" else None,
    )


@app.post("/games/{game_id}/timeout", response_model=GameStateOut, summary="Pass the turn after the clock runs out")
def turn_timeout(
    game_id: str,
    payload: PlayerRequest,
    controller: GameController = Depends(get_controller),
) -> GameStateOut:
    event = controller.handle_turn_timeout(game_id.upper(), as_player_id=payload.player_id)
    _raise_for(event)
    return game_state_out(event.game, payload.player_id)


@app.post("/games/{game_id}/chat", response_model=GameStateOut, summary="Send a chat message")
def send_chat(
    game_id: str,
    payload: ChatRequest,
    controller: GameController = Depends(get_controller),
) -> GameStateOut:
    event = controller.send_chat(game_id.upper(), payload.player_id, payload.text)
    _raise_for(event)
    return game_state_out(event.game, payload.player_id)
