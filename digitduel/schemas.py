"""
Explicit validation & Pydantic models
- Models are used to validate and serialize/deserialize data
  exchanged between the client and server.
- Defines the structure of API requests and responses.
"""

from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator

from .store import Game, GuessResult, Player
from .types import DIGITS


def _as_digit_list(value: Union[str, List[str]]) -> List[str]:
    """Accept "1234" or ["1", "2", "3", "4"]; every item must be one digit 0..9."""
    if isinstance(value, str):
        value = list(value)
    if not isinstance(value, list):
        raise ValueError("Digits must be a string or a list of strings.")
    for digit in value:
        if not isinstance(digit, str) or len(digit) != 1 or digit not in DIGITS:
            raise ValueError("Each digit must be a single character between 0 and 9.")
    return value


# 1. Lobby requests
class CreateGameRequest(BaseModel):
    name: str = Field(..., description="Host display name")


class JoinRequest(BaseModel):
    name: str = Field(..., description="Display name of the joining player")


class PlayerRequest(BaseModel):
    player_id: str = Field(..., description="Id of the player making the request")


class SettingsRequest(PlayerRequest):
    digit_count: Optional[int] = Field(None, description="Digits per secret (3-6)")
    player_count: Optional[int] = Field(None, description="Seats in the game (2-6)")
    turn_time_limit_seconds: Optional[int] = Field(None, description="0, 15, 30, 45 or 60; 0 = no limit")


# 2. Setup / play requests
class SecretRequest(PlayerRequest):
    code: List[str] = Field(..., description="Your secret digits; length = digit_count")

    @field_validator("code", mode="before")
    @classmethod
    def validate_digits(cls, value):
        return _as_digit_list(value)


class GuessRequest(PlayerRequest):
    guess: List[str] = Field(
        ..., description="A list of digits (length depends on the game). Each digit must be between 0 and 9."
    )

    @field_validator("guess", mode="before")
    @classmethod
    def validate_digits(cls, value):
        """
        We only check that each item is a digit.
        The length depends on the game's settings, so the controller checks it.
        """
        return _as_digit_list(value)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"player_id": "…", "guess": ["0", "1", "2", "3"]},
                {"player_id": "…", "guess": "0123"},
            ]
        }
    }


class ChatRequest(PlayerRequest):
    text: str = Field(..., description="Short chat message (1-50 characters)")


# 3. Responses
class GuessResultOut(BaseModel):
    raw_value: List[str] = Field(..., description="The guessed digits")
    exact_matches: int = Field(..., description="Right digit, right place")
    misplaced_matches: int = Field(..., description="Right digit, wrong place")
    guesser_id: str
    guesser_display_name: str
    timestamp: float = Field(..., description="When the guess was made")


class ChatOut(BaseModel):
    text: str
    timestamp: float


class PlayerOut(BaseModel):
    id: str
    name: str
    is_bot: bool
    is_eliminated: bool
    has_secret: bool = Field(..., description="Whether the secret has been set")
    secret_code: Optional[List[str]] = Field(None, description="Only shown to its owner, or once the game is over")
    guess_history: List[GuessResultOut]
    outcome_title: Optional[str] = None
    last_message: Optional[ChatOut] = None


class SettingsOut(BaseModel):
    digit_count: int
    turn_time_limit_seconds: int
    player_count: int


class TurnOut(BaseModel):
    turn_order: List[str]
    current_guesser_id: Optional[str]
    current_target_id: Optional[str]
    turn_number: int


class BotGuessOut(BaseModel):
    guesser_id: str
    guess: List[str]


class GameStateOut(BaseModel):
    game_id: str = Field(..., description="Room code")
    host_id: str
    phase: Literal["lobby", "setup", "playing", "game_over"]
    settings: SettingsOut
    players: List[PlayerOut]
    turn: TurnOut
    winner_id: Optional[str] = None
    last_bot_guess: Optional[BotGuessOut] = None
    version: int


class JoinResponse(BaseModel):
    game_id: str
    player_id: str = Field(..., description="Keep this; it identifies you in later requests")
    state: GameStateOut


class GuessResponse(BaseModel):
    status: Literal["ok", "game_over"]
    feedback: GuessResultOut
    state: GameStateOut
    note: Optional[str] = Field(None, description="Extra note (ex. 'Game over. No more guesses.')")


# --- builders ---

def guess_out(result: GuessResult) -> GuessResultOut:
    return GuessResultOut(
        raw_value=result.raw_value,
        exact_matches=result.exact_matches,
        misplaced_matches=result.misplaced_matches,
        guesser_id=result.guesser_id,
        guesser_display_name=result.guesser_display_name,
        timestamp=result.timestamp,
    )


def _player_out(player: Player, reveal: bool) -> PlayerOut:
    return PlayerOut(
        id=player.id,
        name=player.name,
        is_bot=player.is_bot,
        is_eliminated=player.is_eliminated,
        has_secret=bool(player.secret_code),
        secret_code=player.secret_code if reveal and player.secret_code else None,
        guess_history=[guess_out(g) for g in player.guess_history],
        outcome_title=player.outcome_title,
        last_message=(
            ChatOut(text=player.last_message.text, timestamp=player.last_message.timestamp)
            if player.last_message else None
        ),
    )


def game_state_out(game: Game, viewer_id: Optional[str] = None) -> GameStateOut:
    finished = game.phase == "game_over"
    return GameStateOut(
        game_id=game.id,
        host_id=game.host_id,
        phase=game.phase,
        settings=SettingsOut(
            digit_count=game.settings.digit_count,
            turn_time_limit_seconds=game.settings.turn_time_limit_seconds,
            player_count=game.settings.player_count,
        ),
        players=[_player_out(p, reveal=finished or p.id == viewer_id) for p in game.players],
        turn=TurnOut(
            turn_order=game.turn.turn_order,
            current_guesser_id=game.turn.current_guesser_id,
            current_target_id=game.turn.current_target_id,
            turn_number=game.turn.turn_number,
        ),
        winner_id=game.winner_id,
        last_bot_guess=(
            BotGuessOut(guesser_id=game.last_bot_guess.guesser_id, guess=game.last_bot_guess.guess)
            if game.last_bot_guess else None
        ),
        version=game.version,
    )
