"""
Environment configuration.
Values come from the process environment or a local .env (not committed).
"""

import os

from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.getenv("APP_ENV", "local")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# "memory" keeps games in-process; "db" uses the SQLAlchemy repository
GAME_STORE = os.getenv("GAME_STORE", "memory")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./digitduel.db")

# Bot think delay range (seconds)
BOT_THINK_MIN_SEC = float(os.getenv("BOT_THINK_MIN_SEC", "1.5"))
BOT_THINK_MAX_SEC = float(os.getenv("BOT_THINK_MAX_SEC", "2.5"))

# Secrets for bots from random.org (off by default; falls back locally anyway)
USE_RANDOM_ORG = os.getenv("USE_RANDOM_ORG", "0") == "1"
RANDOM_ORG_TIMEOUT_SEC = float(os.getenv("RANDOM_ORG_TIMEOUT_SEC", "3.0"))

# Lobby limits
MIN_PLAYERS = 2
MAX_PLAYERS = 6
MIN_DIGITS = 3
MAX_DIGITS = 6
TURN_TIME_LIMIT_OPTIONS = (0, 15, 30, 45, 60)
MAX_NAME_LENGTH = 15
MAX_CHAT_LENGTH = 50
