"""
Labels for clarity.
"""

from typing import List, Literal

Digit = str  # "0" -> "9"
Code = List[Digit]  # secret or guess, length = digit_count
PlayerId = str
Phase = Literal["lobby", "setup", "playing", "game_over"]

DIGITS = "0123456789"
