"""Pitch-class normalisation for ABC note tokens."""

import re
from typing import Final

PITCH_CLASS_COUNT: Final[int] = 12

# Base semitone of each natural letter (C = 0)
NOTE_BASE_PC: Final[dict[str, int]] = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}

# Semitone offset of each ABC accidental prefix
ACCIDENTAL_OFFSETS: Final[dict[str, int]] = {"^^": 2, "^": 1, "": 0, "=": 0, "_": -1, "__": -2}

# Sharps-only spelling of every pitch class (index 0 = C)
PC_TO_ABC: Final[list[str]] = ["C", "^C", "D", "^D", "E", "F", "^F", "G", "^G", "A", "^A", "B"]

_NOTE_RE = re.compile(r"(\^\^|\^|__|_|=)?([A-Ga-g])(.*)", re.DOTALL)


def split_note(token: object) -> tuple[str, str, str] | None:
    """
    Split an ABC note token into ``(accidental, letter, rest)``.

    ``rest`` holds whatever follows the letter (octave marks, durations).
    Returns ``None`` for anything that does not start with an optional
    accidental followed by a note letter.
    """
    if not isinstance(token, str):
        return None
    match = _NOTE_RE.match(token)
    if match is None:
        return None
    return match.group(1) or "", match.group(2), match.group(3)


def pitch_class_of(token: object) -> int | None:
    """
    Map an ABC note token to its pitch class (0=C, 1=C#/Db, ..., 11=B).

    Args:
        token: e.g. ``"C"``, ``"^^c'"``, ``"_B,"``, ``"=F"``.

    Returns:
        The pitch class, or ``None`` when the token has no note letter.
    """
    parts = split_note(token)
    if parts is None:
        return None
    accidental, letter, _rest = parts
    return (NOTE_BASE_PC[letter.upper()] + ACCIDENTAL_OFFSETS[accidental]) % PITCH_CLASS_COUNT


def pitch_class_to_abc(pitch_class: int) -> str:
    """Spell a pitch class as an ABC note using sharps only."""
    return PC_TO_ABC[pitch_class % PITCH_CLASS_COUNT]
