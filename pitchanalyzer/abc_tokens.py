"""ABC token stream parsing and accidental-context normalisation for note input."""

import re
from typing import Final

from pitchanalyzer.pitch_class import pitch_class_of, split_note

# One note (accidental, letter, octave marks), a rest, or a structural bracket.
# Everything else in the input is skipped.
ABC_TOKEN_RE: Final[re.Pattern[str]] = re.compile(r"(?:\^{1,2}|_{1,2}|=)?[A-Ga-g][,']*|[zZ]|[\[\]|]")


def tokenize(text: str) -> list[str]:
    """
    Split free-form ABC text into note, rest and bracket tokens.

    Args:
        text: Raw text as typed, e.g. ``"C ^F _B c'"``.

    Returns:
        Tokens in input order; unrecognised characters are dropped.
    """
    if not isinstance(text, str):
        return []
    return ABC_TOKEN_RE.findall(text)


def apply_accidental_context(notes: list[str]) -> list[str]:
    """
    Make accidental carry-forward explicit across a token sequence.

    The whole sequence is treated as a single measure:

    - a sharp or flat on a letter activates tracking for that letter;
    - double sharps and flats pass through and leave tracking alone;
    - an explicit natural cancels tracking and is kept only if it actually
      cancels something, otherwise the redundant ``=`` is dropped;
    - a bare letter while tracking is active is rewritten as ``=letter`` so
      the earlier accidental does not leak past the point it is cancelled.
    """
    active: dict[str, bool] = {}
    result: list[str] = []

    for note in notes:
        parts = split_note(note)
        if parts is None:
            result.append(note)
            continue

        accidental, letter, rest = parts
        pitch_letter = letter.upper()

        if accidental in ("^^", "__"):
            result.append(note)
        elif accidental in ("^", "_"):
            active[pitch_letter] = True
            result.append(note)
        elif accidental == "=":
            was_active = active.get(pitch_letter, False)
            active[pitch_letter] = False
            result.append(note if was_active else letter + rest)
        elif active.get(pitch_letter, False):
            active[pitch_letter] = False
            result.append(f"={note}")
        else:
            result.append(note)

    return result


def deduplicate_notes(notes: list[str]) -> list[str]:
    """Keep only the last occurrence of each pitch class; non-note tokens are kept."""
    last_index: dict[int, int] = {}
    for index, note in enumerate(notes):
        pc = pitch_class_of(note)
        if pc is not None:
            last_index[pc] = index

    kept: list[str] = []
    for index, note in enumerate(notes):
        pc = pitch_class_of(note)
        if pc is None or last_index[pc] == index:
            kept.append(note)
    return kept


def normalize_notes(notes: list[str]) -> list[str]:
    """
    Run the input normalisation pipeline.

    Accidental context, then pitch-class deduplication, then accidental context
    again: dropping earlier duplicates can change which accidental is active at
    a later position.
    """
    return apply_accidental_context(deduplicate_notes(apply_accidental_context(notes)))


def parse_note_text(text: str) -> list[str]:
    """Tokenize and normalise the contents of the note text box."""
    return normalize_notes(tokenize(text))


def active_pitch_classes(notes: list[str]) -> set[int]:
    """Return the pitch classes currently sounding in ``notes``."""
    return {pc for pc in map(pitch_class_of, notes) if pc is not None}


def toggle_note(notes: list[str], note: str) -> list[str]:
    """
    Apply a piano key press to the note list.

    If the key's pitch class is already present, every token of that pitch
    class is removed; otherwise the note is appended. The result is normalised.
    Tokens without a pitch class leave ``notes`` untouched.
    """
    pc = pitch_class_of(note)
    if pc is None:
        return list(notes)
    if pc in active_pitch_classes(notes):
        return normalize_notes([n for n in notes if pitch_class_of(n) != pc])
    return normalize_notes([*notes, note])
