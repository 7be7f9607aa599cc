"""Converters between ABC note tokens and set-class catalog entries."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pitchanalyzer.pitch_class import PC_TO_ABC, pitch_class_of
from pitchanalyzer.set_catalog import SetClassCatalog, SetClassEntry
from pitchanalyzer.set_reducer import HEX_DIGITS, prime_form_key

NO_INTERVAL_VECTOR = "000000"


def abc_notes_to_pitch_classes(notes: Iterable[str] | None) -> list[int]:
    """Pitch classes of ``notes`` in order; tokens without a note letter are dropped."""
    if not notes:
        return []
    return [pc for pc in map(pitch_class_of, notes) if pc is not None]


def classify(notes: Iterable[str] | None, catalog: SetClassCatalog) -> SetClassEntry | None:
    """
    Classify ABC notes as a set class.

    Args:
        notes:   ABC tokens, e.g. ``["C", "E", "G"]``; rests and brackets are ignored.
        catalog: The set-class catalog to look the prime form up in.

    Returns:
        The catalog entry; the empty-set entry when no token has a pitch;
        ``None`` when the catalog has no entry for the prime form.
    """
    pitch_classes = abc_notes_to_pitch_classes(notes)
    if not pitch_classes:
        return catalog.empty
    return catalog.lookup(prime_form_key(pitch_classes))


def interval_vector_of(notes: Iterable[str] | None, catalog: SetClassCatalog) -> str:
    """Interval vector of ``notes``; ``"000000"`` when the set is not in the catalog."""
    entry = classify(notes, catalog)
    return entry.interval_vector if entry is not None else NO_INTERVAL_VECTOR


def pcset_to_abc_notes(data: SetClassEntry | Mapping[str, Any] | None) -> list[str]:
    """
    Spell a set class's Forte prime form as ABC notes (sharps only).

    ``{"fortePrimeForm": "047"}`` -> ``["C", "E", "G"]``. Missing, empty or
    non-string prime forms give ``[]``; characters that are not pitch-class
    digits are skipped.
    """
    if isinstance(data, SetClassEntry):
        prime = data.forte_prime_form
    elif isinstance(data, Mapping):
        prime = data.get("fortePrimeForm")
    else:
        return []
    if not isinstance(prime, str):
        return []
    return [PC_TO_ABC[HEX_DIGITS.index(ch)] for ch in prime.upper() if ch in HEX_DIGITS]


def sort_abc_notes_by_pitch(notes: Iterable[str]) -> list[str]:
    """Stable sort of ABC notes by pitch class; unreadable tokens sort as C."""
    return sorted(notes, key=lambda note: pitch_class_of(note) or 0)


def abc_preview(notes: Iterable[str]) -> str:
    """Minimal tune showing ``notes`` as whole notes, or ``""`` when there are none."""
    notes = list(notes)
    if not notes:
        return ""
    return "X:1\nL:1/1\nK:C\n" + "".join(notes)
