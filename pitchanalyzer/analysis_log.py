"""AnalysisLog: an ordered, editable list of saved set-class analyses with JSON import/export."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field, replace
from typing import Any


class AnalysisImportError(ValueError):
    """Raised when an analysis file is not valid JSON or not a list of entries."""


def _as_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _as_optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


@dataclass(frozen=True)
class AnalysisLogEntry:
    """
    One saved analysis.

    Attributes:
        key:         Unique id within the log.
        measure:     Free-text location, e.g. ``"m. 12"``.
        comment:     Free-text annotation.
        abc_notes:   Snapshot of the analysed notes.
        pc_set:      Snapshot of the set-class data (export shape), if any.
        chord_label: Optional chord label shown next to the entry.
        chord_value: Optional chord value shown next to the entry.
    """

    key: str
    measure: str = ""
    comment: str = ""
    abc_notes: list[str] = field(default_factory=list)
    pc_set: dict[str, Any] | None = None
    chord_label: str | None = None
    chord_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "measure": self.measure,
            "comment": self.comment,
            "abcNotes": list(self.abc_notes),
            "pcSet": dict(self.pc_set) if self.pc_set is not None else None,
            "chordLabel": self.chord_label,
            "chordValue": self.chord_value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], fallback_key: str) -> AnalysisLogEntry:
        """Build an entry from imported data; missing or mistyped fields take defaults."""
        notes = data.get("abcNotes")
        pc_set = data.get("pcSet")
        return cls(
            key=_as_str(data.get("key")) or fallback_key,
            measure=_as_str(data.get("measure")),
            comment=_as_str(data.get("comment")),
            abc_notes=[n for n in notes if isinstance(n, str)] if isinstance(notes, list) else [],
            pc_set=dict(pc_set) if isinstance(pc_set, dict) else None,
            chord_label=_as_optional_str(data.get("chordLabel")),
            chord_value=_as_optional_str(data.get("chordValue")),
        )


class AnalysisLog:
    """
    In-memory analysis log.

    Entries keep their insertion order until moved. Every operation that
    fails leaves the log unchanged.
    """

    def __init__(self, entries: list[AnalysisLogEntry] | None = None) -> None:
        self._entries: list[AnalysisLogEntry] = list(entries or [])
        self._counter = 0

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _new_key(self) -> str:
        self._counter += 1
        return f"entry-{int(time.time() * 1000)}-{self._counter}"

    def _index_of(self, key: str) -> int:
        for index, entry in enumerate(self._entries):
            if entry.key == key:
                return index
        raise KeyError(key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def entries(self) -> list[AnalysisLogEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> AnalysisLogEntry | None:
        for entry in self._entries:
            if entry.key == key:
                return entry
        return None

    def add(
        self,
        abc_notes: list[str],
        pc_set: dict[str, Any] | None,
        measure: str = "",
        comment: str = "",
        chord_label: str | None = None,
        chord_value: str | None = None,
    ) -> AnalysisLogEntry:
        """Append a snapshot of the current analysis and return it."""
        entry = AnalysisLogEntry(
            key=self._new_key(),
            measure=measure,
            comment=comment,
            abc_notes=list(abc_notes),
            pc_set=dict(pc_set) if pc_set is not None else None,
            chord_label=chord_label or None,
            chord_value=chord_value or None,
        )
        self._entries.append(entry)
        return entry

    def update(self, key: str, **changes: Any) -> AnalysisLogEntry:
        """
        Replace fields of the entry ``key``.

        Raises:
            KeyError: If no entry has that key.
        """
        index = self._index_of(key)
        updated = replace(self._entries[index], **changes)
        self._entries[index] = updated
        return updated

    def delete(self, key: str) -> bool:
        """Remove the entry ``key``; returns False if there was none."""
        before = len(self._entries)
        self._entries = [entry for entry in self._entries if entry.key != key]
        return len(self._entries) != before

    def move(self, from_index: int, to_index: int) -> None:
        """
        Move an entry to a new position.

        Raises:
            IndexError: If ``from_index`` is out of range.
        """
        entries = list(self._entries)
        item = entries.pop(from_index)
        entries.insert(to_index, item)
        self._entries = entries

    def to_json(self) -> str:
        """Serialise the log as a 2-space indented JSON array."""
        return json.dumps([entry.to_dict() for entry in self._entries], indent=2, ensure_ascii=False)

    def import_json(self, text: str) -> None:
        """
        Replace the log with entries read from JSON text.

        Unknown fields are ignored and missing ones take defaults; array items
        that are not objects are skipped.

        Raises:
            AnalysisImportError: If the text is not JSON or not a JSON array.
                                 The log is left unchanged.
        """
        try:
            parsed = json.loads(text)
        except (TypeError, ValueError, RecursionError) as exc:
            raise AnalysisImportError(f"Not a valid analysis file: {exc}") from exc
        if not isinstance(parsed, list):
            raise AnalysisImportError("Not a valid analysis file: expected a JSON array of entries.")

        stamp = int(time.time() * 1000)
        self._entries = [
            AnalysisLogEntry.from_dict(item, fallback_key=f"entry-{stamp}-{index}")
            for index, item in enumerate(parsed)
            if isinstance(item, dict)
        ]
