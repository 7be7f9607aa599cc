"""Renderer implementations for set-class analysis output formats."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Final

from pitchanalyzer.adapters import abc_preview, pcset_to_abc_notes
from pitchanalyzer.set_catalog import SetClassEntry

#: Shown for absent values (no Forte name, no Z-mate, no super/sub sets)
PLACEHOLDER: Final[str] = "–"
#: Shown for the prime form of the empty set
EMPTY_SET: Final[str] = "(empty)"
#: Shown when the notes do not classify
NO_MATCH: Final[str] = "No match"


def _escape_markdown(text: str) -> str:
    """Escape the characters that break a Markdown table cell."""
    return text.replace("\\", "\\\\").replace("|", "\\|")


def _prime_form(prime: str) -> str:
    return f"({','.join(prime)})" if prime else EMPTY_SET


def _set_list(keys: tuple[str, ...]) -> str:
    return " ".join(_prime_form(k) for k in keys) if keys else PLACEHOLDER


def describe(entry: SetClassEntry) -> list[tuple[str, str]]:
    """Label/value rows for an entry, with placeholders for absent values."""
    return [
        ("Prime Form (Rahn)", _prime_form(entry.rahn_prime_form)),
        ("Prime Form (Forte)", _prime_form(entry.forte_prime_form)),
        ("Interval Vector", f"[{entry.interval_vector}]"),
        ("Name (Forte)", entry.forte_name or PLACEHOLDER),
        ("Cardinality", str(entry.cardinality)),
        ("Z-Mate", _prime_form(entry.z_mate) if entry.z_mate is not None else PLACEHOLDER),
        ("Supersets", _set_list(entry.super_sets)),
        ("Subsets", _set_list(entry.sub_sets)),
    ]


class SetClassRenderer(ABC):
    """Abstract analysis renderer."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Format name used on the command line."""

    @abstractmethod
    def render(self, *, notes: list[str], entry: SetClassEntry | None) -> str:
        """Render the analysis of ``notes`` into a string."""


class TextRenderer(SetClassRenderer):
    """Aligned ``label : value`` lines for the terminal."""

    @property
    def name(self) -> str:
        return "text"

    def render(self, *, notes: list[str], entry: SetClassEntry | None) -> str:
        lines = [f"{'Notes':<18} : {' '.join(notes) if notes else PLACEHOLDER}"]
        if entry is None:
            lines.append(NO_MATCH)
            return "\n".join(lines)
        lines.extend(f"{label:<18} : {value}" for label, value in describe(entry))
        return "\n".join(lines)


class MarkdownRenderer(SetClassRenderer):
    """A Markdown table followed by an ``abc`` preview block of the prime form."""

    @property
    def name(self) -> str:
        return "markdown"

    def render(self, *, notes: list[str], entry: SetClassEntry | None) -> str:
        title = entry.forte_name if entry is not None and entry.forte_name else "Pitch-class set"
        parts = [f"# {_escape_markdown(title)}", ""]
        parts.append(f"Notes: `{' '.join(notes)}`" if notes else f"Notes: {PLACEHOLDER}")
        parts.append("")

        if entry is None:
            parts.append(NO_MATCH)
            return "\n".join(parts) + "\n"

        parts.extend(["| Property | Value |", "| --- | --- |"])
        parts.extend(
            f"| {label} | {_escape_markdown(value)} |" for label, value in describe(entry)
        )

        preview = abc_preview(pcset_to_abc_notes(entry))
        if preview:
            parts.extend(["", "```abc", preview, "```"])
        return "\n".join(parts) + "\n"


class JsonRenderer(SetClassRenderer):
    """The export shape: ``{"abcNotes": [...], "pcSet": {...} | null}``."""

    @property
    def name(self) -> str:
        return "json"

    def render(self, *, notes: list[str], entry: SetClassEntry | None) -> str:
        payload = {
            "abcNotes": list(notes),
            "pcSet": entry.to_dict() if entry is not None else None,
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)


RENDERERS: Final[dict[str, type[SetClassRenderer]]] = {
    "text": TextRenderer,
    "markdown": MarkdownRenderer,
    "json": JsonRenderer,
}


def get_renderer(output_format: str) -> SetClassRenderer:
    """
    Return a renderer for ``output_format``.

    Raises:
        ValueError: If the format is not supported.
    """
    normalized = output_format.strip().lower()
    if normalized not in RENDERERS:
        supported = ", ".join(sorted(RENDERERS))
        raise ValueError(f"Unsupported output format '{output_format}'. Use one of: {supported}.")
    return RENDERERS[normalized]()
