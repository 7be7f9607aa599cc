"""Stored content of an analyzer section: defaults, version migration and validation."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictStr, ValidationError


class Version(NamedTuple):
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


VERSION = Version(1, 1, 1)


class TaskMode(str, Enum):
    NONE = "none"
    ABC_CODE = "abcCode"
    IMAGE = "image"


class TaskAudioType(str, Enum):
    NONE = "none"
    INTERNAL = "internal"
    EXTERNAL = "external"


def get_default_content() -> dict[str, Any]:
    """A fresh copy of the default content; its key set is the current schema."""
    return {
        "version": str(VERSION),
        "width": 100,
        "taskMode": TaskMode.NONE.value,
        "taskWidth": 100,
        "taskDescription": "",
        "taskAbcCode": "",
        "taskImage": {"sourceUrl": "", "copyrightNotice": ""},
        "taskAudioType": TaskAudioType.NONE.value,
        "taskAudioSourceUrl": "",
        "chordMap": None,
        "parsedScore": None,
    }


# ── Migration ───────────────────────────────────────────────────────────────


def _parse_version(value: Any) -> tuple[int, int]:
    """MAJOR and MINOR of a version string; missing or unreadable parts count as 0."""
    if not isinstance(value, str) or not value:
        return 0, 0
    parts = value.split(".")

    def number(index: int) -> int:
        try:
            return int(parts[index])
        except (IndexError, ValueError):
            return 0

    return number(0), number(1)


def needs_migration(version: Any) -> bool:
    """True when the stored MAJOR or MINOR differs from the current version; PATCH is ignored."""
    return _parse_version(version) != (VERSION.major, VERSION.minor)


def upgrade_content(content: dict[str, Any]) -> dict[str, Any]:
    """
    Bring stored content up to the current schema.

    If no migration is needed the very same object is returned. Otherwise a new
    dict is built with exactly the default keys: values present in ``content``
    are kept, missing ones are filled from the defaults, keys no longer in the
    schema are dropped and ``version`` is set to the current version.
    """
    stored = content if isinstance(content, dict) else {}
    if stored is content and not needs_migration(stored.get("version")):
        return content
    defaults = get_default_content()
    upgraded = {key: stored[key] if key in stored else value for key, value in defaults.items()}
    upgraded["version"] = str(VERSION)
    return upgraded


# ── Validation ──────────────────────────────────────────────────────────────


class ContentValidationError(ValueError):
    """Raised when content does not match the schema; lists every violation."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__("Invalid content: " + "; ".join(violations))


class TaskImage(BaseModel):
    model_config = ConfigDict(extra="allow")

    sourceUrl: StrictStr
    copyrightNotice: StrictStr


class ContentSchema(BaseModel):
    """Schema of stored content. Unknown keys are allowed; values are not coerced."""

    model_config = ConfigDict(extra="allow")

    width: StrictFloat = Field(ge=0, le=100)
    taskMode: Literal["none", "abcCode", "image"] | None = None
    taskWidth: StrictFloat | None = Field(default=None, ge=0, le=100)
    taskDescription: StrictStr | None = None
    taskAbcCode: StrictStr | None = None
    taskImage: TaskImage | None = None


def _format_error(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "content"
    return f"{location}: {error.get('msg', 'invalid value')}"


def validate_content(content: Any) -> None:
    """
    Check content against :class:`ContentSchema`.

    Raises:
        ContentValidationError: With one message per violation (all are
                                collected, not just the first).
    """
    try:
        ContentSchema.model_validate(content)
    except ValidationError as exc:
        raise ContentValidationError([_format_error(e) for e in exc.errors()]) from exc
