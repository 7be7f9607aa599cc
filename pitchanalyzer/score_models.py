"""Data models for parsed ABC scores."""

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any


@dataclass(frozen=True)
class TimeSignature:
    """Meter of one measure, e.g. 3/4."""

    numerator: int = 4
    denominator: int = 4

    def to_dict(self) -> dict[str, int]:
        return {"mNum": self.numerator, "mDen": self.denominator}


@dataclass(frozen=True)
class ScoreToken:
    """
    A single sounding note within a measure.

    Attributes:
        token:      Accidental + letter, e.g. ``"_B"`` or ``"c"`` (no octave marks).
        beat_start: 0-based onset in beats of the measure's time signature.
    """

    token: str
    beat_start: Fraction

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token, "beatStart": float(self.beat_start)}


@dataclass(frozen=True)
class Voice:
    """A voice declared in the transcription."""

    id: str
    label: str


@dataclass
class ParsedScore:
    """
    Structured view of an ABC transcription.

    Attributes:
        voices:         Voices in declaration order.
        measure_count:  Number of measures (at least 1).
        measures:       Time signature of each measure (index 0 = measure 1).
        voice_measures: Voice id -> one token list per measure; every voice is
                        padded to the same number of measures.
    """

    voices: list[Voice]
    measure_count: int
    measures: list[TimeSignature]
    voice_measures: dict[str, list[list[ScoreToken]]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "voices": [{"id": v.id, "label": v.label} for v in self.voices],
            "measureCount": self.measure_count,
            "measures": [m.to_dict() for m in self.measures],
            "voiceMeasures": {
                voice_id: [[t.to_dict() for t in measure] for measure in measures]
                for voice_id, measures in self.voice_measures.items()
            },
        }
