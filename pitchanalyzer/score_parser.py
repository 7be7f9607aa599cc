"""AbcScoreParser: turns an ABC transcription into voices, measures and timed note tokens."""

from __future__ import annotations

import re
from fractions import Fraction
from typing import Final

from pitchanalyzer.score_models import ParsedScore, ScoreToken, TimeSignature, Voice

# ── Key signatures ──────────────────────────────────────────────────────────

#: Letters receiving sharps / flats, in circle-of-fifths order
SHARP_ORDER: Final[list[str]] = ["F", "C", "G", "D", "A", "E", "B"]
FLAT_ORDER: Final[list[str]] = ["B", "E", "A", "D", "G", "C", "F"]

#: Sharps in the major key on each natural tonic (negative = flats)
MAJOR_SHARPS: Final[dict[str, int]] = {"C": 0, "D": 2, "E": 4, "F": -1, "G": 1, "A": 3, "B": 5}

#: Mode prefix -> shift in sharps relative to major
MODE_SHIFTS: Final[list[tuple[tuple[str, ...], int]]] = [
    (("min", "aeo"), -3),
    (("dor",), -2),
    (("phr",), -4),
    (("lyd",), 1),
    (("mix",), -1),
    (("loc",), -5),
]

#: Default q of a tuplet (p notes in the time of q), by p
DEFAULT_TUPLET_Q: Final[dict[int, int]] = {2: 3, 3: 2, 4: 3, 6: 2, 8: 3}

DEFAULT_UNIT_LENGTH: Final[tuple[int, int]] = (1, 8)
DEFAULT_METER: Final[TimeSignature] = TimeSignature(4, 4)

# ── Grammar ─────────────────────────────────────────────────────────────────
# Digit and slash runs are bounded; anything longer is skipped as noise.

_DURATION = r"(\d{0,4}/{0,4}\d{0,4})"
_ACCIDENTAL = r"(\^{1,2}|_{1,2}|=)?"

_KEY_RE = re.compile(r"^([A-G])(b|#)?(.*)$", re.IGNORECASE)
_UNIT_RE = re.compile(r"^L:\s*(\d{1,6})/(\d{1,6})")
_METER_RE = re.compile(r"^M:\s*(\d{1,6})/(\d{1,6})")
_COMMON_TIME_RE = re.compile(r"^M:\s*(C\|?)\s*$")
_INLINE_METER_RE = re.compile(r"\[M:\s*(\d{1,6})/(\d{1,6})\]")
_FIELD_RE = re.compile(r"^[A-Za-z]:(?!\|)")
_COMMENT_RE = re.compile(r"%.*$")
_INLINE_VOICE_RE = re.compile(r"^\[V:(\S+?)\](.*)$")
_STANDALONE_VOICE_RE = re.compile(r"^V:(\S+)")
_VOICE_NAME_RE = re.compile(r'nm="([^"]+)"')
_BAR_SPLIT_RE = re.compile(r"\|[\]|:]?|:\|")

_INLINE_FIELD_RE = re.compile(r"\[[A-Z]:[^\]]*\]")
_DECORATION_RE = re.compile(r"![^!]*!|\+[^+]*\+")
_GRACE_RE = re.compile(r"\{[^}]*\}")
_ANNOTATION_RE = re.compile(r'"[^"]*"')

_TUPLET_RE = re.compile(r"(\d{1,4})(?::(\d{0,4})(?::(\d{1,4}))?)?")
_CHORD_RE = re.compile(r"\[([A-Ga-g_^=,'\d\s]+)\]" + _DURATION)
_CHORD_NOTE_RE = re.compile(_ACCIDENTAL + r"([A-Ga-g])[,']*")
_REST_RE = re.compile(r"[zZx]" + _DURATION)
_NOTE_RE = re.compile(_ACCIDENTAL + r"([A-Ga-g])[,']*" + _DURATION)


def parse_duration_suffix(suffix: str) -> tuple[int, int]:
    """
    Parse an ABC length suffix into ``(numerator, denominator)``.

    ``''`` -> (1, 1), ``'2'`` -> (2, 1), ``'/'`` -> (1, 2), ``'//'`` -> (1, 4),
    ``'3/2'`` -> (3, 2), ``'/4'`` -> (1, 4), ``'3/'`` -> (3, 2).
    Anything else is treated as a plain unit length.
    """
    if not suffix or not isinstance(suffix, str):
        return 1, 1
    if re.fullmatch(r"/+", suffix):
        return 1, 2 ** len(suffix)
    if re.fullmatch(r"\d{1,9}", suffix):
        return int(suffix), 1
    match = re.fullmatch(r"(\d{1,9})?/(\d{1,9})?", suffix)
    if match is None:
        return 1, 1
    numerator = int(match.group(1)) if match.group(1) else 1
    denominator = int(match.group(2)) if match.group(2) else 2
    if denominator == 0:
        return numerator, 1
    return numerator, denominator


def default_tuplet_q(p: int) -> int:
    """Number of notes a tuplet of ``p`` notes takes the time of, by ABC convention."""
    return DEFAULT_TUPLET_Q.get(p, 2)


def parse_key_accidentals(key: str | None) -> dict[str, str]:
    """
    Map each altered letter of a key signature to its accidental prefix.

    Args:
        key: The ``K:`` value, e.g. ``"F"``, ``"Bb"``, ``"C#m"``, ``"Gmix"``, ``"none"``.

    Returns:
        e.g. ``{"B": "_"}`` for F major; ``{}`` for C, ``none`` or unreadable keys.
    """
    if not key or not isinstance(key, str):
        return {}
    trimmed = key.strip()
    if not trimmed or trimmed.lower() == "none":
        return {}
    match = _KEY_RE.match(trimmed)
    if match is None:
        return {}

    tonic = match.group(1).upper()
    tonic_accidental = match.group(2) or ""
    words = match.group(3).strip().lower().split()
    mode = words[0] if words else ""

    sharps = MAJOR_SHARPS[tonic]
    if tonic_accidental == "#":
        sharps += 7
    elif tonic_accidental.lower() == "b":
        sharps -= 7

    if mode == "m":
        sharps -= 3
    else:
        for prefixes, shift in MODE_SHIFTS:
            if mode.startswith(prefixes):
                sharps += shift
                break

    if sharps > 0:
        return {letter: "^" for letter in SHARP_ORDER[: min(sharps, 7)]}
    if sharps < 0:
        return {letter: "_" for letter in FLAT_ORDER[: min(-sharps, 7)]}
    return {}


def _positive_ratio(match: re.Match[str] | None) -> tuple[int, int] | None:
    if match is None:
        return None
    numerator, denominator = int(match.group(1)), int(match.group(2))
    if numerator == 0 or denominator == 0:
        return None
    return numerator, denominator


class AbcScoreParser:
    """
    Parses ABC text (as produced by a MusicXML -> ABC converter) into a
    :class:`ParsedScore`.

    Algorithm overview
    ------------------
    1. **Header** – ``L:`` and ``M:`` are read until the ``K:`` line, which ends
       the header. Without a ``K:`` line every non-field line is body.

    2. **Voices** – body lines are attributed to voices declared with ``[V:id]``
       or ``V:id``; lines before any voice belong to the first voice.

    3. **Measures** – each voice's music is split on bar lines; inline
       ``[M:n/m]`` changes the meter from that measure on.

    4. **Notes** – every measure is walked left to right. Beats are counted in
       units of the measure's meter denominator, starting at 0. Explicit
       accidentals hold until the next bar line; other notes take the key
       signature.

    The parser never raises for string input: anything it does not understand
    is skipped.
    """

    def __init__(self, apply_key_signature: bool = True) -> None:
        """
        Args:
            apply_key_signature: Resolve accidentals against the key signature
                                 and earlier notes in the measure. When False,
                                 tokens carry only the accidental written on
                                 the note itself.
        """
        self.apply_key_signature = apply_key_signature

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _scan_header(
        self, lines: list[str]
    ) -> tuple[tuple[int, int], TimeSignature, str, list[str]]:
        unit = DEFAULT_UNIT_LENGTH
        meter = DEFAULT_METER
        key = "C"
        header_done = False
        body: list[str] = []

        for raw_line in lines:
            line = raw_line.strip()
            if not header_done:
                unit_value = _positive_ratio(_UNIT_RE.match(line))
                meter_value = _positive_ratio(_METER_RE.match(line))
                common_time = _COMMON_TIME_RE.match(line)
                if unit_value:
                    unit = unit_value
                elif meter_value:
                    meter = TimeSignature(*meter_value)
                elif common_time:
                    meter = TimeSignature(2, 2) if common_time.group(1) == "C|" else TimeSignature(4, 4)
                elif line.startswith("K:"):
                    key = line[2:].strip()
                    header_done = True
            else:
                stripped = _COMMENT_RE.sub("", line).strip()
                if stripped and not stripped.startswith(("w:", "W:")):
                    body.append(stripped)

        if not header_done:
            for raw_line in lines:
                stripped = _COMMENT_RE.sub("", raw_line.strip()).strip()
                if stripped and not _FIELD_RE.match(stripped):
                    body.append(stripped)

        return unit, meter, key, body

    def _collect_voices(self, body: list[str]) -> tuple[list[Voice], dict[str, list[str]]]:
        voices: list[Voice] = []
        sections: dict[str, list[str]] = {}
        current: str | None = None

        def declare(voice_id: str, label: str) -> None:
            sections.setdefault(voice_id, [])
            if all(v.id != voice_id for v in voices):
                voices.append(Voice(id=voice_id, label=label))

        for line in body:
            inline = _INLINE_VOICE_RE.match(line)
            standalone = None if inline or line.startswith("[") else _STANDALONE_VOICE_RE.match(line)

            if inline:
                current = inline.group(1)
                declare(current, f"V:{current}")
                rest = inline.group(2).strip()
                if rest:
                    sections[current].append(rest)
                continue

            if standalone:
                current = standalone.group(1)
                name = _VOICE_NAME_RE.search(line)
                declare(current, f"{name.group(1)} (V:{current})" if name else f"V:{current}")
                continue

            if _FIELD_RE.match(line):
                # A body meter line acts like an inline meter change; other fields are ignored
                meter = _METER_RE.match(line)
                if not meter:
                    continue
                line = f"[M:{meter.group(1)}/{meter.group(2)}]"

            if current is None:
                current = voices[0].id if voices else "1"
                declare(current, f"V:{current}")
            sections[current].append(line)

        if not voices:
            declare("1", "V:1")
        return voices, sections

    def _parse_voice_content(
        self,
        content: str,
        unit: tuple[int, int],
        meter: TimeSignature,
        key_accidentals: dict[str, str],
    ) -> tuple[list[list[ScoreToken]], list[TimeSignature]]:
        measures: list[list[ScoreToken]] = []
        meters: list[TimeSignature] = []

        for raw_segment in _BAR_SPLIT_RE.split(content):
            segment = raw_segment.strip()
            if not segment:
                continue
            change = _positive_ratio(_INLINE_METER_RE.search(segment))
            if change:
                meter = TimeSignature(*change)
            meters.append(meter)
            measures.append(self.parse_measure(segment, unit, meter.denominator, key_accidentals))

        return measures, meters

    def _resolve(
        self,
        prefix: str,
        letter: str,
        measure_accidentals: dict[str, str],
        key_accidentals: dict[str, str],
    ) -> str:
        if not self.apply_key_signature:
            return prefix + letter
        pitch_letter = letter.upper()
        if prefix:
            resolved = "" if prefix == "=" else prefix
            measure_accidentals[pitch_letter] = resolved
        elif pitch_letter in measure_accidentals:
            resolved = measure_accidentals[pitch_letter]
        else:
            resolved = key_accidentals.get(pitch_letter, "")
        return resolved + letter

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse_measure(
        self,
        measure: str,
        unit: tuple[int, int] = DEFAULT_UNIT_LENGTH,
        meter_denominator: int = DEFAULT_METER.denominator,
        key_accidentals: dict[str, str] | None = None,
    ) -> list[ScoreToken]:
        """
        Tokenize the music of one measure.

        Args:
            measure:           Text between two bar lines.
            unit:              Default note length ``(num, den)`` from ``L:``.
            meter_denominator: Beat unit of the measure's meter.
            key_accidentals:   Output of :func:`parse_key_accidentals`.

        Returns:
            ScoreTokens in order; chord notes share one ``beat_start``.
        """
        key_accidentals = key_accidentals or {}
        beat_factor = Fraction(unit[0] * meter_denominator, unit[1])
        tokens: list[ScoreToken] = []
        measure_accidentals: dict[str, str] = {}
        beat = Fraction(0)
        tuplet_ratio = Fraction(1)
        tuplet_left = 0

        text = _INLINE_FIELD_RE.sub(" ", measure)
        text = _DECORATION_RE.sub("", text)
        text = _GRACE_RE.sub("", text)
        text = _ANNOTATION_RE.sub("", text)

        def advance(suffix: str) -> None:
            nonlocal beat, tuplet_ratio, tuplet_left
            numerator, denominator = parse_duration_suffix(suffix)
            ratio = tuplet_ratio if tuplet_left > 0 else Fraction(1)
            beat += Fraction(numerator, denominator) * beat_factor * ratio
            if tuplet_left > 0:
                tuplet_left -= 1
                if tuplet_left == 0:
                    tuplet_ratio = Fraction(1)

        i = 0
        while i < len(text):
            ch = text[i]

            if ch.isspace() or ch in "|:":
                i += 1

            elif ch == "(":
                i += 1
                tuplet = _TUPLET_RE.match(text, i)
                if tuplet:
                    p = int(tuplet.group(1))
                    q = int(tuplet.group(2)) if tuplet.group(2) else default_tuplet_q(p)
                    r = int(tuplet.group(3)) if tuplet.group(3) else p
                    if p > 0:
                        tuplet_ratio = Fraction(q, p)
                        tuplet_left = r
                    i = tuplet.end()

            elif ch == "[":
                chord = _CHORD_RE.match(text, i)
                if chord is None:
                    i += 1
                    continue
                for note in _CHORD_NOTE_RE.finditer(chord.group(1)):
                    token = self._resolve(note.group(1) or "", note.group(2), measure_accidentals, key_accidentals)
                    tokens.append(ScoreToken(token=token, beat_start=beat))
                advance(chord.group(2))
                i = chord.end()

            elif ch in "zZx":
                rest = _REST_RE.match(text, i)
                advance(rest.group(1) if rest else "")
                i = rest.end() if rest else i + 1

            else:
                note = _NOTE_RE.match(text, i)
                if note is None:
                    i += 1
                    continue
                token = self._resolve(note.group(1) or "", note.group(2), measure_accidentals, key_accidentals)
                tokens.append(ScoreToken(token=token, beat_start=beat))
                advance(note.group(3))
                i = note.end()

        return tokens

    def parse(self, abc_text: str) -> ParsedScore:
        """
        Parse a full ABC transcription.

        Returns:
            ParsedScore with every voice padded to the same measure count. When
            no measures are found a single measure in the header meter is
            reported.
        """
        if not isinstance(abc_text, str):
            abc_text = ""
        unit, meter, key, body = self._scan_header(abc_text.split("\n"))
        key_accidentals = parse_key_accidentals(key)
        voices, sections = self._collect_voices(body)

        voice_measures: dict[str, list[list[ScoreToken]]] = {}
        voice_meters: dict[str, list[TimeSignature]] = {}
        for voice in voices:
            content = " ".join(sections.get(voice.id, []))
            measures, meters = self._parse_voice_content(content, unit, meter, key_accidentals)
            voice_measures[voice.id] = measures
            voice_meters[voice.id] = meters

        # Reference voice: the first one with the most measures
        measure_count = 0
        reference_id = voices[0].id
        for voice in voices:
            count = len(voice_measures[voice.id])
            if count > measure_count:
                measure_count = count
                reference_id = voice.id

        for voice in voices:
            padding = measure_count - len(voice_measures[voice.id])
            voice_measures[voice.id].extend([] for _ in range(padding))

        reference_meters = voice_meters[reference_id]
        meters = [
            reference_meters[index] if index < len(reference_meters) else meter
            for index in range(measure_count)
        ]

        return ParsedScore(
            voices=voices,
            measure_count=measure_count or 1,
            measures=meters or [meter],
            voice_measures=voice_measures,
        )


def parse_abc_score(abc_text: str, apply_key_signature: bool = True) -> ParsedScore:
    """Parse an ABC transcription with a one-off :class:`AbcScoreParser`."""
    return AbcScoreParser(apply_key_signature=apply_key_signature).parse(abc_text)


def parse_measure_str(
    measure: str,
    unit: tuple[int, int] = DEFAULT_UNIT_LENGTH,
    meter_denominator: int = DEFAULT_METER.denominator,
    key_accidentals: dict[str, str] | None = None,
    apply_key_signature: bool = True,
) -> list[ScoreToken]:
    """Tokenize a single measure; see :meth:`AbcScoreParser.parse_measure`."""
    parser = AbcScoreParser(apply_key_signature=apply_key_signature)
    return parser.parse_measure(measure, unit, meter_denominator, key_accidentals)
