"""Selection of note tokens from a parsed score by voice and measure/beat range."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from pitchanalyzer.abc_tokens import deduplicate_notes
from pitchanalyzer.score_models import ParsedScore


@dataclass(frozen=True)
class ScoreRange:
    """
    An inclusive range of measures and beats, both 1-based as shown to users.

    ``from_beat`` applies to the first measure only and ``to_beat`` to the last.
    Notes starting anywhere within ``to_beat`` are included, not only those on
    its downbeat, so :meth:`whole` keeps off-beat notes of the final beat.
    """

    from_measure: int = 1
    from_beat: int = 1
    to_measure: int = 1
    to_beat: int = 4

    @classmethod
    def whole(cls, score: ParsedScore) -> ScoreRange:
        """The range covering every beat of ``score``."""
        last = score.measure_count
        return cls(
            from_measure=1,
            from_beat=1,
            to_measure=last,
            to_beat=_beats_in(score, last),
        )

    def clamped(self, score: ParsedScore) -> ScoreRange:
        """
        Fit the range to ``score``.

        Measures are kept within the score and ``from`` never passes ``to``;
        beats are kept between 1 and the numerator of their measure's meter.
        """
        to_measure = min(max(self.to_measure, 1), score.measure_count)
        from_measure = min(max(self.from_measure, 1), to_measure)
        from_beat = min(max(self.from_beat, 1), _beats_in(score, from_measure))
        to_beat = min(max(self.to_beat, 1), _beats_in(score, to_measure))
        return ScoreRange(from_measure, from_beat, to_measure, to_beat)


def _beats_in(score: ParsedScore, measure: int) -> int:
    """Numerator of the meter of a 1-based measure (4 when unknown)."""
    if 1 <= measure <= len(score.measures):
        return score.measures[measure - 1].numerator
    return 4


def select_tokens(
    score: ParsedScore,
    voice_ids: Iterable[str] | None = None,
    score_range: ScoreRange | None = None,
) -> list[str]:
    """
    Collect the note tokens of the selected voices within a range.

    Args:
        score:       Output of the score parser.
        voice_ids:   Voices to include; ``None`` selects all voices.
        score_range: Range to include; ``None`` selects the whole score.

    Returns:
        Tokens in voice order then score order, keeping only the last token of
        each pitch class.
    """
    selected = set(voice_ids) if voice_ids is not None else {v.id for v in score.voices}
    span = score_range if score_range is not None else ScoreRange.whole(score)

    first = span.from_measure - 1
    last = span.to_measure - 1
    tokens: list[str] = []

    for voice in score.voices:
        if voice.id not in selected:
            continue
        measures = score.voice_measures.get(voice.id, [])
        for index in range(max(first, 0), min(last, len(measures) - 1) + 1):
            for score_token in measures[index]:
                if index == first and score_token.beat_start < span.from_beat - 1:
                    continue
                if index == last and score_token.beat_start >= span.to_beat:
                    continue
                tokens.append(score_token.token)

    return deduplicate_notes(tokens)
