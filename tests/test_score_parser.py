"""Unit tests for the ABC score parser (header, voices, measures and beat accounting)."""

import json
import random
import string
from fractions import Fraction

import pytest

from pitchanalyzer.score_models import ParsedScore, TimeSignature, Voice
from pitchanalyzer.score_parser import (
    AbcScoreParser,
    default_tuplet_q,
    parse_abc_score,
    parse_duration_suffix,
    parse_key_accidentals,
    parse_measure_str,
)

_FUZZ_ALPHABET = "ABCDEFGabcdefgzZx^_=,'/0123456789|[]():!+{}\"%-<>. \nKLMVw"
_PRINTABLE = string.printable


def _tokens(score: ParsedScore, voice_id: str, measure: int) -> list[tuple[str, Fraction]]:
    return [(t.token, t.beat_start) for t in score.voice_measures[voice_id][measure]]


def _two_voice_score() -> str:
    return "\n".join(
        [
            "X:1",
            "T:Duet",
            "L:1/4",
            "M:3/4",
            "K:C",
            'V:1 nm="Flute"',
            "CDE|FGA|",
            'V:2 nm="Cello"',
            "C,D,E,|",
        ]
    )


@pytest.mark.parametrize(
    ("suffix", "expected"),
    [
        ("", (1, 1)),
        ("2", (2, 1)),
        ("/", (1, 2)),
        ("//", (1, 4)),
        ("///", (1, 8)),
        ("3/2", (3, 2)),
        ("/4", (1, 4)),
        ("3/", (3, 2)),
        ("1/0", (1, 1)),
        ("2//3", (1, 1)),
    ],
)
def test_parse_duration_suffix(suffix: str, expected: tuple[int, int]) -> None:
    assert parse_duration_suffix(suffix) == expected


def test_default_tuplet_q() -> None:
    assert [default_tuplet_q(p) for p in (2, 3, 4, 5, 6, 7, 8, 9)] == [3, 2, 3, 2, 2, 2, 3, 2]


@pytest.mark.parametrize(
    ("key", "expected"),
    [
        ("C", {}),
        ("G", {"F": "^"}),
        ("D", {"F": "^", "C": "^"}),
        ("F", {"B": "_"}),
        ("Bb", {"B": "_", "E": "_"}),
        ("Eb", {"B": "_", "E": "_", "A": "_"}),
        ("Am", {}),
        ("Em", {"F": "^"}),
        ("C#m", {"F": "^", "C": "^", "G": "^", "D": "^"}),
        ("Gmix", {}),
        ("Ddor", {}),
        ("EPhr", {}),
        ("Flyd", {}),
        ("Am clef=treble", {}),
        ("C#", {letter: "^" for letter in "FCGDAEB"}),
        ("Cb", {letter: "_" for letter in "BEADGCF"}),
        ("none", {}),
        ("", {}),
        (None, {}),
        ("H", {}),
    ],
)
def test_parse_key_accidentals(key: str | None, expected: dict[str, str]) -> None:
    assert parse_key_accidentals(key) == expected


def test_quarter_notes_in_common_time_start_on_each_beat() -> None:
    score = parse_abc_score("X:1\nL:1/4\nM:4/4\nK:C\nCDEF|")
    assert score.measure_count == 1
    assert _tokens(score, "1", 0) == [("C", 0), ("D", 1), ("E", 2), ("F", 3)]


def test_default_unit_length_is_an_eighth() -> None:
    score = parse_abc_score("M:4/4\nK:C\nCDEF|")
    beats = [t.beat_start for t in score.voice_measures["1"][0]]
    assert beats == [0, Fraction(1, 2), 1, Fraction(3, 2)]


def test_durations_advance_the_beat() -> None:
    tokens = parse_measure_str("C2 D/ E/ F", unit=(1, 4), meter_denominator=4)
    assert [(t.token, t.beat_start) for t in tokens] == [
        ("C", 0),
        ("D", 2),
        ("E", Fraction(5, 2)),
        ("F", 3),
    ]


def test_eighth_note_meter_counts_eighths() -> None:
    tokens = parse_measure_str("CDE", unit=(1, 4), meter_denominator=8)
    assert [t.beat_start for t in tokens] == [0, 2, 4]


def test_triplet_shares_two_beats_between_three_notes() -> None:
    score = parse_abc_score("L:1/8\nM:4/4\nK:C\n(3CDE F|")
    assert [t.beat_start for t in score.voice_measures["1"][0]] == [
        0,
        Fraction(1, 3),
        Fraction(2, 3),
        1,
    ]


def test_tuplet_with_explicit_q_and_r() -> None:
    tokens = parse_measure_str("(3:2:2CD E", unit=(1, 4), meter_denominator=4)
    assert [t.beat_start for t in tokens] == [0, Fraction(2, 3), Fraction(4, 3)]


def test_chord_notes_share_onset() -> None:
    score = parse_abc_score("L:1/4\nK:C\n[CEG]2 A|")
    assert _tokens(score, "1", 0) == [("C", 0), ("E", 0), ("G", 0), ("A", 2)]


def test_rests_advance_without_tokens() -> None:
    tokens = parse_measure_str("z C x D Z", unit=(1, 4), meter_denominator=4)
    assert [(t.token, t.beat_start) for t in tokens] == [("C", 1), ("D", 3)]


def test_decorations_graces_and_annotations_are_ignored() -> None:
    tokens = parse_measure_str('"Am"!trill!{g}A +fermata+B', unit=(1, 4), meter_denominator=4)
    assert [(t.token, t.beat_start) for t in tokens] == [("A", 0), ("B", 1)]


def test_octave_marks_are_dropped_from_tokens() -> None:
    tokens = parse_measure_str("C,, c'' ^f'", unit=(1, 4), meter_denominator=4)
    assert [t.token for t in tokens] == ["C", "c", "^f"]


def test_key_signature_applies_to_bare_notes() -> None:
    score = parse_abc_score("L:1/4\nM:4/4\nK:G\nFGAB|")
    assert [t.token for t in score.voice_measures["1"][0]] == ["^F", "G", "A", "B"]


def test_accidentals_carry_to_the_bar_line() -> None:
    score = parse_abc_score("L:1/4\nM:4/4\nK:C\n^FGFA|F")
    assert [t.token for t in score.voice_measures["1"][0]] == ["^F", "G", "^F", "A"]
    assert [t.token for t in score.voice_measures["1"][1]] == ["F"]


def test_natural_cancels_key_signature_within_measure() -> None:
    score = parse_abc_score("L:1/4\nK:F\nB=BB|B")
    assert [t.token for t in score.voice_measures["1"][0]] == ["_B", "B", "B"]
    assert [t.token for t in score.voice_measures["1"][1]] == ["_B"]


def test_chord_notes_follow_key_signature() -> None:
    score = parse_abc_score("L:1/4\nK:D\n[DFA]|")
    assert [t.token for t in score.voice_measures["1"][0]] == ["D", "^F", "A"]


def test_naive_mode_keeps_written_accidentals_only() -> None:
    score = parse_abc_score("L:1/4\nK:G\n^FGFA=F|", apply_key_signature=False)
    assert [t.token for t in score.voice_measures["1"][0]] == ["^F", "G", "F", "A", "=F"]
    assert AbcScoreParser(apply_key_signature=False).apply_key_signature is False


def test_named_voices_and_padding() -> None:
    score = parse_abc_score(_two_voice_score())
    assert score.voices == [Voice("1", "Flute (V:1)"), Voice("2", "Cello (V:2)")]
    assert score.measure_count == 2
    assert score.measures == [TimeSignature(3, 4), TimeSignature(3, 4)]
    assert [t.token for t in score.voice_measures["2"][0]] == ["C", "D", "E"]
    assert score.voice_measures["2"][1] == []


def test_inline_voices() -> None:
    score = parse_abc_score("L:1/4\nK:C\n[V:S] CDEF|GABc|\n[V:B] C,2E,2|")
    assert [v.label for v in score.voices] == ["V:S", "V:B"]
    assert score.measure_count == 2
    assert [t.beat_start for t in score.voice_measures["B"][0]] == [0, 2]


def test_music_before_any_voice_belongs_to_first_voice() -> None:
    score = parse_abc_score("L:1/4\nK:C\nCD|\nV:2\nEF|")
    assert [v.id for v in score.voices] == ["1", "2"]
    assert [t.token for t in score.voice_measures["1"][0]] == ["C", "D"]


def test_inline_meter_change() -> None:
    score = parse_abc_score("L:1/4\nM:4/4\nK:C\nCDEF|[M:3/4] GAB|")
    assert score.measures == [TimeSignature(4, 4), TimeSignature(3, 4)]


def test_body_meter_line_changes_following_measures() -> None:
    score = parse_abc_score("L:1/4\nM:4/4\nK:C\nCDEF|\nM:3/4\nGAB|")
    assert score.measures == [TimeSignature(4, 4), TimeSignature(3, 4)]
    assert [t.token for t in score.voice_measures["1"][1]] == ["G", "A", "B"]


def test_common_and_cut_time() -> None:
    assert parse_abc_score("M:C\nK:C\nC|").measures == [TimeSignature(4, 4)]
    assert parse_abc_score("M:C|\nK:C\nC|").measures == [TimeSignature(2, 2)]


def test_repeat_and_final_bars_split_measures() -> None:
    score = parse_abc_score("L:1/4\nK:C\n|: CD :| EF || G |]")
    assert score.measure_count == 3


def test_comments_and_lyrics_are_skipped() -> None:
    score = parse_abc_score("L:1/4\nK:C\nCD % EF\nw: la la\nG|")
    assert [t.token for t in score.voice_measures["1"][0]] == ["C", "D", "G"]


def test_missing_key_line_treats_music_lines_as_body() -> None:
    score = parse_abc_score("L:1/4\nM:3/4\nCDE|FGA")
    assert score.measure_count == 2
    assert score.measures[0] == TimeSignature(3, 4)


def test_empty_input_has_one_measure() -> None:
    for text in ("", "X:1\nK:C", None):
        score = parse_abc_score(text)  # type: ignore[arg-type]
        assert score.measure_count == 1
        assert score.measures == [TimeSignature(4, 4)]
        assert [v.id for v in score.voices] == ["1"]


def test_zero_unit_and_meter_are_ignored() -> None:
    score = parse_abc_score("L:0/4\nM:4/0\nK:C\nCD|")
    assert score.measures == [TimeSignature(4, 4)]
    assert [t.beat_start for t in score.voice_measures["1"][0]] == [0, Fraction(1, 2)]


def test_to_dict_export_shape() -> None:
    data = parse_abc_score("L:1/4\nM:2/4\nK:C\nC/D/E|").to_dict()
    assert data["voices"] == [{"id": "1", "label": "V:1"}]
    assert data["measureCount"] == 1
    assert data["measures"] == [{"mNum": 2, "mDen": 4}]
    assert data["voiceMeasures"]["1"][0] == [
        {"token": "C", "beatStart": 0.0},
        {"token": "D", "beatStart": 0.5},
        {"token": "E", "beatStart": 1.0},
    ]


@pytest.mark.parametrize("seed", range(20))
def test_random_input_never_raises(seed: int) -> None:
    rng = random.Random(seed)
    alphabet = _FUZZ_ALPHABET if seed % 2 else _PRINTABLE
    text = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 10_000)))
    score = parse_abc_score(text)
    assert score.measure_count >= 1
    assert len(score.measures) == score.measure_count
    for measures in score.voice_measures.values():
        for measure in measures:
            assert all(t.beat_start >= 0 for t in measure)
    json.dumps(score.to_dict())
