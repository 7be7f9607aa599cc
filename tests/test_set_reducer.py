"""Unit tests for normal orders, prime forms, keys and interval vectors."""

import numpy as np
import pytest

from pitchanalyzer.set_reducer import (
    complement,
    decode_key,
    encode_key,
    interval_class_counts,
    interval_vector,
    invert,
    membership_matrix,
    normal_orders,
    prime_form,
    prime_form_key,
    rahn_prime_form,
    transpose,
    unique_sorted,
)


def test_unique_sorted_reduces_multiset() -> None:
    assert unique_sorted([7, 0, 4, 12, 19]) == [0, 4, 7]


def test_normal_orders_rotate_from_zero() -> None:
    assert normal_orders([0, 4, 7]) == [[0, 4, 7], [0, 3, 8], [0, 5, 9]]


def test_normal_orders_normalise_first_rotation() -> None:
    assert normal_orders([2, 5, 9])[0] == [0, 3, 7]


def test_normal_orders_empty() -> None:
    assert normal_orders([]) == []


def test_invert_measures_down_from_top() -> None:
    assert invert([0, 4, 7]) == [0, 3, 7]


@pytest.mark.parametrize(
    ("pitch_classes", "expected"),
    [
        ([0, 4, 7], (0, 3, 7)),
        ([9, 0, 4], (0, 3, 7)),
        ([2, 5, 9], (0, 3, 7)),
        ([0, 1], (0, 1)),
        ([0, 11], (0, 1)),
        ([0, 6], (0, 6)),
        ([5], (0,)),
        ([0, 2, 4, 5, 7, 9, 11], (0, 1, 3, 5, 6, 8, 10)),
        (list(range(12)), tuple(range(12))),
    ],
)
def test_prime_form(pitch_classes: list[int], expected: tuple[int, ...]) -> None:
    assert prime_form(pitch_classes) == expected


def test_prime_form_ignores_duplicates_and_octaves() -> None:
    assert prime_form([12, 16, 19, 0, 4]) == (0, 3, 7)


def test_prime_form_of_empty_set() -> None:
    assert prime_form([]) == ()
    assert prime_form_key([]) == ""


def test_prime_form_unchanged_by_transposition_and_inversion() -> None:
    pcs = [0, 1, 4, 6]
    expected = prime_form(pcs)
    for interval in range(12):
        assert prime_form(transpose(pcs, interval)) == expected
        assert prime_form([(interval - pc) % 12 for pc in pcs]) == expected


def test_rahn_prime_form_differs_for_5_20() -> None:
    assert prime_form([0, 1, 3, 7, 8]) == (0, 1, 3, 7, 8)
    assert rahn_prime_form([0, 1, 3, 7, 8]) == (0, 1, 5, 6, 8)


def test_rahn_prime_form_agrees_for_triads() -> None:
    assert rahn_prime_form([0, 4, 7]) == prime_form([0, 4, 7]) == (0, 3, 7)
    assert rahn_prime_form([]) == ()


def test_encode_and_decode_key() -> None:
    assert encode_key((0, 10, 11)) == "0AB"
    assert decode_key("0ab") == (0, 10, 11)
    assert decode_key("") == ()


def test_decode_key_rejects_non_hex_digits() -> None:
    assert decode_key("0C") is None
    assert decode_key("03x") is None
    assert decode_key(None) is None  # type: ignore[arg-type]


def test_transpose_and_complement() -> None:
    assert transpose([0, 4, 7], 5) == [5, 9, 0]
    assert complement([0, 2, 4, 5, 7, 9, 11]) == [1, 3, 6, 8, 10]
    assert complement(range(12)) == []


def test_membership_matrix_shape() -> None:
    matrix = membership_matrix([[0, 4, 7], [1]])
    assert matrix.shape == (2, 12)
    assert matrix[0].tolist() == [1, 0, 0, 0, 1, 0, 0, 1, 0, 0, 0, 0]
    assert membership_matrix([]).shape == (0, 12)


def test_interval_class_counts_halves_tritones() -> None:
    counts = interval_class_counts(membership_matrix([[0, 6], [0, 1]]))
    assert np.array_equal(counts, np.array([[0, 0, 0, 0, 0, 1], [1, 0, 0, 0, 0, 0]]))


def test_interval_vector_major_triad() -> None:
    assert interval_vector([0, 4, 7]) == (0, 0, 1, 1, 1, 0)


def test_interval_vector_all_interval_tetrachords_match() -> None:
    assert interval_vector([0, 1, 4, 6]) == interval_vector([0, 1, 3, 7]) == (1, 1, 1, 1, 1, 1)


def test_interval_vector_aggregate() -> None:
    assert interval_vector(range(12)) == (12, 12, 12, 12, 12, 6)
