"""Pitch-class set reduction: normal orders, inversions and prime forms."""

from collections.abc import Iterable
from typing import Final

import numpy as np

from pitchanalyzer.pitch_class import PITCH_CLASS_COUNT

HEX_DIGITS: Final[str] = "0123456789AB"

#: Interval classes counted by an interval vector (ic1 .. ic6)
INTERVAL_CLASSES: Final[range] = range(1, 7)


def unique_sorted(pitch_classes: Iterable[int]) -> list[int]:
    """Reduce a multiset of pitch classes to its sorted set (multiplicity ignored)."""
    return sorted({pc % PITCH_CLASS_COUNT for pc in pitch_classes})


def next_rotation(order: list[int]) -> list[int]:
    """
    Rotate a normalised order one step to the left.

    The new first element becomes 0, interior elements keep their ascending
    offsets, and the old first element wraps round to the end one octave up.
    """
    first, *rest = order
    new_start = rest[0]
    return [x - new_start for x in rest] + [first - new_start + PITCH_CLASS_COUNT]


def normal_orders(sorted_set: list[int]) -> list[list[int]]:
    """
    Return all ``n`` rotations of a sorted pitch-class set, each starting at 0.

    The first rotation is normalised too; leaving it at its absolute values
    inflates its span and yields a key that is not in the catalog.
    """
    if not sorted_set:
        return []
    start = sorted_set[0]
    orders = [[x - start for x in sorted_set]]
    for _ in range(1, len(sorted_set)):
        orders.append(next_rotation(orders[-1]))
    return orders


def invert(order: list[int]) -> list[int]:
    """Invert a normalised order: reverse it and measure down from its largest element."""
    biggest = order[-1]
    return [biggest - x for x in reversed(order)]


def _candidates(pitch_classes: Iterable[int]) -> list[tuple[int, ...]]:
    """Most compact rotations plus their inversions."""
    orders = normal_orders(unique_sorted(pitch_classes))
    if not orders:
        return []
    min_span = min(order[-1] for order in orders)
    compact = [order for order in orders if order[-1] == min_span]
    return [tuple(order) for order in compact] + [tuple(invert(order)) for order in compact]


def prime_form(pitch_classes: Iterable[int]) -> tuple[int, ...]:
    """
    Compute the prime form of a pitch-class multiset (packed to the left).

    Among the most compact rotations and their inversions the lexicographically
    smallest sequence wins. The empty set yields ``()``.
    """
    candidates = _candidates(pitch_classes)
    if not candidates:
        return ()
    return min(candidates)


def rahn_prime_form(pitch_classes: Iterable[int]) -> tuple[int, ...]:
    """Prime form under Rahn's ordering: candidates compared from the right-hand end."""
    candidates = _candidates(pitch_classes)
    if not candidates:
        return ()
    return min(candidates, key=lambda candidate: candidate[::-1])


def encode_key(form: Iterable[int]) -> str:
    """Encode a prime form as concatenated uppercase hex digits (``(0, 3, 7)`` -> ``"037"``)."""
    return "".join(HEX_DIGITS[x] for x in form)


def decode_key(key: str) -> tuple[int, ...] | None:
    """Decode a hex-digit key back into pitch classes, or ``None`` if it is not one."""
    if not isinstance(key, str):
        return None
    digits = key.upper()
    if any(ch not in HEX_DIGITS for ch in digits):
        return None
    return tuple(HEX_DIGITS.index(ch) for ch in digits)


def prime_form_key(pitch_classes: Iterable[int]) -> str:
    """Catalog lookup key of a pitch-class multiset (``""`` for the empty set)."""
    return encode_key(prime_form(pitch_classes))


def transpose(pitch_classes: Iterable[int], interval: int) -> list[int]:
    """Transpose pitch classes by ``interval`` semitones (mod 12)."""
    return [(pc + interval) % PITCH_CLASS_COUNT for pc in pitch_classes]


def complement(pitch_classes: Iterable[int]) -> list[int]:
    """Pitch classes of the aggregate that are not in ``pitch_classes``."""
    present = set(unique_sorted(pitch_classes))
    return [pc for pc in range(PITCH_CLASS_COUNT) if pc not in present]


def membership_matrix(sets: Iterable[Iterable[int]]) -> np.ndarray:
    """Stack pitch-class sets into a ``(n_sets, 12)`` 0/1 membership matrix."""
    rows = [np.isin(np.arange(PITCH_CLASS_COUNT), list(pcs)) for pcs in sets]
    if not rows:
        return np.zeros((0, PITCH_CLASS_COUNT), dtype=np.int64)
    return np.vstack(rows).astype(np.int64)


def interval_class_counts(matrix: np.ndarray) -> np.ndarray:
    """
    Interval vectors of every row of a ``(n_sets, 12)`` membership matrix.

    For interval class ``k`` each row is correlated with itself rotated by
    ``k`` semitones; the tritone pairs are met twice and are halved.

    Returns:
        Integer array of shape ``(n_sets, 6)``.
    """
    counts = np.stack(
        [(matrix * np.roll(matrix, -k, axis=1)).sum(axis=1) for k in INTERVAL_CLASSES],
        axis=1,
    )
    counts[:, -1] //= 2
    return counts


def interval_vector(pitch_classes: Iterable[int]) -> tuple[int, ...]:
    """Interval vector (counts of interval classes 1-6) of a pitch-class set."""
    counts = interval_class_counts(membership_matrix([unique_sorted(pitch_classes)]))
    return tuple(int(x) for x in counts[0])
