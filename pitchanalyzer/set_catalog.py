"""SetClassCatalog: the immutable table of pitch-class set classes keyed by prime form."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import numpy as np

from pitchanalyzer.forte_names import FORTE_REPRESENTATIVES
from pitchanalyzer.pitch_class import PITCH_CLASS_COUNT
from pitchanalyzer.set_reducer import (
    complement,
    decode_key,
    encode_key,
    interval_class_counts,
    prime_form,
    prime_form_key,
    rahn_prime_form,
)

_FORTE_NAME_RE = re.compile(r"^(\d+)-(Z?)(\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class SetClassEntry:
    """
    One set class of the catalog.

    Attributes:
        key:              Lookup key, the left-packed prime form in hex digits.
        rahn_prime_form:  Prime form under Rahn's ordering (hex digits).
        forte_prime_form: Prime form under Forte's ordering (hex digits).
        interval_vector:  Six characters, one hex digit per interval-class count.
        forte_name:       e.g. ``"4-Z15"``; ``None`` for the empty set.
        cardinality:      Number of pitch classes (0-12).
        z_mate:           Key of the Z-related class, if any.
        super_sets:       Keys of the classes one element larger that contain it.
        sub_sets:         Keys of the classes one element smaller it contains.
    """

    key: str
    rahn_prime_form: str
    forte_prime_form: str
    interval_vector: str
    forte_name: str | None
    cardinality: int
    z_mate: str | None
    super_sets: tuple[str, ...]
    sub_sets: tuple[str, ...]

    @property
    def pitch_classes(self) -> tuple[int, ...]:
        """The prime form as pitch-class integers."""
        return decode_key(self.forte_prime_form) or ()

    def to_dict(self) -> dict[str, Any]:
        """Export shape used by the analysis log and JSON output."""
        return {
            "rahnPrimeForm": self.rahn_prime_form,
            "fortePrimeForm": self.forte_prime_form,
            "intervalVector": self.interval_vector,
            "forteName": self.forte_name,
            "cardinality": self.cardinality,
            "zMate": self.z_mate,
            "superSets": list(self.super_sets),
            "subSets": list(self.sub_sets),
        }


class SetClassCatalog:
    """
    Read-only mapping from prime-form key to :class:`SetClassEntry`.

    Built once (see :func:`build_catalog`) and passed by reference to every
    analysis call. Tests may construct a reduced catalog from a handful of
    entries; lookups of absent keys simply return ``None``.
    """

    def __init__(self, entries: Iterable[SetClassEntry]) -> None:
        self._entries = MappingProxyType({entry.key: entry for entry in entries})

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SetClassEntry]:
        return iter(self._entries.values())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def lookup(self, key: object) -> SetClassEntry | None:
        """Return the entry for ``key``, or ``None`` when the catalog has no such class."""
        if not isinstance(key, str):
            return None
        return self._entries.get(key.upper())

    def lookup_pitch_classes(self, pitch_classes: Iterable[int]) -> SetClassEntry | None:
        """Reduce a pitch-class multiset to its prime form and look it up."""
        return self.lookup(prime_form_key(pitch_classes))

    def by_forte_name(self, name: str) -> SetClassEntry | None:
        """Find an entry by Forte name; the ``Z`` marker is optional (``"4-15"`` finds ``4-Z15``)."""
        wanted = _normalize_forte_name(name)
        if wanted is None:
            return None
        for entry in self._entries.values():
            if entry.forte_name and _normalize_forte_name(entry.forte_name) == wanted:
                return entry
        return None

    @property
    def empty(self) -> SetClassEntry | None:
        """The cardinality-0 entry."""
        return self._entries.get("")


def _normalize_forte_name(name: str) -> tuple[int, int] | None:
    match = _FORTE_NAME_RE.match(name.strip()) if isinstance(name, str) else None
    if match is None:
        return None
    return int(match.group(1)), int(match.group(3))


# ------------------------------------------------------------------
# Catalog construction
# ------------------------------------------------------------------


def _all_subsets() -> np.ndarray:
    """Membership matrix of all 4096 subsets of the aggregate, shape (4096, 12)."""
    masks = np.arange(1 << PITCH_CLASS_COUNT)
    return (masks[:, None] >> np.arange(PITCH_CLASS_COUNT)) & 1


def _encode_vector(counts: Iterable[int]) -> str:
    # Counts run up to 12 (the aggregate), one hex digit each
    return "".join(format(int(c), "X") for c in counts)


def _forte_names() -> dict[str, str]:
    """Map every catalog key with a Forte name to that name."""
    names: dict[str, str] = {
        "0": "1-1",
        encode_key(range(11)): "11-1",
        encode_key(range(12)): "12-1",
    }
    for ic in range(1, 7):
        dyad = (0, ic)
        names[encode_key(dyad)] = f"2-{ic}"
        names[prime_form_key(complement(dyad))] = f"10-{ic}"

    for name, representative in FORTE_REPRESENTATIVES.items():
        pcs = decode_key(representative) or ()
        names[prime_form_key(pcs)] = name
        cardinality, number = name.split("-")
        if cardinality != "6":
            # Complements share the Forte number (and Z status) of the smaller set
            names[prime_form_key(complement(pcs))] = f"{PITCH_CLASS_COUNT - int(cardinality)}-{number}"
    return names


def _sort_key(cardinality: int, forte_name: str | None, key: str) -> tuple[int, int, str]:
    parsed = _normalize_forte_name(forte_name) if forte_name else None
    return cardinality, parsed[1] if parsed else 0, key


def build_catalog() -> SetClassCatalog:
    """
    Build the closed catalog of all 224 set classes.

    Every subset of the aggregate is reduced to its prime form, so any key the
    reducer can produce is present. Interval vectors are computed for all
    subsets at once; Z-mates are the classes of equal size sharing a vector.
    """
    matrix = _all_subsets()
    vectors = interval_class_counts(matrix)

    forms: dict[str, tuple[int, ...]] = {}
    interval_vectors: dict[str, str] = {}
    for row, counts in zip(matrix, vectors):
        pcs = np.flatnonzero(row).tolist()
        form = prime_form(pcs)
        key = encode_key(form)
        if key not in forms:
            forms[key] = form
            interval_vectors[key] = _encode_vector(counts)

    names = _forte_names()

    by_vector: dict[tuple[int, str], list[str]] = {}
    for key, form in forms.items():
        by_vector.setdefault((len(form), interval_vectors[key]), []).append(key)

    order = sorted(forms, key=lambda k: _sort_key(len(forms[k]), names.get(k), k))
    rank = {key: index for index, key in enumerate(order)}

    entries: list[SetClassEntry] = []
    for key in order:
        form = forms[key]
        mates = [k for k in by_vector[(len(form), interval_vectors[key])] if k != key]
        subsets = {prime_form_key(form[:i] + form[i + 1:]) for i in range(len(form))}
        supersets = {
            prime_form_key((*form, pc)) for pc in range(PITCH_CLASS_COUNT) if pc not in form
        }
        entries.append(
            SetClassEntry(
                key=key,
                rahn_prime_form=encode_key(rahn_prime_form(form)),
                forte_prime_form=key,
                interval_vector=interval_vectors[key],
                forte_name=names.get(key),
                cardinality=len(form),
                z_mate=mates[0] if mates else None,
                super_sets=tuple(sorted(supersets, key=rank.__getitem__)),
                sub_sets=tuple(sorted(subsets, key=rank.__getitem__)),
            )
        )

    return SetClassCatalog(entries)
