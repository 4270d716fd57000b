"""
matching.py

Column matchers used to trace the published table back to its sources:
exact anchor-probe matching against the reference panel, fixed row-offset
alignment against the cohort, and brute-force column matching under that
offset. Results are tagged so that "nothing matched" and "several matched"
stay distinguishable until the final table is written.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .expr_io import require_probe, validate_offset_window
from .logging_utils import get_logger

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Match results
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Matched:
    value: str


@dataclass(frozen=True)
class Unresolved:
    pass


@dataclass(frozen=True)
class Ambiguous:
    candidates: Tuple[str, ...]


MatchResult = Union[Matched, Unresolved, Ambiguous]


def resolve(candidates: Iterable[str]) -> MatchResult:
    uniq = sorted(set(map(str, candidates)))
    if not uniq:
        return Unresolved()
    if len(uniq) == 1:
        return Matched(uniq[0])
    return Ambiguous(tuple(uniq))


def match_value(result: MatchResult) -> Optional[str]:
    return result.value if isinstance(result, Matched) else None


def as_nullable(matches: pd.Series) -> pd.Series:
    """MatchResult series -> object series of ids, None where unresolved/ambiguous."""
    return pd.Series(
        [match_value(r) for r in matches.values],
        index=matches.index,
        dtype=object,
        name=matches.name,
    )


def describe_matches(matches: pd.Series) -> pd.DataFrame:
    rows = []
    for sample_id, r in matches.items():
        if isinstance(r, Matched):
            rows.append((sample_id, "matched", r.value, r.value))
        elif isinstance(r, Ambiguous):
            rows.append((sample_id, "ambiguous", None, ";".join(r.candidates)))
        else:
            rows.append((sample_id, "unresolved", None, ""))
    out = pd.DataFrame(rows, columns=["sample_id", "kind", "value", "candidates"])
    return out.set_index("sample_id")


# -----------------------------------------------------------------------------
# Exact-value matcher (published table vs reference panel)
# -----------------------------------------------------------------------------
def exact_value_match(
    published: pd.DataFrame,
    reference: pd.DataFrame,
    anchor_probe: str,
) -> pd.Series:
    """
    Map each published column to the reference column sharing its exact
    value at the anchor probe.

    Parameters
    ----------
    published : DataFrame
        Table A, probes x samples.
    reference : DataFrame
        Table B, probes x samples.
    anchor_probe : str
        Probe id present in both tables.

    Returns
    -------
    pd.Series
        MatchResult per published column, in published column order.
    """
    require_probe(published, anchor_probe, "published table")
    require_probe(reference, anchor_probe, "reference panel")

    ref_row = reference.loc[anchor_probe]
    index: Dict[float, List[str]] = {}
    for col, val in zip(reference.columns, ref_row.to_numpy(dtype=float)):
        if np.isnan(val):
            continue
        index.setdefault(float(val), []).append(str(col))

    pub_row = published.loc[anchor_probe]
    results = []
    for val in pub_row.to_numpy(dtype=float):
        hits = [] if np.isnan(val) else index.get(float(val), [])
        results.append(resolve(hits))

    matches = pd.Series(results, index=published.columns.astype(str), dtype=object, name="nci60_match")

    n_matched = sum(isinstance(r, Matched) for r in results)
    n_ambiguous = sum(isinstance(r, Ambiguous) for r in results)
    logger.info(
        "Anchor %s: %d/%d columns matched the reference panel (%d ambiguous).",
        anchor_probe, n_matched, len(results), n_ambiguous,
    )
    return matches


# -----------------------------------------------------------------------------
# Offset matcher (published table vs cohort)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class OffsetMatch:
    """
    Positional comparison of one published column against a cohort column
    shifted by a fixed number of leading rows.
    """
    column: str
    target: str
    offset: int
    match_count: int
    n_rows: int
    prefix_length: int
    mismatch_rows: Tuple[int, ...]
    tail_multiset_equal: bool

    @property
    def is_exact(self) -> bool:
        return self.match_count == self.n_rows

    @property
    def is_reordered_tail(self) -> bool:
        """Only failures are reordering among tied values at the end."""
        return (not self.is_exact) and self.tail_multiset_equal

    @property
    def match_fraction(self) -> float:
        return self.match_count / self.n_rows if self.n_rows else float("nan")


def _window(target: pd.Series, n_rows: int, offset: int) -> np.ndarray:
    validate_offset_window(n_rows, len(target), offset)
    return target.to_numpy(dtype=float)[offset:offset + n_rows]


def offset_match(
    source: pd.Series,
    cohort: pd.DataFrame,
    cohort_column: str,
    offset: int,
) -> OffsetMatch:
    """
    Compare source[i] with cohort[offset + i, cohort_column] for every row.

    Besides the positional count, checks whether the tail starting at the
    first mismatch holds the same multiset of values on both sides, which
    separates a true mismatch from tie-break reordering of duplicates.
    """
    if cohort_column not in cohort.columns:
        raise ValueError(f"Column '{cohort_column}' not found in cohort matrix.")

    a = source.to_numpy(dtype=float)
    c = _window(cohort[cohort_column], len(a), int(offset))

    equal = a == c
    mismatches = np.flatnonzero(~equal)
    prefix = int(mismatches[0]) if mismatches.size else len(a)

    if mismatches.size:
        tail_equal = bool(np.array_equal(np.sort(a[prefix:]), np.sort(c[prefix:])))
    else:
        tail_equal = True

    return OffsetMatch(
        column=str(source.name),
        target=str(cohort_column),
        offset=int(offset),
        match_count=int(equal.sum()),
        n_rows=len(a),
        prefix_length=prefix,
        mismatch_rows=tuple(int(i) for i in mismatches),
        tail_multiset_equal=tail_equal,
    )


def _valid_offsets(n_rows: int, n_target: int, offsets: Optional[Iterable[int]]) -> List[int]:
    max_offset = n_target - n_rows
    if offsets is None:
        return list(range(0, max_offset + 1))

    valid = []
    for k in offsets:
        k = int(k)
        if 0 <= k <= max_offset:
            valid.append(k)
        else:
            logger.debug("Skipping offset %d (valid range 0..%d).", k, max_offset)
    return valid


def scan_offsets(
    source: pd.Series,
    cohort: pd.DataFrame,
    cohort_column: str,
    offsets: Optional[Iterable[int]] = None,
) -> pd.DataFrame:
    """Match count per candidate offset for one source/cohort column pair."""
    rows = []
    for k in _valid_offsets(len(source), len(cohort), offsets):
        m = offset_match(source, cohort, cohort_column, k)
        rows.append((k, m.match_count, m.prefix_length, m.tail_multiset_equal))
    return pd.DataFrame(
        rows, columns=["offset", "match_count", "prefix_length", "tail_multiset_equal"]
    )


def discover_offset(
    source: pd.Series,
    cohort: pd.DataFrame,
    offsets: Optional[Iterable[int]] = None,
    cohort_columns: Optional[Sequence[str]] = None,
) -> OffsetMatch:
    """
    Find the (cohort column, offset) pair under which `source` lines up best.

    The offset is discovered rather than configured; it is the number of
    leading cohort rows (e.g. control probes) absent from the published table.
    """
    columns = list(cohort_columns) if cohort_columns is not None else list(cohort.columns)
    candidates = _valid_offsets(len(source), len(cohort), offsets)
    if not candidates:
        raise ValueError(
            f"No valid offsets: source has {len(source)} rows, cohort has {len(cohort)}."
        )

    a = source.to_numpy(dtype=float)
    values = cohort[columns].to_numpy(dtype=float)

    best: Optional[Tuple[int, int, str]] = None
    for k in candidates:
        counts = (values[k:k + len(a), :] == a[:, None]).sum(axis=0)
        j = int(np.argmax(counts))
        if best is None or counts[j] > best[0]:
            best = (int(counts[j]), k, str(columns[j]))

    if best is None or best[0] == 0:
        raise ValueError(f"Column '{source.name}' matches no cohort column at any offset.")

    result = offset_match(source, cohort, best[2], best[1])
    logger.info(
        "Offset discovery: %s aligns with %s at offset %d (%d/%d rows, prefix %d).",
        result.column, result.target, result.offset,
        result.match_count, result.n_rows, result.prefix_length,
    )
    if result.is_reordered_tail:
        logger.info(
            "%d trailing mismatches are a reordering of tied values.",
            len(result.mismatch_rows),
        )
    return result


# -----------------------------------------------------------------------------
# Brute-force column matcher
# -----------------------------------------------------------------------------
def brute_force_match(
    published: pd.DataFrame,
    columns: Sequence[str],
    cohort: pd.DataFrame,
    offset: int,
    min_matches: int = 1000,
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Count positional agreements between every selected published column and
    every cohort column under a fixed row offset.

    A published column is assigned a cohort column only when exactly one
    cohort column has more than `min_matches` equal rows. Several qualifying
    columns are reported as Ambiguous and never auto-resolved.

    Returns
    -------
    counts : DataFrame
        Match counts, selected published columns x cohort columns.
    matches : Series
        MatchResult per selected published column.
    """
    columns = [str(c) for c in columns]
    missing = [c for c in columns if c not in published.columns]
    if missing:
        raise ValueError(f"Columns not in published table: {missing}")

    n_rows = published.shape[0]
    validate_offset_window(n_rows, cohort.shape[0], int(offset))

    window = cohort.to_numpy(dtype=float)[offset:offset + n_rows, :]
    counts = np.empty((len(columns), cohort.shape[1]), dtype=np.int64)
    for i, col in enumerate(columns):
        a = published[col].to_numpy(dtype=float)
        counts[i, :] = (window == a[:, None]).sum(axis=0)

    counts_df = pd.DataFrame(counts, index=columns, columns=cohort.columns.astype(str))

    results = []
    for col in columns:
        hits = counts_df.columns[counts_df.loc[col].to_numpy() > min_matches].tolist()
        r = resolve(hits)
        if isinstance(r, Ambiguous):
            logger.warning(
                "%s exceeds %d matches against %d cohort columns: %s",
                col, min_matches, len(r.candidates), list(r.candidates),
            )
        results.append(r)

    matches = pd.Series(results, index=columns, dtype=object, name="geo_match")
    logger.info(
        "Brute-force at offset %d: %d/%d columns matched.",
        offset, sum(isinstance(r, Matched) for r in results), len(columns),
    )
    return counts_df, matches
