"""
collate.py

Merges column metadata, reference-panel matches and cohort matches into the
final provenance table and writes it out as a pickle snapshot and a CSV.
Also carries cohort matches across drug labels that are known to share the
same samples under swapped contrast groups.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import pandas as pd

from .logging_utils import get_logger
from .matching import Ambiguous, Matched, Unresolved, as_nullable, describe_matches

logger = get_logger(__name__)

RESULT_COLUMNS = ["drug_name", "contrast_group", "nci60_match", "geo_match", "geo_status"]


def mirror_group_matches(
    matches: pd.Series,
    metadata: pd.DataFrame,
    source_drug: str,
    target_drug: str,
    relabel: Optional[Dict[int, int]] = None,
    drug_col: str = "drug_name",
    group_col: str = "contrast_group",
) -> pd.Series:
    """
    Copy matches from one drug label onto another that holds the same data
    with relabelled contrast groups.

    Source rows in group g are copied, position by position in metadata
    order, onto target rows in group relabel[g]. Returns a new series
    covering the existing entries plus the target rows.

    Parameters
    ----------
    matches : Series
        MatchResult per sample id; must cover every source row.
    metadata : DataFrame
        Indexed by sample id, with drug_col and group_col.
    relabel : dict, optional
        Source group -> target group. Defaults to swapping 0 and 1.
    """
    relabel = relabel if relabel is not None else {0: 1, 1: 0}
    out = matches.copy()

    drugs = metadata[drug_col].astype(str)
    groups = metadata[group_col].astype(int)

    for src_group, tgt_group in relabel.items():
        src_ids = metadata.index[(drugs == str(source_drug)) & (groups == int(src_group))]
        tgt_ids = metadata.index[(drugs == str(target_drug)) & (groups == int(tgt_group))]

        if len(src_ids) != len(tgt_ids):
            raise ValueError(
                f"Cannot mirror {source_drug} group {src_group} ({len(src_ids)} columns) "
                f"onto {target_drug} group {tgt_group} ({len(tgt_ids)} columns)."
            )

        absent = [s for s in src_ids if s not in matches.index]
        if absent:
            raise ValueError(f"No match recorded for source columns: {list(absent)[:5]}")

        for s, t in zip(src_ids, tgt_ids):
            if t in matches.index and not isinstance(matches.loc[t], Unresolved):
                logger.warning(
                    "Mirroring %s onto %s replaces its existing match %s with %s.",
                    s, t, matches.loc[t], matches.loc[s],
                )
            out.loc[t] = matches.loc[s]

    logger.info(
        "Mirrored %s matches onto %s with relabel %s.", source_drug, target_drug, relabel
    )
    return out


def lookup_status(geo_matches: pd.Series, status: Optional[Mapping[str, str]]) -> pd.Series:
    """Status label for each matched cohort sample; None when unknown or unmatched."""
    ids = as_nullable(geo_matches) if _holds_results(geo_matches) else geo_matches
    status = status if status is not None else {}
    values = []
    for v in ids.values:
        label = None
        if v is not None and not pd.isna(v):
            label = status.get(v)
        values.append(label)
    return pd.Series(values, index=geo_matches.index, dtype=object, name="geo_status")


def _holds_results(s: pd.Series) -> bool:
    return any(isinstance(v, (Matched, Unresolved, Ambiguous)) for v in s.values)


def _aligned(matches: Optional[pd.Series], index: pd.Index) -> pd.Series:
    if matches is None:
        return pd.Series([None] * len(index), index=index, dtype=object)

    vals = as_nullable(matches) if _holds_results(matches) else matches
    lookup = vals.to_dict()
    out = []
    for sample_id in index:
        v = lookup.get(sample_id)
        out.append(None if v is None or pd.isna(v) else v)
    return pd.Series(out, index=index, dtype=object)


def build_result_table(
    metadata: pd.DataFrame,
    nci60_matches: Optional[pd.Series],
    geo_matches: Optional[pd.Series],
    geo_status: Optional[pd.Series] = None,
    drug_col: str = "drug_name",
    group_col: str = "contrast_group",
) -> pd.DataFrame:
    """
    One row per metadata row, in metadata order, indexed by sample id.

    Match columns hold the matched id or None; unresolved and ambiguous
    matches are never replaced by a placeholder.
    """
    index = metadata.index
    table = pd.DataFrame({
        "drug_name": metadata[drug_col],
        "contrast_group": metadata[group_col],
        "nci60_match": _aligned(nci60_matches, index),
        "geo_match": _aligned(geo_matches, index),
        "geo_status": _aligned(geo_status, index),
    }, index=index)
    table.index.name = metadata.index.name or "sample_id"
    return table[RESULT_COLUMNS]


def write_result_table(table: pd.DataFrame, results_dir: Path, stem: str = "column_provenance") -> Tuple[Path, Path]:
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)

    pkl_path = results_dir / f"{stem}.pkl"
    csv_path = results_dir / f"{stem}.csv"

    table.to_pickle(pkl_path)
    table.to_csv(csv_path, index=True, na_rep="")

    logger.info("Wrote result table (%d rows): %s, %s", len(table), pkl_path, csv_path)
    return pkl_path, csv_path


def write_match_audit(
    results_dir: Path,
    stem: str = "match_audit",
    **matches: pd.Series,
) -> Path:
    """Long table of match kind and candidates per source, for inspection."""
    frames = []
    for source, series in matches.items():
        if series is None:
            continue
        d = describe_matches(series).reset_index()
        d.insert(0, "source", source)
        frames.append(d)

    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    out_path = results_dir / f"{stem}.csv"

    cols = ["source", "sample_id", "kind", "value", "candidates"]
    audit = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=cols)
    audit[cols].to_csv(out_path, index=False, na_rep="")
    logger.info("Wrote match audit: %s", out_path)
    return out_path
