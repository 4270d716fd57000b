from __future__ import annotations

"""
run_pipeline.py

End-to-end provenance reconciliation for a published drug-response table:
- matches published columns to the NCI60 reference panel on an anchor probe,
- profiles column correlations and minimums to expose duplicated or foreign columns,
- discovers the row offset aligning the published table with the GEO cohort,
- brute-force matches the selected drug's columns against every cohort column,
- mirrors those matches onto the relabelled drug and writes the annotated table.

Status: exploratory, run once per dataset snapshot.
"""

import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .collate import (
    build_result_table,
    lookup_status,
    mirror_group_matches,
    write_match_audit,
    write_result_table,
)
from .config import DatasetPaths, ReconConfig
from .expr_io import (
    load_column_metadata,
    load_expression_matrix,
    load_status_table,
    select_columns,
    validate_metadata,
)
from .logging_utils import get_logger
from .matching import (
    OffsetMatch,
    brute_force_match,
    discover_offset,
    exact_value_match,
    scan_offsets,
)
from .profiling import (
    column_correlation,
    column_minimums,
    global_minimum_ties,
    high_correlation_flags,
    high_correlation_pairs,
    minimums_by_group,
    sentinel_columns,
)
from .viz import plot_column_minimums, plot_high_correlation, plot_offset_scan

logger = get_logger(__name__)


@dataclass
class ReconResult:
    table: pd.DataFrame
    nci60_matches: pd.Series
    geo_matches: pd.Series
    correlation: pd.DataFrame
    high_corr_pairs: pd.DataFrame
    minimums: pd.DataFrame
    sentinel_hits: List[str]
    minimum_ties: List[str]
    offset: OffsetMatch
    brute_force_counts: pd.DataFrame
    outputs: Dict[str, Path] = field(default_factory=dict)


def _make_plots(
    cfg: ReconConfig,
    flags: pd.DataFrame,
    by_group: pd.DataFrame,
    probe: pd.Series,
    cohort: pd.DataFrame,
    offset: OffsetMatch,
) -> Dict[str, Path]:
    written: Dict[str, Path] = {}

    try:
        path = cfg.figures_dir / "high_correlation.png"
        plot_high_correlation(flags, path)
        written["high_correlation_plot"] = path
    except Exception as e:
        logger.warning("plot_high_correlation skipped: %s", e)

    try:
        path = cfg.figures_dir / "column_minimums.png"
        plot_column_minimums(by_group, path, group_col=cfg.drug_col, sentinel=cfg.min_value_sentinel)
        written["column_minimum_plot"] = path
    except Exception as e:
        logger.warning("plot_column_minimums skipped: %s", e)

    try:
        scan = scan_offsets(probe, cohort, offset.target, cfg.offset_candidates)
        path = cfg.figures_dir / "offset_scan.png"
        plot_offset_scan(scan, path, title=f"{offset.column} vs {offset.target}")
        written["offset_scan_plot"] = path
    except Exception as e:
        logger.warning("plot_offset_scan skipped: %s", e)

    return written


def run(
    cfg: ReconConfig,
    published: Optional[pd.DataFrame] = None,
    reference_panel: Optional[pd.DataFrame] = None,
    cohort: Optional[pd.DataFrame] = None,
    metadata: Optional[pd.DataFrame] = None,
    status: Optional[pd.Series] = None,
) -> ReconResult:
    """
    Run the full reconciliation. Tables passed in are used as-is; anything
    left as None is loaded from the paths in `cfg`.
    """
    # ------------------------------- Load -------------------------------
    if published is None:
        published = load_expression_matrix(cfg.published.matrix)
    if reference_panel is None:
        reference_panel = load_expression_matrix(cfg.reference_panel.matrix)
    if cohort is None:
        cohort = load_expression_matrix(cfg.cohort.matrix)
    if metadata is None:
        metadata = load_column_metadata(cfg.column_metadata)
    if status is None and cfg.cohort_status is not None:
        if cfg.cohort_status.exists():
            status = load_status_table(cfg.cohort_status, cfg.status_sample_col, cfg.status_col)
        else:
            logger.info("No cohort status table at %s; geo_status left empty.", cfg.cohort_status)

    logger.info(
        "Published %s | reference panel %s | cohort %s",
        published.shape, reference_panel.shape, cohort.shape,
    )

    meta = validate_metadata(published, metadata, sample_col=cfg.sample_id_col)

    # ---------------------- Exact match vs NCI60 ------------------------
    nci60_matches = exact_value_match(published, reference_panel, cfg.anchor_probe)

    # ---------------------- Correlation / minimums ----------------------
    corr = column_correlation(published)
    flags = high_correlation_flags(corr, cfg.high_corr_threshold)
    pairs = high_correlation_pairs(corr, cfg.high_corr_threshold)

    minimums = column_minimums(published)
    by_group = minimums_by_group(minimums, meta, group_col=cfg.drug_col)
    ties = global_minimum_ties(minimums)
    logger.info("%d columns tie at the global minimum.", len(ties))

    hits: List[str] = []
    if cfg.min_value_sentinel is not None:
        hits = sentinel_columns(minimums, cfg.min_value_sentinel)
        logger.info("%d columns bottom out at sentinel %s.", len(hits), cfg.min_value_sentinel)

    # -------------------------- Offset vs GEO ---------------------------
    subset = select_columns(meta, cfg.drug_col, cfg.brute_force_drug)
    probe_col = cfg.offset_probe_column or subset[0]
    if probe_col not in published.columns:
        raise ValueError(f"Offset probe column '{probe_col}' not in published table.")
    offset = discover_offset(published[probe_col], cohort, offsets=cfg.offset_candidates)

    if not offset.is_exact and not offset.is_reordered_tail:
        logger.warning(
            "Offset %d leaves %d mismatching rows that are not a tail reordering.",
            offset.offset, len(offset.mismatch_rows),
        )

    # ------------------------ Brute-force vs GEO ------------------------
    counts, geo_matches = brute_force_match(
        published,
        subset,
        cohort,
        offset.offset,
        min_matches=cfg.brute_force_min_matches,
    )

    if cfg.mirror_drug:
        geo_matches = mirror_group_matches(
            geo_matches,
            meta,
            source_drug=cfg.brute_force_drug,
            target_drug=cfg.mirror_drug,
            relabel=cfg.relabel,
            drug_col=cfg.drug_col,
            group_col=cfg.group_col,
        )

    geo_status = lookup_status(geo_matches, status)

    # ----------------------------- Collate ------------------------------
    table = build_result_table(
        meta,
        nci60_matches,
        geo_matches,
        geo_status,
        drug_col=cfg.drug_col,
        group_col=cfg.group_col,
    )

    pkl_path, csv_path = write_result_table(table, cfg.results_dir, cfg.result_stem)
    audit_path = write_match_audit(cfg.results_dir, nci60=nci60_matches, geo=geo_matches)
    outputs = {"pickle": pkl_path, "csv": csv_path, "audit": audit_path}

    if cfg.make_plots:
        outputs.update(_make_plots(cfg, flags, by_group, published[probe_col], cohort, offset))

    logger.info(
        "Done. %d/%d columns traced to NCI60, %d to GEO.",
        table["nci60_match"].notna().sum(), len(table), table["geo_match"].notna().sum(),
    )

    return ReconResult(
        table=table,
        nci60_matches=nci60_matches,
        geo_matches=geo_matches,
        correlation=corr,
        high_corr_pairs=pairs,
        minimums=by_group,
        sentinel_hits=hits,
        minimum_ties=ties,
        offset=offset,
        brute_force_counts=counts,
        outputs=outputs,
    )


# -----------------------------------------------------------------------------
# Minimal CLI + defaults
# -----------------------------------------------------------------------------
def _build_default_config(base_dir: Path) -> ReconConfig:
    """
    Centralized defaults.
    Adjust filenames to the saved snapshots you actually have.
    """
    data = base_dir / "data"

    return ReconConfig(
        published=DatasetPaths(matrix=data / "published_table.pkl"),
        reference_panel=DatasetPaths(matrix=data / "nci60_panel.pkl"),
        cohort=DatasetPaths(matrix=data / "geo_cohort.pkl"),
        column_metadata=data / "published_columns.csv",
        cohort_status=data / "geo_status.csv",
        results_dir=base_dir / "results",
        figures_dir=base_dir / "figures",
    )


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Trace published columns back to NCI60 and GEO.")
    parser.add_argument("--base-dir", type=Path, default=Path.cwd(), help="Folder holding data/.")
    parser.add_argument("--results-dir", type=Path, default=None)
    parser.add_argument("--anchor-probe", default=None)
    parser.add_argument("--min-matches", type=int, default=None)
    parser.add_argument("--no-plots", action="store_true")
    args = parser.parse_args(argv)

    cfg = _build_default_config(args.base_dir.resolve())

    if args.results_dir is not None:
        cfg.results_dir = args.results_dir
    if args.anchor_probe:
        cfg.anchor_probe = args.anchor_probe
    if args.min_matches is not None:
        cfg.brute_force_min_matches = args.min_matches
    if args.no_plots:
        cfg.make_plots = False

    run(cfg)


if __name__ == "__main__":
    main()
