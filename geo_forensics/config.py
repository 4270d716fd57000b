"""
config.py

Typed configuration objects and defaults for the provenance reconciliation
run: dataset paths for the published table, the reference cell-line panel
and the GEO cohort, metadata column names and the matching thresholds used
by run_pipeline.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional


@dataclass(frozen=True)
class DatasetPaths:
    """Container for expression matrix + (optional) metadata paths."""
    matrix: Path
    metadata: Optional[Path] = None


@dataclass
class ReconConfig:
    """
    Configuration for the column provenance reconciliation.

    Table A is the published drug-response matrix, table B the reference
    cell-line panel (NCI60) and table C the patient cohort pulled from GEO.
    All matrices are probes x samples.
    """

    # Datasets
    published: DatasetPaths
    reference_panel: DatasetPaths
    cohort: DatasetPaths
    column_metadata: Path
    cohort_status: Optional[Path] = None

    # Exact-value matching against the reference panel
    anchor_probe: str = "1000_at"

    # Correlation / minimum profiling
    high_corr_threshold: float = 0.99
    min_value_sentinel: Optional[float] = None

    # Offset matching against the cohort. None scans every offset that fits.
    offset_candidates: Optional[List[int]] = None
    offset_probe_column: Optional[str] = None

    # Brute-force matching. Near-total agreement, not partial overlap.
    brute_force_min_matches: int = 1000
    brute_force_drug: str = "Docetaxel"

    # Second drug label sharing the same samples with swapped contrast labels
    mirror_drug: Optional[str] = "Adriamycin"
    relabel: Dict[int, int] = field(default_factory=lambda: {0: 1, 1: 0})

    # Metadata column names
    sample_id_col: str = "sample_id"
    drug_col: str = "drug_name"
    group_col: str = "contrast_group"
    status_sample_col: str = "geo_accession"
    status_col: str = "status"

    # Output
    results_dir: Path = Path("../results")
    figures_dir: Path = Path("../figures")
    result_stem: str = "column_provenance"
    make_plots: bool = True

    def __post_init__(self):
        self.column_metadata = Path(self.column_metadata)
        if self.cohort_status is not None:
            self.cohort_status = Path(self.cohort_status)
        self.results_dir = Path(self.results_dir)
        self.figures_dir = Path(self.figures_dir)

        if self.offset_candidates is not None:
            self.offset_candidates = [int(k) for k in self.offset_candidates]

        self.relabel = {int(k): int(v) for k, v in (self.relabel or {0: 1, 1: 0}).items()}
        if self.brute_force_min_matches < 0:
            raise ValueError("brute_force_min_matches must be >= 0.")
