"""
# expr_io.py

# I/O helpers for the three expression tables: loading of saved matrices,
# column metadata and cohort status, plus the hard preconditions checked
# before any matching starts.
# -----------------------------------------------------------------------------
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from .logging_utils import get_logger

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Guardrails (these tables are tens of columns x ~12.5k probes)
# -----------------------------------------------------------------------------
MAX_METADATA_ROWS = 5000
MAX_EXPECTED_SAMPLE_COLS = 20000

PICKLE_SUFFIXES = {".pkl", ".pickle"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xltx", ".xltm"}


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def assert_metadata_reasonable(meta: pd.DataFrame, max_rows: int = MAX_METADATA_ROWS) -> None:
    if meta.shape[0] > max_rows:
        raise ValueError(
            f"Metadata looks too large for a column sheet "
            f"({meta.shape[0]} rows > {max_rows}). Likely wrong file."
        )


def _looks_like_xlsx(path: Path) -> bool:
    try:
        with path.open("rb") as f:
            return f.read(4) == b"PK\x03\x04"
    except OSError:
        return False


def _sep_for(path: Path) -> str:
    return "," if path.suffix.lower() == ".csv" else "\t"


def _finalize_matrix(df: pd.DataFrame, source: Path) -> pd.DataFrame:
    if df.shape[1] > MAX_EXPECTED_SAMPLE_COLS:
        raise ValueError(
            f"{source.name} has {df.shape[1]} sample columns "
            f"(> {MAX_EXPECTED_SAMPLE_COLS}). Probably transposed or the wrong file."
        )

    df = df.copy()
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    # Exact-value matching relies on the stored float64 values, never recast to float32
    df = df.apply(pd.to_numeric, errors="raise").astype("float64")
    return df


# -----------------------------------------------------------------------------
# Loaders
# -----------------------------------------------------------------------------
def load_expression_matrix(path: Path) -> pd.DataFrame:
    """
    Load a probes x samples expression matrix.

    Saved binary blobs (.pkl/.pickle) are the normal input; delimited text
    with the probe ID in the first column is accepted as well.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Expression matrix not found: {path}")

    logger.info("Loading expression matrix: %s", path)

    if path.suffix.lower() in PICKLE_SUFFIXES:
        obj = pd.read_pickle(path)
        if isinstance(obj, pd.Series):
            obj = obj.to_frame()
        if not isinstance(obj, pd.DataFrame):
            raise ValueError(
                f"{path.name} does not hold a DataFrame (got {type(obj).__name__})."
            )
        df = obj
    else:
        df = pd.read_csv(path, sep=_sep_for(path), index_col=0)

    df = _finalize_matrix(df, path)
    logger.info("Matrix %s shape: %s", path.name, df.shape)
    return df


def load_column_metadata(path: Path, sheet_name: Optional[str] = None) -> pd.DataFrame:
    """
    Loads the per-column metadata of the published table.
    Handles pickles, CSV/TSV and real Excel files.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Column metadata not found: {path}")

    logger.info("Loading column metadata: %s", path)
    suffix = path.suffix.lower()

    if suffix in PICKLE_SUFFIXES:
        meta = pd.read_pickle(path)
    elif suffix in EXCEL_SUFFIXES or _looks_like_xlsx(path):
        meta = pd.read_excel(path, sheet_name=sheet_name or 0, engine="openpyxl")
    else:
        meta = pd.read_csv(path, sep=_sep_for(path))

    meta = meta.copy()
    meta.columns = [str(c).strip() for c in meta.columns]
    assert_metadata_reasonable(meta)
    return meta


def load_status_table(path: Path, sample_col: str, status_col: str) -> pd.Series:
    """Cohort sample id -> status label (e.g. responder / non-responder)."""
    table = load_column_metadata(path)
    missing = [c for c in (sample_col, status_col) if c not in table.columns]
    if missing:
        raise ValueError(f"Status table {path} is missing columns: {missing}")

    status = table[[sample_col, status_col]].dropna(subset=[sample_col])
    status = status.drop_duplicates(subset=[sample_col], keep="first")
    out = pd.Series(
        status[status_col].astype(str).str.strip().values,
        index=status[sample_col].astype(str).str.strip().values,
        name=status_col,
    )
    logger.info("Loaded %d cohort status labels.", len(out))
    return out


# -----------------------------------------------------------------------------
# Preconditions (all fatal)
# -----------------------------------------------------------------------------
def require_probe(matrix: pd.DataFrame, probe: str, name: str = "matrix") -> None:
    if probe not in matrix.index:
        raise ValueError(f"Anchor probe '{probe}' not found in {name}.")


def validate_offset_window(n_source: int, n_target: int, offset: int) -> None:
    if offset < 0:
        raise ValueError(f"Row offset must be non-negative (got {offset}).")
    if offset + n_source > n_target:
        raise ValueError(
            f"Offset {offset} + {n_source} source rows exceeds the "
            f"{n_target} rows available in the target matrix."
        )


def validate_metadata(
    matrix: pd.DataFrame,
    metadata: pd.DataFrame,
    sample_col: str = "sample_id",
) -> pd.DataFrame:
    """
    Check that metadata rows and matrix columns agree one-to-one.

    Returns
    -------
    pd.DataFrame
        Metadata indexed by sample id, in the original metadata row order.
    """
    if sample_col not in metadata.columns:
        raise ValueError(f"Metadata has no '{sample_col}' column.")

    ids = metadata[sample_col].astype(str)
    dupes = ids[ids.duplicated()].unique().tolist()
    if dupes:
        raise ValueError(f"Duplicated sample ids in metadata: {dupes[:5]}")
    if matrix.columns.duplicated().any():
        dup_cols = matrix.columns[matrix.columns.duplicated()].unique().tolist()
        raise ValueError(f"Duplicated sample columns in matrix: {dup_cols[:5]}")

    mcols = set(map(str, matrix.columns))
    meta_only = [s for s in ids if s not in mcols]
    matrix_only = [c for c in matrix.columns if c not in set(ids)]
    if meta_only or matrix_only:
        raise ValueError(
            "Metadata and matrix columns disagree: "
            f"{len(meta_only)} metadata ids absent from matrix {meta_only[:5]}, "
            f"{len(matrix_only)} matrix columns absent from metadata {matrix_only[:5]}."
        )

    meta = metadata.copy()
    meta[sample_col] = ids.values
    return meta.set_index(sample_col)


def select_columns(metadata: pd.DataFrame, drug_col: str, drug: str) -> List[str]:
    """Sample ids carrying a drug label, in metadata order."""
    if drug_col not in metadata.columns:
        raise ValueError(f"Metadata has no '{drug_col}' column.")

    mask = metadata[drug_col].astype(str) == str(drug)
    if not np.any(mask.values):
        known = sorted(metadata[drug_col].astype(str).unique().tolist())
        raise ValueError(f"No columns labelled '{drug}'. Known labels: {known}")
    return [str(s) for s in metadata.index[mask.values]]
