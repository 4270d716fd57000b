"""
profiling.py

Column-level profiles of the published table: the pairwise Pearson
correlation matrix with high-similarity flags (duplicated or near-duplicated
columns) and per-column minimums, whose shared values hint at columns that
were lifted from another dataset.
"""

from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd

from .logging_utils import get_logger

logger = get_logger(__name__)


def column_correlation(matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Pearson correlation between columns (rows are observations).

    The result is made exactly symmetric and its diagonal is pinned to 1.0.
    """
    corr = matrix.astype(float).corr(method="pearson")
    vals = corr.to_numpy(copy=True)
    vals = (vals + vals.T) / 2.0
    np.fill_diagonal(vals, 1.0)
    return pd.DataFrame(vals, index=corr.index, columns=corr.columns)


def high_correlation_flags(corr: pd.DataFrame, threshold: float = 0.99) -> pd.DataFrame:
    return corr > threshold


def high_correlation_pairs(corr: pd.DataFrame, threshold: float = 0.99) -> pd.DataFrame:
    """
    Off-diagonal column pairs with correlation above `threshold`.

    Returns
    -------
    pd.DataFrame
        Columns column_a, column_b, r; each unordered pair listed once,
        strongest first.
    """
    vals = corr.to_numpy()
    iu, ju = np.triu_indices_from(vals, k=1)
    keep = vals[iu, ju] > threshold

    out = pd.DataFrame({
        "column_a": corr.index[iu[keep]],
        "column_b": corr.columns[ju[keep]],
        "r": vals[iu[keep], ju[keep]],
    })
    out = out.sort_values("r", ascending=False, kind="mergesort").reset_index(drop=True)
    logger.info("%d column pairs with r > %.3f.", len(out), threshold)
    return out


def column_minimums(matrix: pd.DataFrame) -> pd.Series:
    return matrix.min(axis=0).rename("minimum")


def minimums_by_group(
    minimums: pd.Series,
    metadata: pd.DataFrame,
    group_col: str = "drug_name",
) -> pd.DataFrame:
    """
    Attach the grouping key to each column minimum.

    `metadata` must be indexed by sample id (see expr_io.validate_metadata);
    the output follows metadata row order.
    """
    if group_col not in metadata.columns:
        raise ValueError(f"Metadata has no '{group_col}' column.")

    missing = [s for s in metadata.index if s not in minimums.index]
    if missing:
        raise ValueError(f"No minimum computed for metadata ids: {missing[:5]}")

    out = pd.DataFrame({
        group_col: metadata[group_col].values,
        "minimum": minimums.loc[metadata.index].values,
    }, index=metadata.index)
    return out


def sentinel_columns(minimums: pd.Series, sentinel: float) -> List[str]:
    """Columns whose minimum equals a value observed in another dataset."""
    hits = minimums.index[minimums.to_numpy(dtype=float) == float(sentinel)]
    return [str(c) for c in hits]


def global_minimum_ties(minimums: pd.Series) -> List[str]:
    # Many ties at the global minimum point to a shared source, not to an error
    vals = minimums.to_numpy(dtype=float)
    if vals.size == 0 or np.all(np.isnan(vals)):
        return []
    lowest = np.nanmin(vals)
    return [str(c) for c in minimums.index[vals == lowest]]
