"""
viz.py

Plotting helpers for the reconciliation run: the high-correlation map of
the published columns, column minimums by drug and the offset scan, as
simple PNG figures for inspection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .logging_utils import get_logger

logger = get_logger(__name__)


def plot_high_correlation(
    flags: pd.DataFrame,
    outpath: Path,
    title: str = "Column pairs with r above threshold",
) -> None:
    """
    Image of the boolean high-correlation matrix. Runs of duplicated
    columns show up as solid squares off the diagonal.
    """
    if flags.empty:
        logger.warning("Empty correlation flags; skipping high-correlation plot.")
        return

    n = flags.shape[0]
    size = max(4.0, min(0.25 * n, 16.0))

    plt.figure(figsize=(size, size))
    plt.imshow(flags.to_numpy(dtype=float), cmap="Greys", interpolation="nearest", vmin=0, vmax=1)
    plt.xticks(range(n), flags.columns, rotation=90, fontsize=6)
    plt.yticks(range(n), flags.index, fontsize=6)
    plt.title(title)

    outpath = Path(outpath)
    outpath.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(outpath, dpi=150)
    plt.close()

    logger.info("Saved high-correlation plot: %s", outpath)


def plot_column_minimums(
    by_group: pd.DataFrame,
    outpath: Path,
    group_col: str = "drug_name",
    sentinel: Optional[float] = None,
) -> None:
    """
    Column minimums in metadata order, coloured by drug.

    Expects columns:
      - group_col
      - minimum
    """
    if by_group.empty:
        logger.warning("Empty minimum table; skipping minimum plot.")
        return

    plt.figure(figsize=(10, 4))
    x = np.arange(len(by_group))
    for label, d in by_group.groupby(group_col, sort=False):
        pos = x[by_group[group_col].values == label]
        plt.scatter(pos, d["minimum"].values, label=str(label), s=18)

    if sentinel is not None:
        plt.axhline(sentinel, linestyle="--", linewidth=1)

    plt.xlabel("Published column")
    plt.ylabel("Column minimum")
    plt.title("Per-column minimum by drug")
    plt.legend(fontsize=7)

    outpath = Path(outpath)
    outpath.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(outpath, dpi=150)
    plt.close()

    logger.info("Saved column minimum plot: %s", outpath)


def plot_offset_scan(scan: pd.DataFrame, outpath: Path, title: str = "Matches by row offset") -> None:
    if scan.empty:
        logger.warning("Empty offset scan; skipping plot.")
        return

    plt.figure(figsize=(8, 4))
    plt.plot(scan["offset"], scan["match_count"], marker="o", markersize=3)
    plt.xlabel("Row offset into cohort matrix")
    plt.ylabel("Equal rows")
    plt.title(title)

    outpath = Path(outpath)
    outpath.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(outpath, dpi=150)
    plt.close()

    logger.info("Saved offset scan plot: %s", outpath)
