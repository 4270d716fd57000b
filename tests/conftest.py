from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

N_PROBES = 300
N_LEADING = 7


@pytest.fixture
def recon_tables():
    """
    Synthetic published table built from a cohort (offset N_LEADING) and a
    reference panel, with a second drug label mirroring the first.
    """
    rng = np.random.default_rng(7)
    probes = [f"p{i}" for i in range(N_PROBES)]

    cohort = pd.DataFrame(
        rng.normal(5.0, 2.0, size=(N_PROBES + N_LEADING, 6)),
        index=[f"AFFX-{i}" for i in range(N_LEADING)] + probes,
        columns=[f"GSM{i}" for i in range(1, 7)],
    )
    reference = pd.DataFrame(
        rng.normal(5.0, 2.0, size=(N_PROBES, 5)),
        index=probes,
        columns=["NCI-H460", "MCF7", "HOP-62", "SF-295", "UO-31"],
    )

    def from_cohort(col):
        return cohort[col].to_numpy()[N_LEADING:]

    published = pd.DataFrame({
        "DOC_S1": from_cohort("GSM1"),
        "DOC_S2": from_cohort("GSM2"),
        "DOC_R1": from_cohort("GSM3"),
        "DOC_R2": from_cohort("GSM4"),
        "ADR_S1": from_cohort("GSM3"),
        "ADR_S2": from_cohort("GSM4"),
        "ADR_R1": from_cohort("GSM1"),
        "ADR_R2": from_cohort("GSM2"),
        "NCI_1": reference["MCF7"].to_numpy(),
        "NCI_2": reference["UO-31"].to_numpy(),
    }, index=probes)

    metadata = pd.DataFrame({
        "sample_id": list(published.columns),
        "drug_name": ["Docetaxel"] * 4 + ["Adriamycin"] * 4 + ["Cisplatin"] * 2,
        "contrast_group": [0, 0, 1, 1, 0, 0, 1, 1, 0, 1],
    })

    status = pd.Series(
        {"GSM1": "Sensitive", "GSM2": "Sensitive", "GSM3": "Resistant", "GSM4": "Resistant"}
    )

    return {
        "published": published,
        "reference": reference,
        "cohort": cohort,
        "metadata": metadata,
        "status": status,
    }
