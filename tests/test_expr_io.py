from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from geo_forensics.expr_io import (
    load_column_metadata,
    load_expression_matrix,
    load_status_table,
    require_probe,
    select_columns,
    validate_metadata,
    validate_offset_window,
)


def test_load_expression_matrix_from_pickle(tmp_path):
    df = pd.DataFrame({"s1": [1, 2], "s2": [3, 4]}, index=[101, 102])
    path = tmp_path / "matrix.pkl"
    df.to_pickle(path)

    out = load_expression_matrix(path)
    assert list(out.index) == ["101", "102"]
    assert (out.dtypes == np.float64).all()
    assert out.loc["102", "s2"] == 4.0


def test_load_expression_matrix_from_tsv(tmp_path):
    path = tmp_path / "matrix.tsv"
    path.write_text("probe\ts1\ts2\np1\t0.5\t1.5\np2\t2.5\t3.5\n", encoding="utf-8")
    out = load_expression_matrix(path)
    assert out.shape == (2, 2)
    assert out.loc["p2", "s1"] == 2.5


def test_load_expression_matrix_rejects_non_frames(tmp_path):
    path = tmp_path / "bad.pkl"
    pd.to_pickle({"not": "a frame"}, path)
    with pytest.raises(ValueError, match="does not hold a DataFrame"):
        load_expression_matrix(path)

    with pytest.raises(FileNotFoundError):
        load_expression_matrix(tmp_path / "missing.pkl")


def test_load_metadata_and_status(tmp_path):
    meta_path = tmp_path / "columns.csv"
    meta_path.write_text(" sample_id ,drug_name,contrast_group\nc1,X,0\nc2,X,1\n", encoding="utf-8")
    meta = load_column_metadata(meta_path)
    assert list(meta.columns) == ["sample_id", "drug_name", "contrast_group"]

    status_path = tmp_path / "status.tsv"
    status_path.write_text(
        "geo_accession\tstatus\nGSM1\t Sensitive\nGSM2\tResistant\nGSM1\tResistant\n",
        encoding="utf-8",
    )
    status = load_status_table(status_path, "geo_accession", "status")
    assert status.to_dict() == {"GSM1": "Sensitive", "GSM2": "Resistant"}

    with pytest.raises(ValueError, match="missing columns"):
        load_status_table(status_path, "geo_accession", "response")


def test_require_probe_and_offset_window():
    m = pd.DataFrame({"s": [1.0]}, index=["p1"])
    require_probe(m, "p1")
    with pytest.raises(ValueError, match="p9"):
        require_probe(m, "p9", "published table")

    validate_offset_window(3, 5, 2)
    with pytest.raises(ValueError):
        validate_offset_window(3, 5, 3)
    with pytest.raises(ValueError):
        validate_offset_window(3, 5, -1)


def test_validate_metadata_keeps_metadata_order():
    m = pd.DataFrame(np.zeros((2, 3)), columns=["a", "b", "c"])
    meta = pd.DataFrame({"sample_id": ["c", "a", "b"], "drug_name": ["X", "Y", "X"]})
    out = validate_metadata(m, meta)
    assert list(out.index) == ["c", "a", "b"]
    assert out.index.name == "sample_id"


@pytest.mark.parametrize(
    "ids, match",
    [
        (["a", "b"], "disagree"),
        (["a", "b", "c", "d"], "disagree"),
        (["a", "b", "b"], "Duplicated"),
    ],
)
def test_validate_metadata_rejects_malformed(ids, match):
    m = pd.DataFrame(np.zeros((2, 3)), columns=["a", "b", "c"])
    meta = pd.DataFrame({"sample_id": ids})
    with pytest.raises(ValueError, match=match):
        validate_metadata(m, meta)


def test_select_columns():
    meta = pd.DataFrame({"drug_name": ["X", "Y", "X"]}, index=["c", "a", "b"])
    assert select_columns(meta, "drug_name", "X") == ["c", "b"]
    with pytest.raises(ValueError, match="Known labels"):
        select_columns(meta, "drug_name", "Z")
