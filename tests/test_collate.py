from __future__ import annotations

import logging

import pandas as pd
import pytest

from geo_forensics.collate import (
    RESULT_COLUMNS,
    build_result_table,
    lookup_status,
    mirror_group_matches,
    write_match_audit,
    write_result_table,
)
from geo_forensics.matching import Ambiguous, Matched, Unresolved


def _meta():
    return pd.DataFrame(
        {
            "drug_name": ["D", "D", "D", "D", "M", "M", "M", "M", "Z"],
            "contrast_group": [0, 1, 0, 1, 1, 0, 1, 0, 0],
        },
        index=pd.Index(["d1", "d2", "d3", "d4", "m1", "m2", "m3", "m4", "z1"], name="sample_id"),
    )


def _source_matches():
    return pd.Series(
        [Matched("G1"), Matched("G2"), Unresolved(), Ambiguous(("G4", "G5"))],
        index=["d1", "d2", "d3", "d4"],
        dtype=object,
    )


def test_mirror_swaps_contrast_groups():
    meta = _meta()
    matches = _source_matches()
    out = mirror_group_matches(matches, meta, "D", "M")

    for g_src, g_tgt in [(0, 1), (1, 0)]:
        src = meta.index[(meta["drug_name"] == "D") & (meta["contrast_group"] == g_src)]
        tgt = meta.index[(meta["drug_name"] == "M") & (meta["contrast_group"] == g_tgt)]
        assert out.loc[src].tolist() == out.loc[tgt].tolist()

    assert out["m1"] == Matched("G1")
    assert out["m2"] == Matched("G2")
    assert out["m3"] == Unresolved()
    assert out["m4"] == Ambiguous(("G4", "G5"))
    # input untouched
    assert list(matches.index) == ["d1", "d2", "d3", "d4"]


def test_mirror_rejects_unequal_groups():
    meta = _meta().drop(index="m4")
    with pytest.raises(ValueError, match="Cannot mirror"):
        mirror_group_matches(_source_matches(), meta, "D", "M")


def test_lookup_status():
    geo = pd.Series([Matched("G1"), Unresolved(), Matched("G9")], index=["a", "b", "c"])
    status = pd.Series({"G1": "Sensitive"})
    out = lookup_status(geo, status)
    assert out.tolist() == ["Sensitive", None, None]
    assert lookup_status(geo, None).tolist() == [None, None, None]


def test_result_table_preserves_metadata_order():
    meta = _meta().iloc[::-1]
    nci = pd.Series([Matched("MCF7")], index=["z1"])
    geo = mirror_group_matches(_source_matches(), meta, "D", "M")
    table = build_result_table(meta, nci, geo, lookup_status(geo, {"G1": "Sensitive"}))

    assert list(table.index) == list(meta.index)
    assert list(table.columns) == RESULT_COLUMNS
    assert table.loc["z1", "nci60_match"] == "MCF7"
    assert table.loc["d1", "nci60_match"] is None
    assert table.loc["d4", "geo_match"] is None
    assert table.loc["m1", "geo_status"] == "Sensitive"
    assert table.loc["z1", "geo_match"] is None


def test_write_result_table_nulls_are_empty_fields(tmp_path):
    meta = _meta()
    table = build_result_table(meta, None, _source_matches(), None)
    pkl_path, csv_path = write_result_table(table, tmp_path / "out", stem="res")

    assert pd.read_pickle(pkl_path).equals(table)

    lines = csv_path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "sample_id,drug_name,contrast_group,nci60_match,geo_match,geo_status"
    assert lines[1] == "d1,D,0,,G1,"
    assert lines[3] == "d3,D,0,,,"
    assert len(lines) == len(meta) + 1


def test_write_match_audit(tmp_path):
    path = write_match_audit(tmp_path, geo=_source_matches(), nci60=None)
    audit = pd.read_csv(path)
    assert audit["kind"].tolist() == ["matched", "matched", "unresolved", "ambiguous"]
    assert audit.loc[3, "candidates"] == "G4;G5"


def test_mirror_warns_when_replacing_existing_target_match(caplog):
    caplog.set_level(logging.WARNING)
    matches = pd.concat([
        _source_matches(),
        pd.Series([Matched("G9"), Unresolved()], index=["m1", "m2"], dtype=object),
    ])

    out = mirror_group_matches(matches, _meta(), "D", "M")

    assert out["m1"] == Matched("G1")
    assert "m1" in caplog.text
    assert "m2" not in caplog.text
