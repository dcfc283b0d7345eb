from pathlib import Path

import pandas as pd
from pandas.testing import assert_frame_equal
import pytest

from src.data.data_loader import CTGDataLoader, FEATURE_COLUMNS


def test_load_data_missing_file(tmp_path):
    loader = CTGDataLoader(str(tmp_path / "missing.csv"))
    with pytest.raises(FileNotFoundError):
        loader.load_data()


def test_load_data_missing_required_columns(tmp_path, raw_ctg):
    bad_path = tmp_path / "incomplete.csv"
    raw_ctg.drop(columns=["ASTV"]).to_csv(bad_path, sep=";", index=False)

    loader = CTGDataLoader(str(bad_path))
    with pytest.raises(ValueError, match="ASTV"):
        loader.load_data()


def test_load_data_reads_semicolon_csv(ctg_csv, raw_ctg):
    df = CTGDataLoader(str(ctg_csv)).load_data()
    assert list(df.columns) == list(raw_ctg.columns)
    assert len(df) == len(raw_ctg)


def test_derive_label_collapses_suspect_and_pathologic():
    df = pd.DataFrame({"NSP": [1, 2, 3, 1, 3]})
    labelled = CTGDataLoader.derive_label(df)
    assert labelled["abnormal"].tolist() == [0, 1, 1, 0, 1]


def test_loader_writes_configured_target_column(raw_ctg):
    processed = CTGDataLoader("unused.csv", target="label_bin").preprocess(raw_ctg)
    assert list(processed.columns) == FEATURE_COLUMNS + ["label_bin"]
    expected = raw_ctg["NSP"].map({1: 0, 2: 1, 3: 1}).tolist()
    assert processed["label_bin"].tolist() == expected


def test_derive_label_rejects_unknown_classes():
    with pytest.raises(ValueError):
        CTGDataLoader.derive_label(pd.DataFrame({"NSP": [1, 4]}))


def test_preprocess_drops_malformed_rows_and_source_label(raw_ctg):
    raw = raw_ctg.head(5).copy().astype({"LB": object})
    raw.loc[1, "LB"] = "n/a"
    raw.loc[3, "NSP"] = None

    processed = CTGDataLoader("unused.csv").preprocess(raw)

    assert len(processed) == 3
    assert list(processed.columns) == FEATURE_COLUMNS + ["abnormal"]
    assert "NSP" not in processed.columns
    assert set(processed["abnormal"].unique()) <= {0, 1}


def test_preprocess_removes_configured_drop_columns(raw_ctg):
    processed = CTGDataLoader("unused.csv", drop_columns=["DS"]).preprocess(raw_ctg)
    assert "DS" not in processed.columns
    assert len(processed) == len(raw_ctg)


def test_run_processes_and_persists_processed_csv(tmp_path, ctg_csv):
    output_path = tmp_path / "processed" / "ctg.csv"
    loader = CTGDataLoader(str(ctg_csv), str(output_path))
    processed = loader.run()

    assert output_path.exists()
    saved = pd.read_csv(output_path)
    assert_frame_equal(saved, processed, check_dtype=False)


def test_run_without_output_path_does_not_write(tmp_path, ctg_csv):
    CTGDataLoader(str(ctg_csv)).run()
    assert sorted(p.name for p in Path(tmp_path).iterdir()) == ["CTG.csv"]
