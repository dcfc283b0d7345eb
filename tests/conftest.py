import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

# Ensure project root and /src are on sys.path for imports like `src.*` or `data.*`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
for path in (PROJECT_ROOT, SRC_DIR):
    str_path = str(path)
    if str_path not in sys.path:
        sys.path.insert(0, str_path)

FEATURES = ["LB", "AC", "FM", "UC", "DL", "DS", "DP", "ASTV", "ALTV"]


@pytest.fixture
def raw_ctg():
    """Synthetic CTG-like frame: abnormal records have high ASTV/ALTV and fewer accelerations."""
    rng = np.random.default_rng(0)
    n = 160
    nsp = rng.choice([1, 2, 3], size=n, p=[0.7, 0.2, 0.1])
    abnormal = (nsp != 1).astype(float)
    return pd.DataFrame(
        {
            "LB": rng.normal(133, 9, n) + 4 * abnormal,
            "AC": np.clip(rng.normal(0.003, 0.002, n) - 0.002 * abnormal, 0, None),
            "FM": np.abs(rng.normal(0.01, 0.02, n)),
            "UC": np.abs(rng.normal(0.004, 0.002, n)),
            "DL": np.abs(rng.normal(0.002, 0.002, n)),
            "DS": np.abs(rng.normal(0.0, 1e-5, n)),
            "DP": np.abs(rng.normal(0.0, 0.0005, n)) * rng.binomial(1, 0.1 + 0.2 * abnormal),
            "ASTV": rng.normal(45, 12, n) + 10 * abnormal,
            "ALTV": np.clip(rng.normal(8, 8, n) + 6 * abnormal, 0, None),
            "NSP": nsp,
        }
    )


@pytest.fixture
def ctg_csv(tmp_path, raw_ctg):
    path = tmp_path / "CTG.csv"
    raw_ctg.to_csv(path, sep=";", index=False)
    return path


@pytest.fixture
def labelled_ctg(raw_ctg):
    df = raw_ctg.copy()
    df["abnormal"] = (df["NSP"] != 1).astype(int)
    return df.drop(columns=["NSP"])
