import random

import numpy as np

from src.utils import env as env_mod
from src.utils import seeds

ENV_KEYS = ["ENV", "EXPERIMENT_NAME", "MLFLOW_TRACKING_URI", "CTG_DATA_PATH", "SEED"]


def test_load_env_defaults_and_env_file(monkeypatch, tmp_path):
    # setenv first so monkeypatch restores the original state afterwards
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)

    # With .env present
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text(
        "ENV=prod\nEXPERIMENT_NAME=my-exp\nMLFLOW_TRACKING_URI=http://mlflow\nCTG_DATA_PATH=/data/CTG.csv\nSEED=7\n"
    )
    values = env_mod.load_env()
    assert values["ENV"] == "prod"
    assert values["EXPERIMENT_NAME"] == "my-exp"
    assert values["MLFLOW_TRACKING_URI"] == "http://mlflow"
    assert values["CTG_DATA_PATH"] == "/data/CTG.csv"
    assert values["SEED"] == 7

    # Without .env, falls back to environment variables
    (tmp_path / ".env").unlink()
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("EXPERIMENT_NAME", "fallback-exp")
    values = env_mod.load_env()
    assert values["EXPERIMENT_NAME"] == "fallback-exp"
    assert values["ENV"] == "local"
    assert values["CTG_DATA_PATH"] is None
    assert values["SEED"] is None
    assert "REPORTS_DIR" not in values


def test_set_global_seed_is_reproducible():
    seeds.set_global_seed(123)
    a = (random.random(), np.random.rand())
    seeds.set_global_seed(123)
    b = (random.random(), np.random.rand())
    assert a == b


def test_make_rng_is_independent_of_global_state():
    seeds.set_global_seed(1)
    first = seeds.make_rng(5).random(3)
    seeds.set_global_seed(2)
    second = seeds.make_rng(5).random(3)
    assert np.array_equal(first, second)
