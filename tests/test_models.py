import json
import types
from pathlib import Path

import joblib
import numpy as np
import pytest

from src.models.logistic_regression_model.model_trainer import ModelTrainer as LogisticTrainer
from src.models.random_forest_model.model_trainer import ModelTrainer as RandomForestTrainer
from src.pipelines.grid_search import HyperparameterCandidate

FEATURES = ["LB", "AC", "FM", "UC", "DL", "DS", "DP", "ASTV", "ALTV"]


@pytest.fixture
def classification_data(labelled_ctg):
    X = labelled_ctg[FEATURES]
    y = labelled_ctg["abnormal"]
    return X.iloc[:120], X.iloc[120:], y.iloc[:120], y.iloc[120:]


def assert_metrics_structure(metrics: dict):
    expected_keys = {"test_tp", "test_fp", "test_tn", "test_fn", "test_sensitivity", "test_specificity"}
    assert expected_keys.issubset(metrics.keys())
    assert metrics["test_tp"] + metrics["test_fp"] + metrics["test_tn"] + metrics["test_fn"] == 40


@pytest.fixture
def stub_mlflow(monkeypatch, tmp_path):
    import mlflow

    state = {"uri": f"file://{tmp_path}", "experiment": None, "active": None, "ended": 0}

    class DummyRun:
        def __init__(self, run_id="run-123"):
            self.info = types.SimpleNamespace(run_id=run_id)

    def start_run(run_name=None):
        state["active"] = DummyRun()
        state["run_name"] = run_name
        return state["active"]

    def active_run():
        return state.get("active")

    def end_run():
        state["active"] = None
        state["ended"] += 1

    def set_tracking_uri(uri):
        state["uri"] = uri

    def set_experiment(name):
        state["experiment"] = name

    def set_tags(tags):
        state["tags"] = tags

    def log_params(params):
        state.setdefault("params", {}).update(params)

    def log_metrics(metrics):
        state["metrics"] = metrics

    def log_artifact(path, artifact_path=None):
        state.setdefault("artifacts", []).append(Path(path))

    monkeypatch.setattr(mlflow, "start_run", start_run)
    monkeypatch.setattr(mlflow, "active_run", active_run)
    monkeypatch.setattr(mlflow, "end_run", end_run)
    monkeypatch.setattr(mlflow, "set_tracking_uri", set_tracking_uri)
    monkeypatch.setattr(mlflow, "set_experiment", set_experiment)
    monkeypatch.setattr(mlflow, "set_tags", set_tags)
    monkeypatch.setattr(mlflow, "log_params", log_params)
    monkeypatch.setattr(mlflow, "log_metrics", log_metrics)
    monkeypatch.setattr(mlflow, "log_artifact", log_artifact)

    return state


def test_logistic_trainer_train_evaluate_and_save(tmp_path, monkeypatch, classification_data):
    X_train, X_test, y_train, y_test = classification_data
    monkeypatch.chdir(tmp_path)

    trainer = LogisticTrainer(use_mlflow=False)
    trainer.train(X_train, y_train)
    metrics = trainer.evaluate(X_train, X_test, y_train, y_test)
    assert_metrics_structure(metrics)
    assert 0.5 < metrics["test_roc_auc"] <= 1.0

    proba = trainer.predict_proba(X_test)
    assert ((proba >= 0) & (proba <= 1)).all()
    assert trainer.predict(X_test).tolist() == (proba > 0.5).astype(int).tolist()
    assert trainer.predict(X_test, threshold=0.0).sum() == len(X_test)

    path = trainer.save_model(timestamp="20240101")
    expected = tmp_path / "models" / "logistic_regression" / "artifacts" / "model_20240101.pkl"
    assert Path(path).resolve() == expected
    assert joblib.load(path)


def test_logistic_coefficients_are_on_raw_scale(classification_data):
    X_train, _, y_train, _ = classification_data
    trainer = LogisticTrainer(use_mlflow=False)
    trainer.train(X_train, y_train)

    table = trainer.coefficients()
    assert list(table.index) == ["(Intercept)"] + FEATURES
    lp = table.loc["(Intercept)", "coefficient"] + X_train.values @ table["coefficient"].values[1:]
    np.testing.assert_allclose(lp, trainer.linear_predictor(X_train), rtol=1e-6, atol=1e-6)
    np.testing.assert_allclose(table["odds_ratio"], np.exp(table["coefficient"]))


def test_logistic_trainer_run_executes_with_stubbed_mlflow(tmp_path, monkeypatch, classification_data, stub_mlflow):
    X_train, X_test, y_train, y_test = classification_data
    monkeypatch.chdir(tmp_path)

    trainer = LogisticTrainer(use_mlflow=True, reports_dir=str(tmp_path / "reports"))
    metrics = trainer.run(X_train, X_test, y_train, y_test, timestamp="20240110")

    assert_metrics_structure(metrics)
    saved = json.loads((tmp_path / "reports" / "metrics_logit.json").read_text())
    assert saved["test_sensitivity"] == pytest.approx(metrics["test_sensitivity"])
    assert (tmp_path / "reports" / "figures" / "confusion_matrix_logit.png").exists()
    assert (tmp_path / "models" / "logistic_regression" / "artifacts" / "model_20240110.pkl").exists()
    assert stub_mlflow["ended"] == 1
    assert "model__solver" in stub_mlflow["params"]


def test_random_forest_trainer_train_evaluate_and_save(tmp_path, monkeypatch, classification_data):
    X_train, X_test, y_train, y_test = classification_data
    monkeypatch.chdir(tmp_path)

    trainer = RandomForestTrainer(
        model_params={"n_estimators": 40, "random_state": 0, "n_jobs": 1},
        training_params={"cv_folds": 2, "n_permutation_repeats": 2},
        use_mlflow=False,
    )
    trainer.train(X_train, y_train)
    metrics = trainer.evaluate(X_train, X_test, y_train, y_test)
    assert_metrics_structure(metrics)
    assert 0.0 <= metrics["oob_error"] <= 1.0

    importance = trainer.feature_importance(X_test, y_test)
    assert set(importance.index) == set(FEATURES)
    assert list(importance.columns) == ["mean_decrease_gini", "mean_decrease_accuracy"]
    assert importance["mean_decrease_gini"].sum() == pytest.approx(1.0)

    scores = trainer.cross_validate(X_train, y_train)
    assert len(scores) == 2

    path = trainer.save_model(timestamp="20240102")
    expected = tmp_path / "models" / "random_forest" / "artifacts" / "model_20240102.pkl"
    assert Path(path).resolve() == expected
    assert joblib.load(path)


def test_random_forest_trainer_from_candidate_sets_hyperparameters():
    trainer = RandomForestTrainer.from_candidate(
        HyperparameterCandidate(mtry=4, node_size=6),
        model_params={"n_estimators": 10},
        use_mlflow=False,
    )
    params = trainer.model.get_params()
    assert params["max_features"] == 4
    assert params["min_samples_leaf"] == 6
    assert params["n_estimators"] == 10
    assert params["oob_score"] is True


def test_random_forest_trainer_run_executes_with_stubbed_mlflow(tmp_path, monkeypatch, classification_data, stub_mlflow):
    X_train, X_test, y_train, y_test = classification_data
    monkeypatch.chdir(tmp_path)

    trainer = RandomForestTrainer(
        model_params={"n_estimators": 30, "random_state": 0, "n_jobs": 1},
        training_params={"n_permutation_repeats": 2},
        use_mlflow=True,
        reports_dir=str(tmp_path / "reports"),
    )
    metrics = trainer.run(X_train, X_test, y_train, y_test, timestamp="20240111")

    assert_metrics_structure(metrics)
    assert (tmp_path / "reports" / "metrics_rf.json").exists()
    assert (tmp_path / "reports" / "figures" / "variable_importance_rf.png").exists()
    assert (tmp_path / "models" / "random_forest" / "artifacts" / "model_20240111.pkl").exists()
    assert stub_mlflow["tags"]["model_family"] == "random_forest"
    assert stub_mlflow["ended"] == 1
