import json
import os
from pathlib import Path

import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.inspection import permutation_importance
from sklearn.model_selection import StratifiedKFold, cross_val_score

from .config import MODEL_CONFIG, TRAINING_CONFIG
from src.evaluation.metrics import ConfusionMatrix, classification_summary
from src.pipelines.grid_search import HyperparameterCandidate, oob_error
from src.visualization import plots

os.environ["MLFLOW_ENABLE_LOGGED_MODELS"] = "false"

try:
    import mlflow
    import mlflow.sklearn
    _MLFLOW_AVAILABLE = True
except Exception:
    _MLFLOW_AVAILABLE = False


class ModelTrainer:
    """
    Trains, evaluates and explains a Random Forest classifier
    (normal vs abnormal CTG).
    """

    def __init__(self, model_params=None, training_params=None,
                 use_mlflow: bool = True,
                 mlflow_experiment: str | None = None,
                 mlflow_tracking_uri: str | None = None,
                 tags: dict | None = None,
                 reports_dir: str = "reports"):
        self.model_params = {**MODEL_CONFIG, **(model_params or {})}
        self.training_params = {**TRAINING_CONFIG, **(training_params or {})}
        self.model = RandomForestClassifier(**self.model_params)
        self.feature_names = None
        self.reports_dir = Path(reports_dir)

        self.use_mlflow = bool(use_mlflow and _MLFLOW_AVAILABLE)
        self.mlflow_experiment = (
            mlflow_experiment
            or os.getenv("RF_EXPERIMENT_NAME")
            or os.getenv("EXPERIMENT_NAME", "ctg-classifier")
        )
        self.mlflow_tracking_uri = mlflow_tracking_uri or os.getenv("MLFLOW_TRACKING_URI")
        self.tags = tags or {"model_family": "random_forest"}

        if self.use_mlflow and self.mlflow_tracking_uri:
            mlflow.set_tracking_uri(self.mlflow_tracking_uri)

    @classmethod
    def from_candidate(cls, candidate: HyperparameterCandidate, **kwargs):
        """Trainer configured with a tuned (mtry, node size) pair."""
        model_params = {**(kwargs.pop("model_params", None) or {}), **candidate.to_model_params()}
        return cls(model_params=model_params, **kwargs)

    # ---------------------- MLflow helpers ----------------------
    def _mlflow_start(self, run_name: str | None = None):
        if not self.use_mlflow:
            return None
        if mlflow.active_run() is not None:
            return mlflow.active_run()
        mlflow.set_experiment(self.mlflow_experiment)
        return mlflow.start_run(run_name=run_name)

    def _mlflow_log_params(self, extra: dict | None = None):
        if not self.use_mlflow:
            return
        mlflow.log_params({f"model__{k}": v for k, v in self.model_params.items()})
        mlflow.log_params({f"train__{k}": v for k, v in self.training_params.items()})
        if extra:
            mlflow.log_params(extra)

    def _mlflow_log_metrics(self, metrics: dict):
        if not self.use_mlflow:
            return
        mlflow.log_metrics({k: float(v) for k, v in metrics.items()})

    def _mlflow_log_artifact(self, path):
        if self.use_mlflow:
            mlflow.log_artifact(str(path))

    # ---------------------- core ----------------------
    def train(self, X_train, y_train):
        print("[INFO] Training Random Forest classifier...")
        self.feature_names = list(getattr(X_train, "columns", range(X_train.shape[1])))
        self.model.fit(X_train, y_train)
        print(f"[INFO] Training complete. OOB error: {self.oob_error():.4f}")
        return self.model

    def predict(self, X):
        # majority vote across trees
        return self.model.predict(X)

    def oob_error(self) -> float:
        return oob_error(self.model)

    def confusion_matrix(self, X, y) -> ConfusionMatrix:
        return ConfusionMatrix.from_predictions(y, self.predict(X))

    def evaluate(self, X_train, X_test, y_train, y_test):
        print("[INFO] Evaluating model performance...")
        metrics = {"oob_error": self.oob_error()}
        metrics.update(classification_summary(y_train, self.predict(X_train), prefix="train_"))
        metrics.update(classification_summary(y_test, self.predict(X_test), prefix="test_"))
        print("[INFO] Model Evaluation:")
        for k in ("oob_error", "test_accuracy", "test_sensitivity", "test_specificity"):
            print(f"   {k}: {metrics[k]:.4f}")
        return metrics

    def feature_importance(self, X_test=None, y_test=None) -> pd.DataFrame:
        """
        Mean decrease in impurity (Gini) and, when a held-out set is given,
        permutation importance (mean decrease in accuracy).
        """
        importance = pd.DataFrame(
            {"mean_decrease_gini": self.model.feature_importances_},
            index=pd.Index(self.feature_names, name="feature"),
        )
        if X_test is not None and y_test is not None:
            perm = permutation_importance(
                self.model,
                X_test,
                y_test,
                scoring="accuracy",
                n_repeats=self.training_params.get("n_permutation_repeats", 10),
                random_state=self.model_params.get("random_state"),
            )
            importance["mean_decrease_accuracy"] = perm.importances_mean
        return importance.sort_values("mean_decrease_gini", ascending=False)

    def cross_validate(self, X, y):
        print("[INFO] Running cross-validation...")
        cv = StratifiedKFold(
            n_splits=self.training_params.get("cv_folds", 5),
            shuffle=True,
            random_state=self.model_params.get("random_state"),
        )
        scores = cross_val_score(self.model, X, y, scoring="accuracy", cv=cv)
        print(f"[INFO] CV accuracy mean: {scores.mean():.4f} ± {scores.std():.4f}")
        return scores

    def save_model(self, model_type="random_forest", timestamp=None):
        """
        Save model artifact under a unique versioned filename only.
        """
        import datetime, joblib

        if timestamp is None:
            timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")

        versioned_dir = f"models/{model_type}/artifacts"
        os.makedirs(versioned_dir, exist_ok=True)
        versioned_model_path = os.path.join(versioned_dir, f"model_{timestamp}.pkl")
        joblib.dump(self.model, versioned_model_path)

        print(f"[INFO] Saved versioned model to: {versioned_model_path}")
        return versioned_model_path

    def _ensure_output_dirs(self):
        (self.reports_dir / "figures").mkdir(parents=True, exist_ok=True)

    def run(self, X_train, X_test, y_train, y_test, model_type="random_forest",
            timestamp=None, save_model: bool = True):
        """
        Full training + evaluation pipeline for the Random Forest.
        Writes figures and metrics under reports/ and logs them to MLflow.
        """
        self._ensure_output_dirs()
        figures = self.reports_dir / "figures"
        print("[INFO] Starting Random Forest training pipeline...")

        owns_run = self.use_mlflow and mlflow.active_run() is None
        self._mlflow_start(run_name="random_forest_run")
        try:
            if self.use_mlflow:
                mlflow.set_tags({**self.tags, "stage": os.getenv("RUN_STAGE", "dev")})
            self._mlflow_log_params({"n_train": int(len(X_train)), "n_test": int(len(X_test))})

            self.train(X_train, y_train)
            metrics = self.evaluate(X_train, X_test, y_train, y_test)
            self._mlflow_log_metrics(metrics)

            cm_path = plots.plot_confusion_matrix(
                self.confusion_matrix(X_test, y_test),
                figures / "confusion_matrix_rf.png",
                title="Random Forest - test confusion matrix",
            )
            self._mlflow_log_artifact(cm_path)

            importance = self.feature_importance(X_test, y_test)
            imp_path = plots.plot_variable_importance(
                importance, figures / "variable_importance_rf.png"
            )
            self._mlflow_log_artifact(imp_path)

            metrics_path = self.reports_dir / "metrics_rf.json"
            with open(metrics_path, "w") as f:
                json.dump({k: float(v) for k, v in metrics.items()}, f, indent=2)
            self._mlflow_log_artifact(metrics_path)

            if save_model:
                saved_path = self.save_model(model_type=model_type, timestamp=timestamp)
                self._mlflow_log_artifact(saved_path)
        finally:
            if owns_run:
                mlflow.end_run()

        print("[INFO] Random Forest training pipeline complete.\n")
        return metrics
