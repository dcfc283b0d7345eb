import json
import os
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import roc_auc_score
from sklearn.model_selection import StratifiedKFold, cross_val_score
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from .config import MODEL_CONFIG, TRAINING_CONFIG
from src.evaluation.metrics import ConfusionMatrix, classification_summary, classify
from src.visualization import plots

# --- MLflow opcional ---
os.environ["MLFLOW_ENABLE_LOGGED_MODELS"] = "false"
try:
    import mlflow
    import mlflow.sklearn
    _MLFLOW_AVAILABLE = True
except Exception:
    _MLFLOW_AVAILABLE = False


def _to_float(v):
    # Evita errores con tipos numpy al loguear
    try:
        return float(v)
    except Exception:
        return v


def build_logistic_pipeline(model_params=None) -> Pipeline:
    """Standardized inputs + unpenalized logistic regression."""
    params = {**MODEL_CONFIG, **(model_params or {})}
    return Pipeline(
        steps=[
            ("scaler", StandardScaler()),
            ("classifier", LogisticRegression(**params)),
        ]
    )


class ModelTrainer:
    """
    Trains and evaluates a logistic regression for normal vs abnormal CTG,
    classifying at a fixed probability cutoff.
    """

    def __init__(
        self,
        model_params=None,
        training_params=None,
        use_mlflow: bool = True,
        mlflow_experiment: str | None = None,
        mlflow_tracking_uri: str | None = None,
        tags: dict | None = None,
        reports_dir: str = "reports",
    ):
        self.model_params = {**MODEL_CONFIG, **(model_params or {})}
        self.training_params = {**TRAINING_CONFIG, **(training_params or {})}
        self.threshold = float(self.training_params.get("threshold", 0.5))
        self.model = build_logistic_pipeline(self.model_params)
        self.feature_names = None
        self.reports_dir = Path(reports_dir)

        # ---- Opciones MLflow ----
        self.use_mlflow = bool(use_mlflow and _MLFLOW_AVAILABLE)
        self.mlflow_experiment = (
            mlflow_experiment
            or os.getenv("LOGIT_EXPERIMENT_NAME")
            or os.getenv("EXPERIMENT_NAME", "ctg-classifier")
        )
        self.mlflow_tracking_uri = mlflow_tracking_uri or os.getenv("MLFLOW_TRACKING_URI")
        self.tags = tags or {"model_family": "logistic_regression"}

        if self.use_mlflow and self.mlflow_tracking_uri:
            mlflow.set_tracking_uri(self.mlflow_tracking_uri)

    def _mlflow_start(self, run_name: str | None = None):
        if not self.use_mlflow:
            return None
        # Evita "nested runs" si ya hay uno activo
        if mlflow.active_run() is not None:
            return mlflow.active_run()
        mlflow.set_experiment(self.mlflow_experiment)
        return mlflow.start_run(run_name=run_name)

    def _mlflow_log_params(self):
        if not self.use_mlflow:
            return
        mlflow.log_params({f"model__{k}": _to_float(v) for k, v in self.model_params.items()})
        mlflow.log_params({f"train__{k}": v for k, v in self.training_params.items()})

    def _mlflow_log_metrics(self, metrics: dict, prefix: str = ""):
        if not self.use_mlflow:
            return
        mlflow.log_metrics({f"{prefix}{k}": _to_float(v) for k, v in metrics.items()})

    def _mlflow_log_artifact(self, path):
        if self.use_mlflow:
            mlflow.log_artifact(str(path))

    def train(self, X_train, y_train):
        print("[INFO] Training Logistic Regression model...")
        self.feature_names = list(getattr(X_train, "columns", range(X_train.shape[1])))
        self.model.fit(X_train, y_train)
        print("[INFO] Training complete.")
        return self.model

    def predict_proba(self, X) -> np.ndarray:
        """P(abnormal)."""
        return self.model.predict_proba(X)[:, 1]

    def linear_predictor(self, X) -> np.ndarray:
        return self.model.decision_function(X)

    def predict(self, X, threshold: float | None = None) -> np.ndarray:
        return classify(self.predict_proba(X), self.threshold if threshold is None else threshold)

    def confusion_matrix(self, X, y, threshold: float | None = None) -> ConfusionMatrix:
        return ConfusionMatrix.from_predictions(y, self.predict(X, threshold))

    def evaluate(self, X_train, X_test, y_train, y_test):
        print(f"[INFO] Evaluating model performance (cutoff={self.threshold})...")
        metrics = {}
        metrics.update(classification_summary(y_train, self.predict(X_train), prefix="train_"))
        metrics.update(classification_summary(y_test, self.predict(X_test), prefix="test_"))
        if len(np.unique(y_test)) == 2:
            metrics["test_roc_auc"] = roc_auc_score(y_test, self.predict_proba(X_test))
        print("[INFO] Model Evaluation:")
        for k in ("test_accuracy", "test_sensitivity", "test_specificity"):
            print(f"   {k}: {metrics[k]:.4f}")
        return metrics

    def coefficients(self) -> pd.DataFrame:
        """
        Coefficients on the original feature scale, with odds ratios per unit
        increase of each feature.
        """
        scaler = self.model.named_steps["scaler"]
        clf = self.model.named_steps["classifier"]
        coef_std = clf.coef_.ravel()
        coef = coef_std / scaler.scale_
        intercept = float(clf.intercept_[0] - np.sum(coef * scaler.mean_))

        table = pd.DataFrame(
            {
                "coefficient": np.concatenate([[intercept], coef]),
                "coefficient_per_sd": np.concatenate([[np.nan], coef_std]),
            },
            index=pd.Index(["(Intercept)"] + list(self.feature_names), name="term"),
        )
        table["odds_ratio"] = np.exp(table["coefficient"])
        return table

    def cross_validate(self, X, y):
        print("[INFO] Running cross-validation...")
        cv = StratifiedKFold(n_splits=self.training_params.get("cv_folds", 5), shuffle=True, random_state=123)
        scores = cross_val_score(self.model, X, y, scoring="roc_auc", cv=cv)
        print(f"[INFO] CV ROC AUC mean: {scores.mean():.4f} ± {scores.std():.4f}")
        return scores

    def save_model(self, model_type="logistic_regression", timestamp=None):
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

    def run(self, X_train, X_test, y_train, y_test, model_type="logistic_regression",
            timestamp=None, save_model: bool = True):
        """
        Full training + evaluation pipeline for the logistic model.
        """
        print("[INFO] Starting Logistic Regression training pipeline...")
        figures = self.reports_dir / "figures"
        figures.mkdir(parents=True, exist_ok=True)

        owns_run = self.use_mlflow and mlflow.active_run() is None
        self._mlflow_start(run_name=f"{model_type}_run")
        try:
            self._mlflow_log_params()

            # 1) Entrenar
            self.train(X_train, y_train)

            # 2) Evaluar
            metrics = self.evaluate(X_train, X_test, y_train, y_test)
            self._mlflow_log_metrics(metrics)

            coef_path = self.reports_dir / "coefficients_logit.csv"
            self.coefficients().to_csv(coef_path)
            self._mlflow_log_artifact(coef_path)

            metrics_path = self.reports_dir / "metrics_logit.json"
            with open(metrics_path, "w") as f:
                json.dump({k: float(v) for k, v in metrics.items()}, f, indent=2)
            self._mlflow_log_artifact(metrics_path)

            cm_path = plots.plot_confusion_matrix(
                self.confusion_matrix(X_test, y_test),
                figures / "confusion_matrix_logit.png",
                title=f"Logistic Regression - test confusion matrix (cutoff {self.threshold})",
            )
            self._mlflow_log_artifact(cm_path)

            # 3) Guardar modelo (.pkl)
            if save_model:
                saved_path = self.save_model(model_type=model_type, timestamp=timestamp)
                self._mlflow_log_artifact(saved_path)

            print("[INFO] Logistic Regression training pipeline complete.\n")
            return metrics

        finally:
            # Cierra el run solo si lo abrimos aquí
            if owns_run:
                mlflow.end_run()
