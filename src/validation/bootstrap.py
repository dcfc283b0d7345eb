"""
Bootstrap (optimism-corrected) internal validation of the logistic model.

For each bootstrap resample the model is refit, its performance indexes are
computed on the resample (training) and on the original data (test); the
mean difference is the optimism, subtracted from the apparent performance.
"""

from __future__ import annotations

from typing import Dict

import numpy as np
import pandas as pd
from scipy.special import expit
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import roc_auc_score

from src.models.logistic_regression_model.model_trainer import build_logistic_pipeline
from src.utils.seeds import make_rng

STATISTICS = ["Dxy", "R2", "Intercept", "Slope", "Emax", "D", "U", "Q", "B", "g", "gp"]
COLUMNS = ["index.orig", "training", "test", "optimism", "index.corrected", "n"]


def log_likelihood(y, lp) -> float:
    y = np.asarray(y, dtype=float)
    lp = np.asarray(lp, dtype=float)
    return float(np.sum(y * lp - np.logaddexp(0.0, lp)))


def null_log_likelihood(y) -> float:
    y = np.asarray(y, dtype=float)
    n, events = len(y), y.sum()
    phi = events / n
    if phi in (0.0, 1.0):
        return 0.0
    return float(events * np.log(phi) + (n - events) * np.log(1 - phi))


def gini_mean_difference(x) -> float:
    """Mean absolute difference over all pairs."""
    x = np.sort(np.asarray(x, dtype=float))
    n = len(x)
    if n < 2:
        return float("nan")
    weights = 2 * np.arange(1, n + 1) - n - 1
    return float(2 * np.sum(weights * x) / (n * (n - 1)))


def nagelkerke_r2(lr: float, ll0: float, n: int) -> float:
    return float((1 - np.exp(-lr / n)) / (1 - np.exp(2 * ll0 / n)))


def calibration_fit(y, lp):
    """Intercept and slope of a logistic recalibration of y on lp."""
    model = LogisticRegression(C=np.inf, solver="lbfgs", max_iter=1000)
    model.fit(np.asarray(lp, dtype=float).reshape(-1, 1), np.asarray(y))
    return float(model.intercept_[0]), float(model.coef_.ravel()[0])


def performance_indexes(y, lp, apparent: bool) -> Dict[str, float]:
    """
    Indexes of a linear predictor against outcomes. ``apparent`` marks the
    lp of a model fit on these same rows (intercept 0, slope 1 by construction);
    otherwise the lp is recalibrated on y first.
    """
    y = np.asarray(y, dtype=float)
    lp = np.asarray(lp, dtype=float)
    n = len(y)
    ll0 = null_log_likelihood(y)
    ll_orig = log_likelihood(y, lp)

    if apparent:
        intercept, slope = 0.0, 1.0
        lr = -2 * (ll0 - ll_orig)
        u = -2 / n
        emax = 0.0
    else:
        intercept, slope = calibration_fit(y, lp)
        ll_cal = log_likelihood(y, intercept + slope * lp)
        lr = -2 * (ll0 - ll_cal)
        u = (-2 * ll_orig + 2 * ll_cal - 2) / n
        emax = float(np.max(np.abs(expit(intercept + slope * lp) - expit(lp))))

    p = expit(lp)
    d = (lr - 1) / n
    return {
        "Dxy": 2 * (roc_auc_score(y, lp) - 0.5),
        "R2": nagelkerke_r2(lr, ll0, n),
        "Intercept": intercept,
        "Slope": slope,
        "Emax": emax,
        "D": d,
        "U": u,
        "Q": d - u,
        "B": float(np.mean((p - y) ** 2)),
        "g": gini_mean_difference(lp),
        "gp": gini_mean_difference(p),
    }


def bootstrap_validate(
    X,
    y,
    B: int = 200,
    *,
    random_state: int = 123,
    model_params=None,
    verbose: bool = True,
) -> pd.DataFrame:
    """Table indexed by statistic with the columns of ``COLUMNS``."""
    if B < 1:
        raise ValueError(f"B must be >= 1, got {B}")
    X = np.asarray(X, dtype=float)
    y = np.asarray(y).astype(int)
    if len(np.unique(y)) != 2:
        raise ValueError("Bootstrap validation needs both outcome classes.")

    model = build_logistic_pipeline(model_params).fit(X, y)
    apparent = performance_indexes(y, model.decision_function(X), apparent=True)

    rng = make_rng(random_state)
    n = len(y)
    train_rows, test_rows = [], []
    skipped = 0
    for _ in range(B):
        idx = rng.integers(0, n, size=n)
        y_b = y[idx]
        if len(np.unique(y_b)) < 2:
            skipped += 1
            continue
        boot = build_logistic_pipeline(model_params).fit(X[idx], y_b)
        train_rows.append(performance_indexes(y_b, boot.decision_function(X[idx]), apparent=True))
        test_rows.append(performance_indexes(y, boot.decision_function(X), apparent=False))

    if skipped:
        print(f"[WARN] Skipped {skipped} single-class bootstrap resamples.")
    if not train_rows:
        raise RuntimeError("No usable bootstrap resample.")

    training = pd.DataFrame(train_rows)[STATISTICS].mean()
    test = pd.DataFrame(test_rows)[STATISTICS].mean()
    table = pd.DataFrame(
        {
            "index.orig": pd.Series(apparent)[STATISTICS],
            "training": training,
            "test": test,
        }
    )
    table["optimism"] = table["training"] - table["test"]
    table["index.corrected"] = table["index.orig"] - table["optimism"]
    table["n"] = len(train_rows)
    table.index.name = "statistic"

    if verbose:
        print(f"[INFO] Bootstrap validation complete ({len(train_rows)} resamples).")
    return table[COLUMNS]


def format_validation_summary(table: pd.DataFrame, digits: int = 4) -> str:
    n = int(table["n"].iloc[0]) if len(table) else 0
    body = table.drop(columns=["n"]).round(digits).to_string()
    return f"Bootstrap internal validation (B = {n} resamples)\n{body}\n"
