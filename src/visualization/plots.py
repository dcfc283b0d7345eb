"""Matplotlib figures for the CTG analysis; every helper saves and closes its figure."""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from src.evaluation.metrics import ConfusionMatrix


def _save(fig, out_path) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return out_path


def plot_correlation_heatmap(df: pd.DataFrame, out_path, title: str = "Correlation between CTG features") -> Path:
    """Tile heatmap of pairwise Pearson correlations."""
    corr = df.select_dtypes(include=[np.number]).corr()
    fig, ax = plt.subplots(figsize=(8, 7))
    im = ax.imshow(corr.values, cmap="RdBu_r", vmin=-1, vmax=1)
    ax.set_xticks(range(len(corr.columns)))
    ax.set_xticklabels(corr.columns, rotation=45, ha="right")
    ax.set_yticks(range(len(corr.index)))
    ax.set_yticklabels(corr.index)
    for i in range(corr.shape[0]):
        for j in range(corr.shape[1]):
            ax.text(j, i, f"{corr.values[i, j]:.2f}", ha="center", va="center", fontsize=7)
    fig.colorbar(im, ax=ax, fraction=0.046, pad=0.04)
    ax.set_title(title)
    return _save(fig, out_path)


def plot_class_balance(y, out_path, labels=("normal", "abnormal")) -> Path:
    counts = pd.Series(np.asarray(y)).value_counts().reindex([0, 1], fill_value=0)
    fig, ax = plt.subplots()
    bars = ax.bar(list(labels), counts.values, color=["tab:blue", "tab:red"])
    total = counts.sum()
    for bar, value in zip(bars, counts.values):
        share = value / total if total else 0.0
        ax.annotate(f"{value} ({share:.1%})", (bar.get_x() + bar.get_width() / 2, value),
                    ha="center", va="bottom")
    ax.set_ylabel("Records")
    ax.set_title("Class balance")
    return _save(fig, out_path)


def plot_confusion_matrix(cm: ConfusionMatrix, out_path, title: str = "Confusion matrix") -> Path:
    frame = cm.to_frame()
    fig, ax = plt.subplots()
    ax.imshow(frame.values, cmap="Blues")
    ax.set_xticks([0, 1])
    ax.set_xticklabels(frame.columns)
    ax.set_yticks([0, 1])
    ax.set_yticklabels(frame.index)
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Actual")
    for i in range(2):
        for j in range(2):
            ax.text(j, i, str(frame.values[i, j]), ha="center", va="center", fontsize=14)
    ax.set_title(f"{title}\nsensitivity={cm.sensitivity:.3f}  specificity={cm.specificity:.3f}")
    return _save(fig, out_path)


def plot_variable_importance(importance: pd.DataFrame, out_path, title: str = "Variable importance") -> Path:
    """One horizontal bar panel per importance column."""
    columns = list(importance.columns)
    fig, axes = plt.subplots(1, len(columns), figsize=(5 * len(columns), 5), squeeze=False)
    for ax, col in zip(axes[0], columns):
        values = importance[col].sort_values()
        ax.barh(values.index.astype(str), values.values)
        ax.set_xlabel(col.replace("_", " "))
    fig.suptitle(title)
    return _save(fig, out_path)


def plot_oob_by_mtry(grid_frame: pd.DataFrame, out_path) -> Path:
    """OOB error vs mtry, one line per node size."""
    ok = grid_frame[grid_frame["status"] == "ok"]
    fig, ax = plt.subplots(figsize=(8, 5))
    for node_size, group in ok.groupby("node_size"):
        group = group.sort_values("mtry")
        ax.plot(group["mtry"], group["oob_error"], marker="o", label=f"node size {node_size}")
    ax.set_xlabel("mtry (features per split)")
    ax.set_ylabel("OOB error")
    ax.set_title("Out-of-bag error by mtry")
    ax.legend(fontsize=7, ncol=2)
    return _save(fig, out_path)


def plot_sample_size(table: pd.DataFrame, out_path) -> Path:
    """Required sample size vs number of predictor parameters, one line per R²cs."""
    fig, ax = plt.subplots(figsize=(8, 5))
    for r2, group in table.groupby("r2_cs"):
        group = group.sort_values("parameters")
        ax.plot(group["parameters"], group["sample_size"], marker="o", label=f"R²cs = {r2:.2f}")
    ax.set_xlabel("Predictor parameters")
    ax.set_ylabel("Minimum sample size")
    ax.set_title("Sample size for a logistic prediction model")
    ax.legend()
    return _save(fig, out_path)
