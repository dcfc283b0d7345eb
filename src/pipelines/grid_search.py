"""Out-of-bag grid search over (mtry, node size) for the random forest."""

from __future__ import annotations

import math
from dataclasses import dataclass
from itertools import product
from typing import Iterable, Optional, Sequence, Tuple

import pandas as pd
from joblib import Parallel, delayed
from sklearn.ensemble import RandomForestClassifier

from src.models.random_forest_model.config import GRID_CONFIG

STATUS_OK = "ok"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class HyperparameterCandidate:
    mtry: int
    node_size: int

    def to_model_params(self) -> dict:
        return {"max_features": self.mtry, "min_samples_leaf": self.node_size}


@dataclass(frozen=True)
class CandidateResult:
    candidate: HyperparameterCandidate
    oob_error: float
    status: str = STATUS_OK
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK and not math.isnan(self.oob_error)


@dataclass(frozen=True)
class GridSearchResult:
    """Scores in grid enumeration order plus the arg-min candidate."""

    results: Tuple[CandidateResult, ...]
    best: HyperparameterCandidate
    best_error: float

    @property
    def n_combinations(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> Tuple[CandidateResult, ...]:
        return tuple(r for r in self.results if not r.ok)

    def to_frame(self, sort: bool = True) -> pd.DataFrame:
        df = pd.DataFrame(
            {
                "mtry": [r.candidate.mtry for r in self.results],
                "node_size": [r.candidate.node_size for r in self.results],
                "oob_error": [r.oob_error for r in self.results],
                "status": [r.status for r in self.results],
                "message": [r.message for r in self.results],
            }
        )
        if sort:
            # stable sort keeps enumeration order among ties; failures last
            df = df.sort_values("oob_error", kind="mergesort", na_position="last")
        return df.reset_index(drop=True)


def inclusive_range(bounds: Sequence[int]) -> list[int]:
    """[start, stop] -> start..stop (both ends included)."""
    if len(bounds) != 2:
        raise ValueError(f"Expected [start, stop], got {list(bounds)}")
    start, stop = int(bounds[0]), int(bounds[1])
    if stop < start:
        raise ValueError(f"Empty range: start={start} > stop={stop}")
    return list(range(start, stop + 1))


def build_candidate_grid(
    mtry_values: Iterable[int], node_size_values: Iterable[int]
) -> Tuple[HyperparameterCandidate, ...]:
    """Cartesian product, mtry-major."""
    return tuple(
        HyperparameterCandidate(int(m), int(n))
        for m, n in product(list(mtry_values), list(node_size_values))
    )


def oob_error(model: RandomForestClassifier) -> float:
    """Out-of-bag misclassification rate of a fitted forest."""
    if not hasattr(model, "oob_score_"):
        raise ValueError("Model was not fitted with oob_score=True.")
    return float(1.0 - model.oob_score_)


def _check_candidate(candidate: HyperparameterCandidate, n_features: int) -> None:
    if not 1 <= candidate.mtry <= n_features:
        raise ValueError(f"mtry={candidate.mtry} outside [1, {n_features}]")
    if candidate.node_size < 1:
        raise ValueError(f"node_size={candidate.node_size} must be >= 1")


def evaluate_candidate(
    candidate: HyperparameterCandidate,
    X,
    y,
    *,
    n_estimators: int = GRID_CONFIG["n_estimators"],
    random_state: int = 123,
    n_jobs: int = 1,
) -> CandidateResult:
    """Fit one forest and score it; errors are captured in the result."""
    try:
        _check_candidate(candidate, X.shape[1])
        model = RandomForestClassifier(
            n_estimators=n_estimators,
            bootstrap=True,
            oob_score=True,
            random_state=random_state,
            n_jobs=n_jobs,
            **candidate.to_model_params(),
        )
        model.fit(X, y)
        return CandidateResult(candidate, oob_error(model))
    except Exception as exc:
        return CandidateResult(candidate, float("nan"), STATUS_FAILED, str(exc))


def select_best(results: Sequence[CandidateResult]) -> CandidateResult:
    """Lowest OOB error; the first one in enumeration order wins ties."""
    scored = [r for r in results if r.ok]
    if not scored:
        raise RuntimeError("Grid search failed: no candidate could be evaluated.")
    return min(scored, key=lambda r: r.oob_error)


def run_oob_grid_search(
    X,
    y,
    mtry_values: Iterable[int] = None,
    node_size_values: Iterable[int] = None,
    *,
    n_estimators: int = GRID_CONFIG["n_estimators"],
    random_state: int = 123,
    n_jobs: int = 1,
    verbose: bool = True,
) -> GridSearchResult:
    mtry_values = list(mtry_values) if mtry_values is not None else inclusive_range(GRID_CONFIG["mtry"])
    node_size_values = (
        list(node_size_values) if node_size_values is not None else inclusive_range(GRID_CONFIG["node_size"])
    )
    grid = build_candidate_grid(mtry_values, node_size_values)
    if verbose:
        print(f"[INFO] OOB grid search over {len(grid)} combinations "
              f"({len(mtry_values)} mtry x {len(node_size_values)} node sizes, "
              f"{n_estimators} trees each)...")

    # every candidate uses the same seed, so results do not depend on n_jobs
    if n_jobs == 1:
        results = [
            evaluate_candidate(c, X, y, n_estimators=n_estimators, random_state=random_state)
            for c in grid
        ]
    else:
        results = Parallel(n_jobs=n_jobs)(
            delayed(evaluate_candidate)(c, X, y, n_estimators=n_estimators, random_state=random_state)
            for c in grid
        )

    if verbose:
        for r in results:
            if not r.ok:
                print(f"[WARN] Candidate mtry={r.candidate.mtry}, node_size={r.candidate.node_size} "
                      f"failed: {r.message}")

    best = select_best(results)
    if verbose:
        print(f"[INFO] Best candidate: mtry={best.candidate.mtry}, "
              f"node_size={best.candidate.node_size}, OOB error={best.oob_error:.4f}")
    return GridSearchResult(tuple(results), best.candidate, best.oob_error)
