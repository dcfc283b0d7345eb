"""Utilities to load the CTG dataset and prepare feature matrices."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import pandas as pd
from sklearn.model_selection import train_test_split

from src.data.data_loader import CTGDataLoader, FEATURE_COLUMNS, SOURCE_LABEL, TARGET

DEFAULT_DATA_REL_PATH = Path("data/raw/CTG.csv")
DATA_PATH_ENV = "CTG_DATA_PATH"


@dataclass(frozen=True)
class FeatureConfig:
    """Captures the column selections used across experiments."""

    features: list[str]
    source_label: str = SOURCE_LABEL
    target: str = TARGET
    drop_columns: list[str] = field(default_factory=list)

    @property
    def model_features(self) -> list[str]:
        """Selected features that survive `drop_columns`."""
        return [c for c in self.features if c not in self.drop_columns]

    @property
    def n_features(self) -> int:
        return len(self.model_features)

    def to_dict(self) -> Dict[str, list[str]]:
        return {
            "features": self.features,
            "source_label": [self.source_label],
            "target": [self.target],
            "drop_columns": self.drop_columns,
        }

    @classmethod
    def from_dict(cls, cfg: Optional[dict]) -> "FeatureConfig":
        cfg = cfg or {}
        return cls(
            features=list(cfg.get("selected") or FEATURE_COLUMNS),
            target=cfg.get("target", TARGET),
            drop_columns=list(cfg.get("drop_columns") or []),
        )


DEFAULT_FEATURE_CONFIG = FeatureConfig(features=list(FEATURE_COLUMNS))


def infer_project_root(start: Optional[Path] = None) -> Path:
    """Walk upwards until we find the repository root."""
    search_path = start or Path.cwd()
    for candidate in [search_path, *search_path.parents]:
        if (candidate / "data").exists() and (candidate / "src").exists():
            return candidate
    raise FileNotFoundError("Could not infer project root (missing data/ or src/).")


def resolve_data_path(
    data_path: Optional[str | Path] = None,
    project_root: Optional[Path] = None,
    env_vars: Optional[dict] = None,
) -> Path:
    """Explicit path > CTG_DATA_PATH > <project root>/data/raw/CTG.csv."""
    env_path = (env_vars or {}).get(DATA_PATH_ENV)
    if data_path is not None:
        path = Path(data_path)
    elif env_path:
        path = Path(env_path)
    else:
        root = project_root or infer_project_root()
        path = root / DEFAULT_DATA_REL_PATH
    if not path.exists():
        raise FileNotFoundError(f"CTG dataset not found at {path}")
    return path


def load_dataset(
    data_path: Optional[str | Path] = None,
    config: FeatureConfig = DEFAULT_FEATURE_CONFIG,
    *,
    sep: str = ";",
    decimal: str = ".",
) -> pd.DataFrame:
    """Load, validate and clean the raw CSV into a labelled Dataset."""
    path = Path(data_path) if data_path is not None else resolve_data_path()
    loader = CTGDataLoader(
        str(path),
        features=config.features,
        drop_columns=config.drop_columns,
        target=config.target,
        sep=sep,
        decimal=decimal,
    )
    return loader.run()


def build_feature_frame(
    df: pd.DataFrame, config: FeatureConfig = DEFAULT_FEATURE_CONFIG
) -> Tuple[pd.DataFrame, pd.Series]:
    """Return feature matrix and target series based on the configuration."""
    required_columns = config.model_features + [config.target]

    missing = sorted(set(required_columns) - set(df.columns))
    if missing:
        raise ValueError(f"Missing columns in dataframe: {missing}")

    feature_df = df[config.model_features]
    target = df[config.target]
    return feature_df, target


def train_size_for(n_rows: int, train_fraction: float) -> int:
    """floor(train_fraction * n); both partitions must be non-empty."""
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")
    n_train = int(math.floor(train_fraction * n_rows))
    if n_train == 0 or n_train == n_rows:
        raise ValueError(
            f"Split of {n_rows} rows with train_fraction={train_fraction} "
            "leaves an empty partition."
        )
    return n_train


def split_train_test(
    feature_df: pd.DataFrame,
    target: pd.Series,
    *,
    train_fraction: float = 0.75,
    random_state: int = 123,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.Series, pd.Series]:
    """Uniform random partition without replacement, seed-controlled."""
    n_train = train_size_for(len(feature_df), train_fraction)
    return train_test_split(
        feature_df,
        target,
        train_size=n_train,
        test_size=len(feature_df) - n_train,
        shuffle=True,
        random_state=random_state,
    )
