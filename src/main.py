# src/main.py
import argparse
import json
from pathlib import Path

import pandas as pd
import yaml

from src.data.data_loader import CTGDataLoader
from src.data.feature_engineer import FeatureEngineer
from src.models.logistic_regression_model import model_trainer as logit_mod
from src.models.random_forest_model import model_trainer as rf_mod
from src.pipelines import grid_search as gs
from src.pipelines.data_setup import FeatureConfig, resolve_data_path
from src.planning import sample_size as ss
from src.utils.env import load_env
from src.utils.seeds import set_global_seed
from src.validation import bootstrap
from src.visualization import plots

STAGES = ["all", "explore", "logistic", "grid_search", "random_forest", "sample_size", "validate"]
GRID_RESULTS_FILE = "grid_search_oob.csv"


def load_cfg(path="params.yaml"):
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _banner(title):
    print("=" * 70); print(f"[INFO] {title}"); print("=" * 70)


def _reports_dir(cfg) -> Path:
    path = Path(cfg.get("reports", {}).get("dir", "reports"))
    (path / "figures").mkdir(parents=True, exist_ok=True)
    return path


def _use_mlflow(cfg) -> bool:
    return bool(cfg.get("tracking", {}).get("use_mlflow", False))


def run_data_loader(cfg, data_path=None, env_vars=None):
    _banner("STEP 1: Loading CTG dataset")
    data_cfg = cfg.get("data", {})
    feature_cfg = FeatureConfig.from_dict(cfg.get("features"))
    path = resolve_data_path(data_path or (env_vars or {}).get("CTG_DATA_PATH") or data_cfg.get("raw_path"))
    loader = CTGDataLoader(
        str(path),
        data_cfg.get("processed_path"),
        features=feature_cfg.features,
        drop_columns=feature_cfg.drop_columns,
        target=feature_cfg.target,
        sep=data_cfg.get("sep", ";"),
        decimal=data_cfg.get("decimal", "."),
    )
    return loader.run()


def run_split(cfg, df, seed):
    _banner("STEP 2: Train/test split")
    feature_cfg = FeatureConfig.from_dict(cfg.get("features"))
    engineer = FeatureEngineer(
        feature_cfg.model_features,
        feature_cfg.target,
        train_fraction=cfg.get("split", {}).get("train_fraction", 0.75),
        random_state=seed,
    )
    return engineer.run(df)


def run_explore(cfg, df):
    _banner("Descriptive visualization")
    figures = _reports_dir(cfg) / "figures"
    feature_cfg = FeatureConfig.from_dict(cfg.get("features"))
    paths = {
        "correlation": plots.plot_correlation_heatmap(
            df[feature_cfg.model_features], figures / "correlation_heatmap.png"
        ),
        "class_balance": plots.plot_class_balance(df[feature_cfg.target], figures / "class_balance.png"),
    }
    print(df[feature_cfg.model_features].describe().T.round(2).to_string())
    for name, path in paths.items():
        print(f"[INFO] Saved {name} figure to: {path}")
    return paths


def run_logistic(cfg, X_train, X_test, y_train, y_test):
    _banner("Logistic regression")
    params = dict(cfg.get("train", {}).get("logistic_regression", {}))
    threshold = params.pop("threshold", 0.5)
    trainer = logit_mod.ModelTrainer(
        model_params=params,
        training_params={"threshold": threshold},
        use_mlflow=_use_mlflow(cfg),
        reports_dir=str(_reports_dir(cfg)),
    )
    metrics = trainer.run(X_train, X_test, y_train, y_test,
                          save_model=cfg.get("train", {}).get("save_models", True))
    print(trainer.coefficients().round(4).to_string())
    return metrics


def run_grid_search(cfg, X_train, y_train, seed):
    _banner("Random forest OOB grid search")
    grid_cfg = cfg.get("grid_search", {})
    result = gs.run_oob_grid_search(
        X_train,
        y_train,
        gs.inclusive_range(grid_cfg.get("mtry", [2, 9])),
        gs.inclusive_range(grid_cfg.get("node_size", [1, 9])),
        n_estimators=grid_cfg.get("n_estimators", 500),
        random_state=seed,
        n_jobs=grid_cfg.get("n_jobs", 1),
    )
    reports = _reports_dir(cfg)
    frame = result.to_frame()
    frame.to_csv(reports / GRID_RESULTS_FILE, index=False)
    plots.plot_oob_by_mtry(frame, reports / "figures" / "oob_error_by_mtry.png")
    print(frame.head(10).to_string(index=False))
    return result


def _load_best_candidate(cfg):
    path = _reports_dir(cfg) / GRID_RESULTS_FILE
    if not path.exists():
        return None
    frame = pd.read_csv(path)
    frame = frame[frame["status"] == "ok"]
    if frame.empty:
        return None
    row = frame.iloc[0]
    return gs.HyperparameterCandidate(int(row["mtry"]), int(row["node_size"]))


def run_random_forest(cfg, X_train, X_test, y_train, y_test, seed, candidate=None):
    _banner("Random forest (final model)")
    candidate = candidate or _load_best_candidate(cfg)
    params = {**cfg.get("train", {}).get("random_forest", {}), "random_state": seed}
    kwargs = {
        "model_params": params,
        "use_mlflow": _use_mlflow(cfg),
        "reports_dir": str(_reports_dir(cfg)),
    }
    if candidate is None:
        print("[WARN] No grid search results found, using default hyperparameters.")
        trainer = rf_mod.ModelTrainer(**kwargs)
    else:
        print(f"[INFO] Retraining with mtry={candidate.mtry}, node_size={candidate.node_size}")
        trainer = rf_mod.ModelTrainer.from_candidate(candidate, **kwargs)
    return trainer.run(X_train, X_test, y_train, y_test,
                       save_model=cfg.get("train", {}).get("save_models", True))


def run_sample_size(cfg, prevalence, n_parameters):
    _banner("Sample size planning")
    ss_cfg = cfg.get("sample_size", {})
    options = {k: ss_cfg[k] for k in ("shrinkage", "r2_optimism", "margin") if k in ss_cfg}

    headline = ss.logistic_sample_size(n_parameters, prevalence, **options)
    epv_n = ss.events_per_variable_sample_size(n_parameters, prevalence, ss_cfg.get("epv", 10))
    table = ss.sample_size_table(
        ss_cfg.get("parameters", [n_parameters]),
        ss_cfg.get("r2_cs", [headline.r2_cs]),
        prevalence,
        **options,
    )

    reports = _reports_dir(cfg)
    table.to_csv(reports / "sample_size.csv", index=False)
    plots.plot_sample_size(table, reports / "figures" / "sample_size_by_parameters.png")
    summary = {**headline.to_dict(), "epv_rule_sample_size": epv_n}
    with open(reports / "sample_size.json", "w") as f:
        json.dump(summary, f, indent=2)

    print(f"[INFO] Prevalence={prevalence:.4f}, parameters={n_parameters}, R2cs={headline.r2_cs:.4f}")
    print(f"[INFO] Required n={headline.sample_size} "
          f"(criteria: {headline.criterion_1}, {headline.criterion_2}, {headline.criterion_3}), "
          f"EPP={headline.events_per_parameter:.1f}; EPV rule n={epv_n}")
    return summary, table


def run_validation(cfg, X, y, seed):
    _banner("Bootstrap internal validation (logistic regression)")
    params = dict(cfg.get("train", {}).get("logistic_regression", {}))
    params.pop("threshold", None)
    table = bootstrap.bootstrap_validate(
        X,
        y,
        B=cfg.get("validate", {}).get("bootstrap_resamples", 200),
        random_state=seed,
        model_params=params,
    )
    summary = bootstrap.format_validation_summary(table)
    reports = _reports_dir(cfg)
    (reports / "bootstrap_validation.txt").write_text(summary)
    table.to_csv(reports / "bootstrap_validation.csv")
    print(summary)
    return table


def main(argv=None):
    parser = argparse.ArgumentParser(description="CTG normal vs abnormal classification analysis")
    parser.add_argument("--stage", type=str, default="all", choices=STAGES)
    parser.add_argument("--params", type=str, default="params.yaml")
    parser.add_argument("--data", type=str, default=None, help="Path to the semicolon-delimited CTG csv")
    args = parser.parse_args(argv)

    env_vars = load_env()
    cfg = load_cfg(args.params)
    # an explicit SEED in the environment or .env wins over params.yaml
    seed = env_vars.get("SEED")
    if seed is None:
        seed = cfg.get("seed", 123)
    seed = set_global_seed(int(seed))

    df = run_data_loader(cfg, args.data, env_vars)
    feature_cfg = FeatureConfig.from_dict(cfg.get("features"))
    X_train, X_test, y_train, y_test = run_split(cfg, df, seed)

    results = {}
    stage = args.stage
    if stage in ("all", "explore"):
        results["explore"] = run_explore(cfg, df)
    if stage in ("all", "logistic"):
        results["logistic"] = run_logistic(cfg, X_train, X_test, y_train, y_test)
    candidate = None
    if stage in ("all", "grid_search"):
        results["grid_search"] = run_grid_search(cfg, X_train, y_train, seed)
        candidate = results["grid_search"].best
    if stage in ("all", "random_forest"):
        results["random_forest"] = run_random_forest(cfg, X_train, X_test, y_train, y_test, seed, candidate)
    if stage in ("all", "sample_size"):
        prevalence = float(df[feature_cfg.target].mean())
        results["sample_size"] = run_sample_size(cfg, prevalence, feature_cfg.n_features)
    if stage in ("all", "validate"):
        results["validate"] = run_validation(
            cfg, df[feature_cfg.model_features], df[feature_cfg.target], seed
        )

    print("\n[INFO] Pipeline executed successfully!")
    return results


if __name__ == "__main__":
    main()
