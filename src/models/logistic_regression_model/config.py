MODEL_CONFIG = {
    # C=inf -> unpenalized maximum likelihood fit
    "C": float("inf"),
    "solver": "lbfgs",
    "max_iter": 1000,
}

TRAINING_CONFIG = {
    "cv_folds": 5,
    "train_fraction": 0.75,
    "threshold": 0.5,
}
