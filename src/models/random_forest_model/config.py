MODEL_CONFIG = {
    "n_estimators": 500,
    "max_features": "sqrt",   # overwritten by the tuned mtry
    "min_samples_leaf": 1,    # overwritten by the tuned node size
    "bootstrap": True,
    "oob_score": True,
    "random_state": 123,
    "n_jobs": -1
}

TRAINING_CONFIG = {
    "cv_folds": 5,
    "train_fraction": 0.75,
    "n_permutation_repeats": 10,
}

# Inclusive ranges: mtry 2..9 x node size 1..9 = 72 combinations
GRID_CONFIG = {
    "mtry": [2, 9],
    "node_size": [1, 9],
    "n_estimators": 500,
}
