import os

import pandas as pd

from src.pipelines.data_setup import split_train_test


class FeatureEngineer:
    """
    Handles feature selection and train/test partitioning
    for model training.
    """

    def __init__(self, features: list, target: str, train_fraction: float = 0.75, random_state: int = 123):
        self.features = list(features)
        self.target = target
        self.train_fraction = train_fraction
        self.random_state = random_state

    def select_features(self, df: pd.DataFrame):
        """
        Select feature and target columns from the preprocessed dataset.
        """
        print("[INFO] Selecting features and target...")

        missing_cols = [f for f in self.features + [self.target] if f not in df.columns]
        if missing_cols:
            raise ValueError(f"[ERROR] Missing columns in dataset: {missing_cols}")

        X = df[self.features]
        y = df[self.target]

        print(f"[INFO] Feature matrix shape: {X.shape}")
        print(f"[INFO] Target vector shape : {y.shape}")
        return X, y

    def split_data(self, X: pd.DataFrame, y: pd.Series):
        """
        Split data into train and test sets (floor(fraction * n) training rows).
        """
        print("[INFO] Splitting data into train/test sets...")
        X_train, X_test, y_train, y_test = split_train_test(
            X, y, train_fraction=self.train_fraction, random_state=self.random_state
        )

        print(f"[INFO] X_train: {X_train.shape}, X_test: {X_test.shape}")
        print(f"[INFO] abnormal rate train: {y_train.mean():.4f}, test: {y_test.mean():.4f}")

        return X_train, X_test, y_train, y_test

    def save_features(self, X: pd.DataFrame, y: pd.Series, output_dir: str = "data/interim"):
        """
        Save combined features and target to a single CSV file.
        """
        os.makedirs(output_dir, exist_ok=True)
        feature_path = os.path.join(output_dir, "features.csv")

        df_out = X.copy()
        df_out[self.target] = y
        df_out.to_csv(feature_path, index=False)

        print(f"[INFO] Saved feature dataset to: {feature_path}")
        return feature_path

    def run(self, df: pd.DataFrame, split: bool = True, output_dir: str | None = None):
        """
        Full feature pipeline:
        - Selects features
        - Optionally saves the feature dataset
        - Splits data
        """
        X, y = self.select_features(df)

        if output_dir is not None:
            self.save_features(X, y, output_dir=output_dir)

        if split:
            return self.split_data(X, y)
        else:
            return X, y
