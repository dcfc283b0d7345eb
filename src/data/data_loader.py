import os
import pandas as pd

FEATURE_COLUMNS = ["LB", "AC", "FM", "UC", "DL", "DS", "DP", "ASTV", "ALTV"]
SOURCE_LABEL = "NSP"
TARGET = "abnormal"

# NSP: 1 = normal, 2 = suspect, 3 = pathologic
LABEL_MAP = {1: 0, 2: 1, 3: 1}


class CTGDataLoader:
    """
    Handles loading, validation, label derivation and cleaning of the
    cardiotocography (CTG) dataset.
    """

    def __init__(
        self,
        input_path: str,
        output_path: str = None,
        *,
        features: list = None,
        drop_columns: list = None,
        target: str = TARGET,
        sep: str = ";",
        decimal: str = ".",
    ):
        """
        Initialize the loader with the semicolon-delimited input file and an
        optional output path for the processed dataset.
        """
        self.input_path = input_path
        self.output_path = output_path
        self.features = list(features or FEATURE_COLUMNS)
        self.drop_columns = list(drop_columns or [])
        self.target = target
        self.sep = sep
        self.decimal = decimal

    @property
    def expected_columns(self) -> list:
        return self.features + [SOURCE_LABEL]

    def load_data(self) -> pd.DataFrame:
        """
        Load dataset from CSV and check that every expected field is present.
        """
        if not os.path.exists(self.input_path):
            raise FileNotFoundError(f"File not found: {self.input_path}")

        df = pd.read_csv(self.input_path, sep=self.sep, decimal=self.decimal)
        df.columns = [str(c).strip() for c in df.columns]
        print(f"[INFO] Loaded dataset — Rows: {df.shape[0]}, Columns: {df.shape[1]}")

        self.validate_columns(df)
        print("[INFO] Column validation passed.")
        return df

    def validate_columns(self, df: pd.DataFrame) -> None:
        missing_cols = [c for c in self.expected_columns if c not in df.columns]
        if missing_cols:
            raise ValueError(f"Missing expected columns: {missing_cols}")

    @staticmethod
    def derive_label(df: pd.DataFrame, target: str = TARGET) -> pd.DataFrame:
        """
        Collapse the 3-class NSP label into a binary ``target`` column:
        normal (1) -> 0, suspect (2) and pathologic (3) -> 1.
        """
        if SOURCE_LABEL not in df.columns:
            raise ValueError(f"Missing expected columns: ['{SOURCE_LABEL}']")

        nsp = pd.to_numeric(df[SOURCE_LABEL], errors="coerce")
        present = nsp.dropna()
        unknown = sorted(set(present.unique()) - set(LABEL_MAP))
        if unknown:
            raise ValueError(f"Unexpected {SOURCE_LABEL} values: {unknown}")

        df = df.copy()
        df[target] = nsp.map(LABEL_MAP).astype("Int64")
        return df

    def preprocess(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Clean the raw frame:
        - Coerce selected columns to numeric
        - Derive the binary label
        - Drop rows with missing or malformed values
        - Remove the source label and configured drop columns
        """
        print("[INFO] Starting preprocessing...")
        self.validate_columns(df)

        df = df.copy()
        for col in self.features:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        df = self.derive_label(df, self.target)

        keep = self.features + [self.target]
        df = df[keep]

        initial_rows = df.shape[0]
        df = df.dropna(subset=keep).reset_index(drop=True)
        dropped = initial_rows - df.shape[0]
        if dropped:
            print(f"[WARN] Dropped {dropped} rows with missing or malformed values.")

        df[self.target] = df[self.target].astype(int)
        to_drop = [c for c in self.drop_columns if c in df.columns and c != self.target]
        if to_drop:
            df = df.drop(columns=to_drop)

        positive_rate = df[self.target].mean() if len(df) else float("nan")
        print(f"[INFO] Preprocessing complete — Rows: {df.shape[0]}, "
              f"{self.target} rate: {positive_rate:.4f}")
        return df

    def save_data(self, df: pd.DataFrame) -> str:
        """
        Persist the processed dataset (comma-separated).
        """
        if self.output_path is None:
            raise ValueError("No output_path configured for processed dataset.")
        os.makedirs(os.path.dirname(os.path.abspath(self.output_path)), exist_ok=True)
        df.to_csv(self.output_path, index=False)
        print(f"[INFO] Processed dataset saved to: {self.output_path}")
        return self.output_path

    def run(self) -> pd.DataFrame:
        """
        Full data pipeline: load -> validate -> preprocess -> (save).
        """
        df = self.load_data()
        df = self.preprocess(df)
        if self.output_path is not None:
            self.save_data(df)
        return df
