from dotenv import load_dotenv
from pathlib import Path
import os

def load_env():
    """
    Carga variables de entorno desde el archivo .env (si existe)
    y devuelve un diccionario con las variables principales.
    """
    dotenv_path = Path(".") / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path)
        print("[INFO] Archivo .env cargado correctamente.")
    else:
        print("[WARN] No se encontró .env, usando variables del entorno del sistema.")

    return {
        "ENV": os.getenv("ENV", "local"),
        "EXPERIMENT_NAME": os.getenv("EXPERIMENT_NAME", "ctg-classifier"),
        "MLFLOW_TRACKING_URI": os.getenv("MLFLOW_TRACKING_URI"),
        "CTG_DATA_PATH": os.getenv("CTG_DATA_PATH"),
        # None unless set, so params.yaml keeps the default seed
        "SEED": int(os.environ["SEED"]) if os.getenv("SEED") else None,
    }
