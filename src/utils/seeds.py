# src/utils/seeds.py

"""
Utilidades para fijar semillas aleatorias.

Every randomized operation in the project takes its own ``random_state``;
the global seed only covers library code that reads the global NumPy RNG
(e.g. matplotlib jitter, third-party helpers).
"""

import os
import random
import numpy as np

DEFAULT_SEED = int(os.getenv("SEED", 123))


def set_global_seed(seed: int = DEFAULT_SEED) -> int:
    """
    Fija la semilla de los generadores de números aleatorios
    usados en el proyecto.

    Parameters
    ----------
    seed : int
        Valor de semilla a utilizar.

    Returns
    -------
    int
        La semilla finalmente utilizada (por si se quiere loguear en MLflow).
    """
    random.seed(seed)
    np.random.seed(seed)
    return seed


def make_rng(seed: int | None = DEFAULT_SEED) -> np.random.Generator:
    """Independent generator for code that should not touch global state."""
    return np.random.default_rng(seed)
