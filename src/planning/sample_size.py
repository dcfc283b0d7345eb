"""
Minimum sample size for developing a logistic prediction model.

Implements the three criteria of Riley et al. (2019, 2020) for a binary
outcome: (1) expected uniform shrinkage of at least ``shrinkage``,
(2) small optimism in the apparent Nagelkerke R², and (3) precise
estimation of the overall outcome risk. The classic events-per-variable
rule is provided for comparison.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

import pandas as pd

Z_95 = 1.959964
DEFAULT_SHRINKAGE = 0.9
DEFAULT_R2_OPTIMISM = 0.05
DEFAULT_MARGIN = 0.05
CONSERVATIVE_R2_FRACTION = 0.15


@dataclass(frozen=True)
class SampleSizeResult:
    parameters: int
    prevalence: float
    r2_cs: float
    max_r2_cs: float
    criterion_1: int
    criterion_2: int
    criterion_3: int
    sample_size: int
    events: int
    events_per_parameter: float
    shrinkage: float

    def to_dict(self) -> dict:
        return asdict(self)


def _check_prevalence(prevalence: float) -> None:
    if not 0 < prevalence < 1:
        raise ValueError(f"prevalence must be in (0, 1), got {prevalence}")


def _check_parameters(parameters: int) -> None:
    if int(parameters) != parameters or parameters < 1:
        raise ValueError(f"parameters must be a positive integer, got {parameters}")


def max_cox_snell_r2(prevalence: float) -> float:
    """Upper bound of Cox-Snell R² for an outcome with the given prevalence."""
    _check_prevalence(prevalence)
    phi = prevalence
    ln_l_null = phi * math.log(phi) + (1 - phi) * math.log(1 - phi)
    return 1 - math.exp(2 * ln_l_null)


def _shrinkage_sample_size(parameters: int, r2_cs: float, shrinkage: float) -> int:
    return math.ceil(parameters / ((shrinkage - 1) * math.log(1 - r2_cs / shrinkage)))


def expected_shrinkage(n: int, parameters: int, r2_cs: float) -> float:
    """Van Houwelingen heuristic shrinkage factor for a sample of size n."""
    return 1 + parameters / (n * math.log(1 - r2_cs))


def logistic_sample_size(
    parameters: int,
    prevalence: float,
    r2_cs: Optional[float] = None,
    *,
    shrinkage: float = DEFAULT_SHRINKAGE,
    r2_optimism: float = DEFAULT_R2_OPTIMISM,
    margin: float = DEFAULT_MARGIN,
) -> SampleSizeResult:
    """
    Required n is the maximum over the three criteria. When ``r2_cs`` is not
    known, 15% of the maximum Cox-Snell R² is used.
    """
    _check_parameters(parameters)
    max_r2 = max_cox_snell_r2(prevalence)
    if r2_cs is None:
        r2_cs = CONSERVATIVE_R2_FRACTION * max_r2
    if not 0 < r2_cs < max_r2:
        raise ValueError(f"r2_cs must be in (0, {max_r2:.4f}), got {r2_cs}")
    if not 0 < shrinkage < 1:
        raise ValueError(f"shrinkage must be in (0, 1), got {shrinkage}")
    if r2_optimism <= 0 or margin <= 0:
        raise ValueError("r2_optimism and margin must be positive")

    n1 = _shrinkage_sample_size(parameters, r2_cs, shrinkage)

    s2 = r2_cs / (r2_cs + r2_optimism * max_r2)
    n2 = _shrinkage_sample_size(parameters, r2_cs, s2)

    n3 = math.ceil((Z_95 / margin) ** 2 * prevalence * (1 - prevalence))

    n = max(n1, n2, n3)
    return SampleSizeResult(
        parameters=int(parameters),
        prevalence=prevalence,
        r2_cs=r2_cs,
        max_r2_cs=max_r2,
        criterion_1=n1,
        criterion_2=n2,
        criterion_3=n3,
        sample_size=n,
        events=math.ceil(n * prevalence),
        events_per_parameter=n * prevalence / parameters,
        shrinkage=expected_shrinkage(n, parameters, r2_cs),
    )


def events_per_variable_sample_size(parameters: int, prevalence: float, epv: float = 10) -> int:
    """Classic rule of thumb: n = EPV * P / prevalence."""
    _check_parameters(parameters)
    _check_prevalence(prevalence)
    return math.ceil(epv * parameters / prevalence)


def sample_size_table(
    parameters: Iterable[int],
    r2_values: Iterable[float],
    prevalence: float,
    **kwargs,
) -> pd.DataFrame:
    rows = []
    for r2 in r2_values:
        for p in parameters:
            rows.append(logistic_sample_size(p, prevalence, r2, **kwargs).to_dict())
    return pd.DataFrame(rows)
