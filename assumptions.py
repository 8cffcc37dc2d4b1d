"""
Capital-market assumptions for the three asset classes.

Nominal arithmetic mean/vol per asset live in config; each request deflates
them by its own inflation rate (Fisher relation) so the whole simulation runs
in today's money. The correlation matrix is fixed and factorised once.
"""
import logging
import math
from dataclasses import dataclass

import numpy as np

from config import ASSET_CLASSES, CORRELATION_MATRIX, NOMINAL_ASSUMPTIONS
from errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetAssumption:
    mean: float      # arithmetic, fractional per year
    std_dev: float


@dataclass(frozen=True)
class RealAssumption:
    stock: AssetAssumption
    bond: AssetAssumption
    cash: AssetAssumption
    inflation_rate: float = 0.0   # percent used for the deflation

    def means(self) -> np.ndarray:
        return np.array([getattr(self, a).mean for a in ASSET_CLASSES])

    def std_devs(self) -> np.ndarray:
        return np.array([getattr(self, a).std_dev for a in ASSET_CLASSES])


def nominal_assumptions() -> dict:
    return {a: AssetAssumption(v["mean"], v["std_dev"]) for a, v in NOMINAL_ASSUMPTIONS.items()}


def real_assumptions(inflation_rate: float, nominal: dict = None) -> RealAssumption:
    """
    Deflate nominal assumptions by `inflation_rate` (percent):
    mean_real = (1 + mean_nom) / (1 + i) - 1, std_real = std_nom / (1 + i).
    """
    nominal = nominal or nominal_assumptions()
    factor = 1 + inflation_rate / 100.0
    real = {
        a: AssetAssumption(mean=(1 + nominal[a].mean) / factor - 1, std_dev=nominal[a].std_dev / factor)
        for a in ASSET_CLASSES
    }
    return RealAssumption(inflation_rate=inflation_rate, **real)


def cholesky(matrix) -> np.ndarray:
    """Lower-triangular L with L @ L.T == matrix (row-by-row Cholesky-Banachiewicz)."""
    m = np.asarray(matrix, dtype=float)
    n = m.shape[0]
    if m.shape != (n, n) or not np.allclose(m, m.T):
        raise ConfigurationError("correlation matrix must be square and symmetric")
    L = np.zeros((n, n))
    for i in range(n):
        for j in range(i + 1):
            s = sum(L[i][k] * L[j][k] for k in range(j))
            if i == j:
                radicand = m[i][i] - s
                if radicand <= 0:
                    raise ConfigurationError(
                        f"correlation matrix is not positive definite (pivot {i} = {radicand:.3g})"
                    )
                L[i][j] = math.sqrt(radicand)
            else:
                L[i][j] = (m[i][j] - s) / L[j][j]
    return L


@dataclass(frozen=True, eq=False)
class CorrelationModel:
    matrix: np.ndarray
    factor: np.ndarray

    @classmethod
    def from_matrix(cls, matrix) -> "CorrelationModel":
        m = np.array(matrix, dtype=float)
        L = cholesky(m)
        m.setflags(write=False)
        L.setflags(write=False)
        logger.debug("Cholesky factor built for %dx%d correlation matrix", *m.shape)
        return cls(matrix=m, factor=L)

    def correlate(self, z: np.ndarray) -> np.ndarray:
        # works for one triple (3,) or a stack of them (n, 3)
        return z @ self.factor.T


# Built once at import; read-only for every batch
DEFAULT_CORRELATION = CorrelationModel.from_matrix(CORRELATION_MATRIX)
