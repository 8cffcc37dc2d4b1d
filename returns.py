import math
from dataclasses import dataclass

import numpy as np

from assumptions import DEFAULT_CORRELATION, CorrelationModel, RealAssumption
from config import LOG_FLOOR


@dataclass(frozen=True)
class AnnualReturn:
    """Real fractional returns for one simulated year."""
    stock: float
    bond: float
    cash: float

    @classmethod
    def from_row(cls, row) -> "AnnualReturn":
        return cls(float(row[0]), float(row[1]), float(row[2]))

    def as_tuple(self) -> tuple:
        return (self.stock, self.bond, self.cash)


def lognormal_params(mean: float, std_dev: float) -> tuple[float, float]:
    """
    Moment-match an arithmetic mean/std of (1 + r) to log-normal (mu, sigma).
    (1 + mean) is floored at LOG_FLOOR so extreme inflation cannot push it to <= 0.
    """
    term = max(1 + mean, LOG_FLOOR)
    phi = math.sqrt(std_dev ** 2 + term ** 2)
    mu_log = math.log(term ** 2 / phi)
    sigma_log = math.sqrt(math.log(phi ** 2 / term ** 2))
    return mu_log, sigma_log


def standard_normals(rng: np.random.Generator, size) -> np.ndarray:
    # Box-Muller, cosine branch only; u == 0 would give -inf so it is redrawn
    u = rng.random(size)
    v = rng.random(size)
    zero = u == 0.0
    while zero.any():
        u[zero] = rng.random(int(zero.sum()))
        zero = u == 0.0
    return np.sqrt(-2.0 * np.log(u)) * np.cos(2.0 * np.pi * v)


@dataclass(frozen=True, eq=False)
class ReturnGenerator:
    """Correlated log-normal real returns for (stock, bond, cash)."""
    correlation: CorrelationModel
    mu_log: np.ndarray
    sigma_log: np.ndarray

    @classmethod
    def from_assumptions(cls, real: RealAssumption, correlation: CorrelationModel = None) -> "ReturnGenerator":
        params = [lognormal_params(m, s) for m, s in zip(real.means(), real.std_devs())]
        mu = np.array([p[0] for p in params])
        sigma = np.array([p[1] for p in params])
        mu.setflags(write=False)
        sigma.setflags(write=False)
        return cls(correlation=correlation or DEFAULT_CORRELATION, mu_log=mu, sigma_log=sigma)

    def _transform(self, z: np.ndarray) -> np.ndarray:
        z_corr = self.correlation.correlate(z)
        return np.exp(self.mu_log + self.sigma_log * z_corr) - 1

    def draw(self, rng: np.random.Generator) -> AnnualReturn:
        return AnnualReturn.from_row(self._transform(standard_normals(rng, 3)))

    def draw_sequence(self, rng: np.random.Generator, years: int) -> np.ndarray:
        """`years` independent draws stacked as rows of (stock, bond, cash)."""
        return self._transform(standard_normals(rng, (years, 3)))
