from typing import Optional

import numpy as np
import scipy as sp

from .Errors import ConfigurationError
from .PRNG import RNG

LOG_SQRT_2PI = 0.5 * np.log(2 * np.pi)


def _as_scale(scale) -> np.ndarray:
    scale = np.atleast_1d(np.asarray(scale, dtype=np.float64))
    if scale.ndim != 1 or scale.size == 0:
        raise ConfigurationError("proposal scale must be a scalar or a 1-D sequence")
    if not np.all(np.isfinite(scale)) or np.any(scale <= 0):
        raise ConfigurationError(f"proposal scale must be finite and > 0, got {scale}")
    return scale


class Proposal:
    """
    Proposal kernel q(to | from).

    The default log_transition_density returns 0 for every pair, which is
    right for any symmetric kernel: q(a | b) == q(b | a) cancels out of the
    acceptance ratio. Asymmetric kernels must override it; a kernel is
    treated as symmetric exactly when it does not.
    """

    dimension: Optional[int] = None

    @property
    def symmetric(self) -> bool:
        return type(self).log_transition_density is Proposal.log_transition_density

    def propose(self, current: np.ndarray, rng: RNG) -> np.ndarray:
        raise NotImplementedError

    def log_transition_density(self, from_state: np.ndarray, to_state: np.ndarray) -> float:
        return 0.0


class GaussianRandomWalk(Proposal):
    def __init__(self, scale):
        """
        Independent N(0, scale_j) step on every coordinate.
        :param scale: scalar, or one proposal standard deviation per parameter
        """
        self.scale = _as_scale(scale)
        self.dimension = self.scale.size if self.scale.size > 1 else None

    def propose(self, current: np.ndarray, rng: RNG) -> np.ndarray:
        step = rng.normal(0.0, 1.0, size=current.shape)
        return current + self.scale * step


class CorrelatedGaussianRandomWalk(Proposal):
    """Multivariate normal step with a full covariance matrix."""

    def __init__(self, covariance):
        covariance = np.atleast_2d(np.asarray(covariance, dtype=np.float64))
        if covariance.ndim != 2 or covariance.shape[0] != covariance.shape[1]:
            raise ConfigurationError("proposal covariance must be a square matrix")
        try:
            cholesky = np.linalg.cholesky(covariance)
        except np.linalg.LinAlgError as exc:
            raise ConfigurationError(f"proposal covariance is not positive definite: {exc}") from exc
        self.covariance = covariance
        self.beta = sp.stats.Covariance.from_cholesky(cholesky)  # L*x ~ N(0, Sigma)
        self.dimension = covariance.shape[0]
        self._mean = np.zeros(self.dimension)

    def propose(self, current: np.ndarray, rng: RNG) -> np.ndarray:
        step = rng(sp.stats.multivariate_normal, mean=self._mean, cov=self.beta)
        return current + np.atleast_1d(step)


class LogNormalRandomWalk(Proposal):
    """
    Multiplicative walk for strictly positive parameters:
    to = from * exp(scale * z), z ~ N(0, 1).

    q(to | from) is log-normal, so the kernel is asymmetric and
    log q(a | b) - log q(b | a) = log(b) - log(a) summed over coordinates.
    """

    def __init__(self, scale):
        self.scale = _as_scale(scale)
        self.dimension = self.scale.size if self.scale.size > 1 else None

    def propose(self, current: np.ndarray, rng: RNG) -> np.ndarray:
        step = rng.normal(0.0, 1.0, size=current.shape)
        return current * np.exp(self.scale * step)

    def log_transition_density(self, from_state: np.ndarray, to_state: np.ndarray) -> float:
        from_state = np.asarray(from_state, dtype=np.float64)
        to_state = np.asarray(to_state, dtype=np.float64)
        if np.any(from_state <= 0) or np.any(to_state <= 0):
            return -np.inf
        log_to = np.log(to_state)
        z = (log_to - np.log(from_state)) / self.scale
        return float(np.sum(-log_to - np.log(self.scale) - LOG_SQRT_2PI - 0.5 * z**2))
