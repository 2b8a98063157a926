import logging
from typing import Callable, Optional, Sequence

import numpy as np
import scipy as sp

from .Errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_SQRT_2PI = 0.5 * np.log(2 * np.pi)


def _log_of(density) -> float:
    """Log of a linear-space density; zero, negative and NaN map to -inf."""
    density = float(density)
    if not density > 0:
        return -np.inf
    return float(np.log(density))


def normalize_log_density(value) -> float:
    """
    Coerce a model's output to a float log-density.
    NaN is an invalid density and becomes -inf.
    """
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.size != 1:
        raise TypeError(f"log_density must return a scalar, got shape {np.shape(value)}")
    v = float(arr[0])
    if np.isnan(v):
        return -np.inf
    return v


def safe_log_density(model: "DensityModel", theta: np.ndarray) -> float:
    """
    Evaluate model at theta, treating a model that rejects the point
    (ValueError, ArithmeticError) as zero density.
    """
    try:
        with np.errstate(divide="ignore", invalid="ignore", over="ignore", under="ignore"):
            value = model.log_density(theta)
    except (ValueError, ArithmeticError) as exc:
        logger.debug("log_density(%s) raised %r; using -inf", theta, exc)
        return -np.inf
    return normalize_log_density(value)


class DensityModel:
    """
    Unnormalized target density over a parameter vector.

    Subclasses implement log_density(theta) as a pure function of theta and
    whatever fixed data they captured at construction. dimension is the
    expected length of theta, or None when any length is accepted.
    """

    dimension: Optional[int] = None

    def log_density(self, theta: np.ndarray) -> float:
        raise NotImplementedError

    def __call__(self, theta: np.ndarray) -> float:
        return self.log_density(theta)


class FunctionDensity(DensityModel):
    def __init__(
        self,
        func: Callable[[np.ndarray], float],
        dimension: Optional[int] = None,
        log_space: bool = True,
    ):
        """
        Wrap a plain callable as a DensityModel.
        :param func: theta -> log-density (or linear density if log_space is False)
        :param dimension: expected length of theta
        :param log_space: False when func returns a linear-space density
        """
        self.func = func
        self.dimension = dimension
        self.log_space = log_space

    def log_density(self, theta: np.ndarray) -> float:
        if self.log_space:
            return self.func(theta)
        return _log_of(self.func(theta))


class ScipyDensity(DensityModel):
    """Independent coordinates, each following the same frozen scipy.stats distribution."""

    def __init__(self, distribution, dimension: Optional[int] = None):
        self.distribution = distribution
        self.dimension = dimension
        if hasattr(distribution, "logpdf"):
            self._logp = distribution.logpdf
        else:
            self._logp = distribution.logpmf

    def log_density(self, theta: np.ndarray) -> float:
        return np.sum(self._logp(theta))


class GaussianMixtureDensity(DensityModel):
    dimension = 1

    def __init__(self, means: Sequence[float], scales: Sequence[float], weights=None):
        self.means = np.asarray(means, dtype=np.float64)
        self.scales = np.asarray(scales, dtype=np.float64)
        if self.means.shape != self.scales.shape or self.means.ndim != 1:
            raise ConfigurationError("means and scales must be 1-D and of equal length")
        if np.any(self.scales <= 0):
            raise ConfigurationError("mixture scales must be positive")
        if weights is None:
            weights = np.ones_like(self.means)
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != self.means.shape or np.any(weights <= 0):
            raise ConfigurationError("mixture weights must be positive, one per component")
        self.weights = weights / weights.sum()

    def log_density(self, theta: np.ndarray) -> float:
        component_logpdf = sp.stats.norm.logpdf(theta[0], self.means, self.scales)
        return sp.special.logsumexp(component_logpdf, b=self.weights)


# Priors


class GaussianPrior:
    def __init__(self, mean: float, scale: float):
        if not scale > 0:
            raise ConfigurationError(f"prior scale must be positive, got {scale}")
        self.mean = float(mean)
        self.scale = float(scale)

    def log_pdf(self, value: float) -> float:
        z = (value - self.mean) / self.scale
        return -0.5 * z**2 - np.log(self.scale) - LOG_SQRT_2PI

    def pdf(self, value: float) -> float:
        return np.exp(self.log_pdf(value))


class UniformPrior:
    def __init__(self, lower: float, upper: float):
        if not upper > lower:
            raise ConfigurationError(f"uniform prior needs lower < upper, got [{lower}, {upper}]")
        self.lower = float(lower)
        self.upper = float(upper)
        self._log_width = np.log(self.upper - self.lower)

    def log_pdf(self, value: float) -> float:
        if self.lower <= value <= self.upper:
            return -self._log_width
        return -np.inf

    def pdf(self, value: float) -> float:
        if self.lower <= value <= self.upper:
            return 1.0 / (self.upper - self.lower)
        return 0.0


class FlatPrior:
    """Improper constant prior."""

    def log_pdf(self, value: float) -> float:
        return 0.0

    def pdf(self, value: float) -> float:
        return 1.0


# Likelihoods


class Likelihood:
    """
    Likelihood of fixed observed data given theta.

    log_likelihood sums per-observation log terms. likelihood multiplies the
    per-observation densities directly; it underflows to 0 once the data set
    is more than a few dozen points and is only meant for small examples.
    """

    dimension: Optional[int] = None

    def log_terms(self, theta: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def log_likelihood(self, theta: np.ndarray) -> float:
        return np.sum(self.log_terms(theta))

    def likelihood(self, theta: np.ndarray) -> float:
        return np.prod(np.exp(self.log_terms(theta)))


class GaussianLikelihood(Likelihood):
    """Data ~ N(theta[0], sigma)."""

    dimension = 1

    def __init__(self, data, sigma: float):
        if not sigma > 0:
            raise ConfigurationError(f"sigma must be positive, got {sigma}")
        self.data = np.asarray(data, dtype=np.float64)
        self.data_sigma = float(sigma)

    def log_terms(self, theta: np.ndarray) -> np.ndarray:
        return sp.stats.norm.logpdf(self.data, theta[0], self.data_sigma)


class LinearRegressionLikelihood(Likelihood):
    """y ~ N(theta[0] + theta[1] * x, sigma); theta is (intercept, slope)."""

    dimension = 2

    def __init__(self, x, y, sigma: float):
        if not sigma > 0:
            raise ConfigurationError(f"sigma must be positive, got {sigma}")
        self.x = np.asarray(x, dtype=np.float64)
        self.y = np.asarray(y, dtype=np.float64)
        if self.x.shape != self.y.shape:
            raise ConfigurationError("x and y must have the same shape")
        self.data_sigma = float(sigma)

    def log_terms(self, theta: np.ndarray) -> np.ndarray:
        mean = theta[0] + theta[1] * self.x
        return sp.stats.norm.logpdf(self.y, mean, self.data_sigma)


class PoissonLikelihood(Likelihood):
    """Counts ~ Poisson(theta[0]). A negative rate lies outside the support."""

    dimension = 1

    def __init__(self, counts):
        self.data = np.asarray(counts)

    def log_terms(self, theta: np.ndarray) -> np.ndarray:
        rate = theta[0]
        if rate < 0:
            return np.full(self.data.shape, -np.inf)
        return sp.stats.poisson.logpmf(self.data, rate)


class TargetDistribution(DensityModel):
    def __init__(self, likelihood: Likelihood, priors: Sequence, log_space: bool = True):
        """
        Posterior over theta: likelihood of the data times one independent
        prior per parameter.

        Args:
            likelihood: Likelihood over the fixed observed data.
            priors: One prior per parameter, each with log_pdf and pdf.
            log_space: Sum log terms (default). False multiplies linear
                densities and takes the log at the end, which underflows for
                anything but small data sets.
        """
        self.likelihood = likelihood
        self.priors = list(priors)
        if not self.priors:
            raise ConfigurationError("TargetDistribution needs at least one prior")
        if likelihood.dimension is not None and likelihood.dimension != len(self.priors):
            raise ConfigurationError(
                f"likelihood expects {likelihood.dimension} parameters "
                f"but {len(self.priors)} priors were given"
            )
        self.dimension = len(self.priors)
        self.log_space = log_space

    def log_likelihood(self, theta: np.ndarray) -> float:
        return self.likelihood.log_likelihood(theta)

    def log_prior(self, theta: np.ndarray) -> float:
        return sum(prior.log_pdf(value) for prior, value in zip(self.priors, theta))

    def log_density(self, theta: np.ndarray) -> float:
        if not self.log_space:
            density = self.likelihood.likelihood(theta)
            for prior, value in zip(self.priors, theta):
                density *= prior.pdf(value)
            return _log_of(density)

        log_prior = self.log_prior(theta)
        if log_prior == -np.inf:
            return -np.inf
        return self.log_likelihood(theta) + log_prior
