import logging
from typing import Dict, Optional, Sequence

import numpy as np

from .Chain import Chain

logger = logging.getLogger(__name__)

STATISTICS = {"median": np.median, "mean": np.mean}


class ChainSummary:
    """Read-only statistics over a finished or in-progress chain."""

    def __init__(self, chain: Chain, burn_in: int = 0):
        """
        :param chain: the chain to summarize; it is never modified
        :param burn_in: number of leading samples left out of the point estimates
        """
        n = len(chain)
        if n == 0:
            raise ValueError("cannot summarize an empty chain")
        if not 0 <= burn_in < n:
            raise ValueError(f"burn_in must be in [0, {n}), got {burn_in}")
        self.chain = chain
        self.burn_in = burn_in
        self.n_samples = n
        # Snapshot so later appends to an in-progress chain don't change results
        self._values = chain.values.copy()
        self._log_densities = chain.log_densities.copy()
        self._accepted = chain.accepted.copy()

    @property
    def kept(self) -> np.ndarray:
        """Parameter values after burn-in."""
        return self._values[self.burn_in:]

    def acceptance_rate(self, start: Optional[int] = None, stop: Optional[int] = None) -> float:
        """Fraction of accepted iterations over the 0-based window [start, stop)."""
        window = self._accepted[start:stop]
        if window.size == 0:
            raise ValueError(f"empty acceptance window [{start}, {stop})")
        return float(np.mean(window))

    def running_acceptance_rate(self) -> np.ndarray:
        return np.cumsum(self._accepted) / np.arange(1, self.n_samples + 1)

    def parameter_estimates(self, statistic: str = "median") -> Dict[str, float]:
        try:
            estimator = STATISTICS[statistic]
        except KeyError:
            raise ValueError(f"unknown statistic {statistic!r}; use one of {sorted(STATISTICS)}") from None
        estimates = estimator(self.kept, axis=0)
        return dict(zip(self.chain.parameter_names, map(float, estimates)))

    def quantiles(self, q: Sequence[float] = (0.025, 0.5, 0.975)) -> Dict[str, np.ndarray]:
        values = np.quantile(self.kept, q, axis=0)
        return {name: values[:, j] for j, name in enumerate(self.chain.parameter_names)}

    @property
    def trace(self) -> np.ndarray:
        """(n, d) parameter values for every iteration, burn-in included."""
        return self._values.copy()

    @property
    def log_density_trace(self) -> np.ndarray:
        return self._log_densities.copy()

    def as_dict(self) -> Dict:
        return {
            "acceptance_rate": self.acceptance_rate(),
            "parameter_estimates": self.parameter_estimates(),
            "trace": self.trace,
            "log_density": self.log_density_trace,
            "n_samples": self.n_samples,
            "burn_in": self.burn_in,
        }

    def log_summary(self, level: int = logging.INFO):
        """Write the summary statistics through logging."""
        logger.log(level, "MCMC summary: %d samples, burn-in %d", self.n_samples, self.burn_in)
        logger.log(level, "Acceptance rate: %.3f", self.acceptance_rate())
        intervals = self.quantiles()
        for name, value in self.parameter_estimates().items():
            low, _, high = intervals[name]
            logger.log(level, "%s: median %.4g (95%% interval %.4g to %.4g)", name, value, low, high)


def summarize(chain: Chain, burn_in: int = 0) -> Dict:
    """
    acceptance_rate, parameter_estimates (medians after burn-in), trace,
    log_density, n_samples and burn_in for a chain.
    """
    return ChainSummary(chain, burn_in).as_dict()
