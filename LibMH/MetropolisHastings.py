import logging
import numbers
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Tuple

import numpy as np
import tqdm

from .Chain import Chain, Sample, frozen_vector
from .Distributions import DensityModel, safe_log_density
from .Errors import ConfigurationError, SamplingError
from .PRNG import RNG, SEED
from .Proposals import GaussianRandomWalk, Proposal

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SamplerConfig:
    """
    Configuration for one Metropolis-Hastings chain.

    Attributes:
        initial_state: Starting parameter vector (finite).
        proposal_scale: Proposal standard deviation, scalar or one per parameter.
        n_iterations: Number of iterations (and samples) in the chain.
        seed: Seed of the chain's private random stream. None means the
            package default SEED, or a seed derived by ChainRunner.
        parameter_names: Optional names, one per parameter.
    """

    initial_state: Any
    proposal_scale: Any
    n_iterations: int
    seed: Optional[int] = None
    parameter_names: Optional[Tuple[str, ...]] = field(default=None)

    def __post_init__(self):
        """Validate configuration parameters."""
        try:
            initial_state = frozen_vector(self.initial_state)
            proposal_scale = frozen_vector(self.proposal_scale)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"initial_state and proposal_scale must be numeric: {exc}") from exc

        if initial_state.size == 0:
            raise ConfigurationError("initial_state must hold at least one parameter")
        if not np.all(np.isfinite(initial_state)):
            raise ConfigurationError(f"initial_state must be finite, got {initial_state}")
        if proposal_scale.size not in (1, initial_state.size):
            raise ConfigurationError(
                f"proposal_scale has {proposal_scale.size} entries for "
                f"{initial_state.size} parameters"
            )
        if not np.all(np.isfinite(proposal_scale)) or np.any(proposal_scale <= 0):
            raise ConfigurationError(f"proposal_scale must be finite and > 0, got {proposal_scale}")
        if (
            isinstance(self.n_iterations, bool)
            or not isinstance(self.n_iterations, numbers.Integral)
            or self.n_iterations < 1
        ):
            raise ConfigurationError(f"n_iterations must be a positive integer, got {self.n_iterations!r}")
        if self.parameter_names is not None:
            names = tuple(self.parameter_names)
            if len(names) != initial_state.size:
                raise ConfigurationError(
                    f"{len(names)} parameter names given for {initial_state.size} parameters"
                )
            object.__setattr__(self, "parameter_names", names)

        object.__setattr__(self, "initial_state", initial_state)
        object.__setattr__(self, "proposal_scale", proposal_scale)
        object.__setattr__(self, "n_iterations", int(self.n_iterations))

    @property
    def dimension(self) -> int:
        return self.initial_state.size

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "SamplerConfig":
        unknown = set(values) - {"initial_state", "proposal_scale", "n_iterations", "seed", "parameter_names"}
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {sorted(unknown)}")
        return cls(**values)


def check_components(
    config: SamplerConfig,
    target_distribution: DensityModel,
    proposal_distribution: Optional[Proposal] = None,
) -> Proposal:
    """
    Check that config, target and proposal agree on the number of parameters.
    Returns the proposal to use, building the default random walk if none was given.
    """
    if not isinstance(config, SamplerConfig):
        raise ConfigurationError("config must be a SamplerConfig")
    if not callable(getattr(target_distribution, "log_density", None)):
        raise ConfigurationError("target_distribution must expose log_density(theta)")
    if proposal_distribution is None:
        proposal_distribution = GaussianRandomWalk(config.proposal_scale)

    d = config.dimension
    for name, component in (("target_distribution", target_distribution),
                            ("proposal_distribution", proposal_distribution)):
        expected = getattr(component, "dimension", None)
        if expected is not None and expected != d:
            raise ConfigurationError(
                f"{name} expects {expected} parameters but initial_state has {d}"
            )
    return proposal_distribution


class MetropolisHastings:
    def __init__(
        self,
        config: SamplerConfig,
        target_distribution: DensityModel,
        proposal_distribution: Optional[Proposal] = None,
        rng: Optional[RNG] = None,
    ):
        """
        Initialize the Metropolis-Hastings algorithm.
        :param config: initial state, proposal scale, iteration count and seed
        :param target_distribution: anything exposing log_density(theta)
        :param proposal_distribution: defaults to a Gaussian random walk with config.proposal_scale
        :param rng: private random stream; built from config.seed when omitted
        """
        proposal_distribution = check_components(config, target_distribution, proposal_distribution)
        d = config.dimension

        self.config = config
        self.target_distribution = target_distribution
        self.proposal_distribution = proposal_distribution
        if rng is None:
            rng = RNG(SEED if config.seed is None else config.seed)
        self.rng = rng

        self._current_state = config.initial_state
        self._current_log_density = safe_log_density(target_distribution, self._current_state)
        if self._current_log_density == -np.inf:
            logger.warning(
                "Initial state %s has zero density; the first finite proposal will be accepted",
                self._current_state,
            )

        self.chain = Chain(d, config.n_iterations, config.parameter_names)
        self.acceptance_count = 0
        self._cancelled = False
        self._running = False

    @property
    def current_state(self) -> np.ndarray:
        return self._current_state

    @property
    def current_log_density(self) -> float:
        return self._current_log_density

    @property
    def iteration(self) -> int:
        return len(self.chain)

    @property
    def acceptance_rate(self) -> float:
        return self.acceptance_count / self.iteration if self.iteration else 0.0

    @property
    def finished(self) -> bool:
        return self.chain.finalized

    @staticmethod
    def acceptance_probability(
        current_log_density: float,
        candidate_log_density: float,
        log_hastings: float = 0.0,
    ) -> float:
        """
        min(1, pi(candidate) q(current | candidate) / (pi(current) q(candidate | current)))
        computed in log space.
        """
        if candidate_log_density == -np.inf:
            return 0.0
        if current_log_density == -np.inf:
            return 1.0
        log_ratio = candidate_log_density - current_log_density + log_hastings
        if np.isnan(log_ratio):
            return 0.0
        if log_ratio >= 0:
            return 1.0
        return float(np.exp(log_ratio))

    def _log_hastings(self, current: np.ndarray, candidate: np.ndarray) -> float:
        """log q(current | candidate) - log q(candidate | current); 0 for symmetric kernels."""
        log_q = getattr(self.proposal_distribution, "log_transition_density", None)
        if log_q is None:
            return 0.0
        with np.errstate(invalid="ignore"):
            return log_q(candidate, current) - log_q(current, candidate)

    def step(self) -> Sample:
        """Run one iteration and return the Sample it produced."""
        if self.finished:
            raise RuntimeError("chain is finalized; no further iterations can run")

        current = self._current_state
        candidate = frozen_vector(self.proposal_distribution.propose(current, self.rng))
        if candidate.shape != current.shape:
            raise SamplingError(
                f"proposal returned shape {candidate.shape} for a state of shape {current.shape}"
            )
        candidate_log_density = safe_log_density(self.target_distribution, candidate)

        alpha = self.acceptance_probability(
            self._current_log_density,
            candidate_log_density,
            self._log_hastings(current, candidate),
        )
        accepted = self.rng.uniform() < alpha
        if accepted:
            self._current_state = candidate
            self._current_log_density = candidate_log_density
            self.acceptance_count += 1

        sample = self.chain.append(self._current_state, self._current_log_density, accepted)
        if self.chain.complete:
            self._finish()
        return sample

    def cancel(self):
        """Stop after the iteration in progress; the chain so far is kept."""
        self._cancelled = True
        if not self._running:
            self._finish()

    def _finish(self):
        if self.finished:
            return
        self.chain.finalize()
        if self.chain.complete:
            logger.info(
                "Chain finished: %d iterations, acceptance rate %.3f",
                len(self.chain), self.acceptance_rate,
            )
        else:
            logger.warning(
                "Chain cancelled after %d of %d iterations",
                len(self.chain), self.config.n_iterations,
            )

    def __call__(
        self,
        n: Optional[int] = None,
        progress: bool = False,
        should_stop: Optional[Callable[[Sample], bool]] = None,
    ) -> Chain:
        """
        Run the Metropolis-Hastings algorithm.
        :param n: run at most n more iterations; default is all that remain
        :param progress: show a tqdm progress bar
        :param should_stop: called with each Sample; returning True cancels the run
        :return: the chain (finalized once complete or cancelled)
        """
        remaining = self.config.n_iterations - self.iteration
        steps = remaining if n is None else min(n, remaining)
        if self.finished or steps <= 0:
            return self.chain

        logger.info(
            "Running %d Metropolis-Hastings iterations (dimension %d, from iteration %d)",
            steps, self.config.dimension, self.iteration + 1,
        )
        indices = range(steps)
        if progress:
            indices = tqdm.tqdm(indices, desc="MH", unit="it")

        self._running = True
        try:
            for _ in indices:
                sample = self.step()
                if should_stop is not None and should_stop(sample):
                    self._cancelled = True
                if self._cancelled:
                    break
        finally:
            self._running = False
            if progress:
                indices.close()

        if self._cancelled or self.chain.complete:
            self._finish()
        return self.chain

    run = __call__


def run(
    config: SamplerConfig,
    density_model: DensityModel,
    proposal_kernel: Optional[Proposal] = None,
    rng: Optional[RNG] = None,
    progress: bool = False,
    should_stop: Optional[Callable[[Sample], bool]] = None,
) -> Chain:
    """
    Run one chain to completion (or until should_stop returns True).

    Args:
        config: Sampler configuration.
        density_model: Target density exposing log_density(theta).
        proposal_kernel: Defaults to GaussianRandomWalk(config.proposal_scale).
        rng: Random stream; built from config.seed when omitted.

    Returns:
        The finalized Chain.
    """
    sampler = MetropolisHastings(config, density_model, proposal_kernel, rng)
    return sampler(progress=progress, should_stop=should_stop)
