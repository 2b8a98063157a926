import logging
import multiprocessing as mp
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Hashable, List, Mapping, Optional, Tuple

from .Chain import Chain, Sample
from .Distributions import DensityModel
from .Errors import ConfigurationError
from .MetropolisHastings import MetropolisHastings, SamplerConfig, check_components
from .PRNG import RNG, SEED, spawn_rngs
from .Proposals import Proposal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainTask:
    """Everything one worker needs to run a chain."""

    chain_id: Hashable
    config: SamplerConfig
    density_model: DensityModel
    proposal: Optional[Proposal]
    rng: RNG
    progress: bool = False
    should_stop: Optional[Callable[[Sample], bool]] = None


def run_chain_task(task: ChainTask) -> Tuple[Hashable, Chain]:
    sampler = MetropolisHastings(task.config, task.density_model, task.proposal, task.rng)
    chain = sampler(progress=task.progress, should_stop=task.should_stop)
    return task.chain_id, chain


class ChainRunner:
    """
    Runs independent Metropolis-Hastings chains and keeps their finished
    Chains by id.

    Chains never share state: each gets its own random stream, taken from
    its config's seed or, when that is None, derived from the runner seed
    and the order in which the chain was added. Samples are never pooled
    across chains.
    """

    def __init__(self, seed: Optional[int] = SEED, processes: Optional[int] = None):
        """
        :param seed: run seed used to derive streams for chains without their own seed
        :param processes: >1 runs chains in a multiprocessing pool; None or 1 runs them in order
        """
        if processes is not None and processes < 1:
            raise ConfigurationError(f"processes must be >= 1, got {processes}")
        self.seed = seed
        self.processes = processes
        self._pending: List[Tuple[Hashable, SamplerConfig, DensityModel, Optional[Proposal]]] = []
        self._chains: Dict[Hashable, Chain] = {}

    def add_chain(
        self,
        chain_id: Hashable,
        config: SamplerConfig,
        density_model: DensityModel,
        proposal: Optional[Proposal] = None,
    ) -> "ChainRunner":
        if any(existing == chain_id for existing, *_ in self._pending):
            raise ConfigurationError(f"duplicate chain id {chain_id!r}")
        check_components(config, density_model, proposal)
        self._pending.append((chain_id, config, density_model, proposal))
        return self

    def _tasks(self, progress, should_stop) -> List[ChainTask]:
        derived = spawn_rngs(self.seed, len(self._pending))
        tasks = []
        for child, (chain_id, config, density_model, proposal) in zip(derived, self._pending):
            rng = child if config.seed is None else RNG(config.seed)
            tasks.append(
                ChainTask(chain_id, config, density_model, proposal, rng, progress, should_stop)
            )
        return tasks

    def run(
        self,
        progress: bool = False,
        should_stop: Optional[Callable[[Sample], bool]] = None,
    ) -> Mapping[Hashable, Chain]:
        """
        Run every added chain to completion.

        Args:
            progress: Show a tqdm progress bar per chain.
            should_stop: Called with every Sample of every chain; returning
                True cancels that chain. Must be picklable when running in
                a pool.

        Returns:
            Read-only mapping of chain id to finalized Chain; empty when no
            chains were added.
        """
        if not self._pending:
            logger.info("No chains to run")
            self._chains = {}
            return self.chains
        tasks = self._tasks(progress, should_stop)

        if self.processes is None or self.processes == 1 or len(tasks) == 1:
            logger.info("Running %d chains sequentially", len(tasks))
            results = [run_chain_task(task) for task in tasks]
        else:
            max_workers = min(self.processes, len(tasks))
            logger.info("Running %d chains in parallel using %d processes", len(tasks), max_workers)
            with mp.Pool(processes=max_workers) as pool:
                try:
                    results = pool.map(run_chain_task, tasks)
                except KeyboardInterrupt:
                    logger.warning("Interrupted; terminating worker processes")
                    pool.terminate()
                    raise

        self._chains = dict(results)
        for chain_id, chain in self._chains.items():
            logger.info("Chain %r: %d samples%s", chain_id, len(chain),
                        "" if chain.complete else " (cancelled)")
        return self.chains

    @property
    def chains(self) -> Mapping[Hashable, Chain]:
        return MappingProxyType(self._chains)

    def __getitem__(self, chain_id: Hashable) -> Chain:
        return self._chains[chain_id]

    def __len__(self) -> int:
        return len(self._chains)
