from typing import List, Optional, Union

import numpy as np
from numpy.random import Generator, Philox, SeedSequence

from .Errors import SamplingError

# Static Values
SEED = 1000


class RNG:
    """
    Private random stream for one chain.

    Every chain owns its own Philox generator so chains can run side by side
    without sharing state and still be reproduced from their seed.
    """

    def __init__(self, seed: Optional[Union[int, SeedSequence]] = SEED):
        self.ss = seed if isinstance(seed, SeedSequence) else SeedSequence(seed)
        self.rg = Generator(Philox(self.ss))  # Use Philox for parallel applications

    def uniform(self) -> float:
        """One deviate from U[0, 1)."""
        try:
            u = self.rg.random()
        except Exception as exc:
            raise SamplingError(f"uniform draw failed: {exc}") from exc
        if not np.isfinite(u):
            raise SamplingError(f"uniform draw returned {u!r}")
        return float(u)

    def normal(self, loc=0.0, scale=1.0, size=None) -> np.ndarray:
        try:
            z = self.rg.normal(loc, scale, size=size)
        except Exception as exc:
            raise SamplingError(f"normal draw failed: {exc}") from exc
        return z

    def __call__(self, distribution, *args, **kwargs):
        """Draw from a scipy.stats distribution on this stream."""
        try:
            return distribution.rvs(*args, random_state=self.rg, **kwargs)
        except Exception as exc:
            raise SamplingError(f"{distribution} draw failed: {exc}") from exc

    def spawn(self, n: int) -> List["RNG"]:
        """Independent child streams, e.g. one per chain."""
        return [RNG(child) for child in self.ss.spawn(n)]


def spawn_rngs(seed: Optional[int], n: int) -> List[RNG]:
    """
    Derive n independent streams from a single run seed.
    Stream i depends only on (seed, i).
    """
    return RNG(seed).spawn(n)
