from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

ITERATION_COLUMN = "iteration"
LOG_DENSITY_COLUMN = "log_density"
ACCEPTED_COLUMN = "accepted"


def frozen_vector(values) -> np.ndarray:
    """Read-only float64 copy of values."""
    vector = np.array(values, dtype=np.float64).reshape(-1)
    vector.flags.writeable = False
    return vector


@dataclass(frozen=True, eq=False)
class Sample:
    """The state of a chain after one iteration."""

    iteration: int
    vector: np.ndarray
    log_density: float
    accepted: bool


class Chain:
    """
    Append-only record of a Metropolis-Hastings run.

    Storage is preallocated for the configured number of iterations and
    grows if more are appended. Iteration indices run 1..len(chain) with no
    gaps. Once finalize() is called the chain is read-only and can be
    shared freely.
    """

    def __init__(
        self,
        dimension: int,
        n_iterations: int = 1000,
        parameter_names: Optional[Sequence[str]] = None,
    ):
        if parameter_names is None:
            parameter_names = [f"theta_{i}" for i in range(dimension)]
        if len(parameter_names) != dimension:
            raise ValueError(
                f"{len(parameter_names)} parameter names given for dimension {dimension}"
            )
        reserved = {ITERATION_COLUMN, LOG_DENSITY_COLUMN, ACCEPTED_COLUMN}
        if reserved.intersection(parameter_names) or len(set(parameter_names)) != dimension:
            raise ValueError(f"parameter names must be unique and not in {sorted(reserved)}")

        self.dimension = dimension
        self.parameter_names = tuple(parameter_names)
        self.n_iterations = n_iterations

        self.max_size = max(1, n_iterations)
        self._values = np.zeros((self.max_size, dimension))
        self._log_densities = np.zeros(self.max_size)
        self._accepted = np.zeros(self.max_size, dtype=bool)
        self._index = 0
        self._finalized = False

    def append(self, vector: np.ndarray, log_density: float, accepted: bool) -> Sample:
        if self._finalized:
            raise RuntimeError("cannot append to a finalized chain")
        vector = frozen_vector(vector)
        if vector.size != self.dimension:
            raise ValueError(f"expected a vector of length {self.dimension}, got {vector.size}")

        # Resize if needed
        if self._index == self.max_size:
            new_max = self.max_size * 2
            self._values = np.concatenate([self._values, np.zeros((self.max_size, self.dimension))])
            self._log_densities = np.concatenate([self._log_densities, np.zeros(self.max_size)])
            self._accepted = np.concatenate([self._accepted, np.zeros(self.max_size, dtype=bool)])
            self.max_size = new_max

        self._values[self._index] = vector
        self._log_densities[self._index] = log_density
        self._accepted[self._index] = accepted
        self._index += 1
        return Sample(self._index, vector, float(log_density), bool(accepted))

    def finalize(self) -> "Chain":
        """Trim unused storage and make the chain read-only."""
        if not self._finalized:
            self._values = self._values[: self._index].copy()
            self._log_densities = self._log_densities[: self._index].copy()
            self._accepted = self._accepted[: self._index].copy()
            for arr in (self._values, self._log_densities, self._accepted):
                arr.flags.writeable = False
            self.max_size = self._index
            self._finalized = True
        return self

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def complete(self) -> bool:
        """True when the chain holds every configured iteration."""
        return self._index >= self.n_iterations

    def _view(self, arr: np.ndarray) -> np.ndarray:
        view = arr[: self._index]
        view.flags.writeable = False
        return view

    @property
    def values(self) -> np.ndarray:
        """(n, d) array of parameter vectors, one row per iteration."""
        return self._view(self._values)

    @property
    def log_densities(self) -> np.ndarray:
        return self._view(self._log_densities)

    @property
    def accepted(self) -> np.ndarray:
        return self._view(self._accepted)

    @property
    def iterations(self) -> np.ndarray:
        return np.arange(1, self._index + 1)

    def __len__(self) -> int:
        return self._index

    def __getitem__(self, position: int) -> Sample:
        """Sample at a 0-based position; negative positions count from the end."""
        if position < 0:
            position += self._index
        if not 0 <= position < self._index:
            raise IndexError(f"chain position {position} out of range")
        return Sample(
            position + 1,
            frozen_vector(self._values[position]),
            float(self._log_densities[position]),
            bool(self._accepted[position]),
        )

    def sample(self, iteration: int) -> Sample:
        """Sample by 1-based iteration index."""
        if not 1 <= iteration <= self._index:
            raise IndexError(f"iteration {iteration} not in chain of length {self._index}")
        return self[iteration - 1]

    def __iter__(self) -> Iterator[Sample]:
        for position in range(self._index):
            yield self[position]

    @property
    def samples(self) -> List[Sample]:
        return list(self)

    def __repr__(self):
        state = "finalized" if self._finalized else "in progress"
        return f"Chain(len={self._index}, dimension={self.dimension}, {state})"

    # Tabular interchange

    def to_frame(self) -> pd.DataFrame:
        """One row per iteration: iteration, parameter values..., log_density, accepted."""
        frame = pd.DataFrame(self.values.copy(), columns=list(self.parameter_names))
        frame.insert(0, ITERATION_COLUMN, self.iterations)
        frame[LOG_DENSITY_COLUMN] = self.log_densities.copy()
        frame[ACCEPTED_COLUMN] = self.accepted.copy()
        return frame

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "Chain":
        """Rebuild a finalized chain from the table produced by to_frame."""
        for column in (ITERATION_COLUMN, LOG_DENSITY_COLUMN, ACCEPTED_COLUMN):
            if column not in frame.columns:
                raise ValueError(f"missing column {column!r}")
        iterations = frame[ITERATION_COLUMN].to_numpy()
        if not np.array_equal(iterations, np.arange(1, len(frame) + 1)):
            raise ValueError("iterations must be contiguous and start at 1")

        names = [
            c for c in frame.columns
            if c not in (ITERATION_COLUMN, LOG_DENSITY_COLUMN, ACCEPTED_COLUMN)
        ]
        chain = cls(len(names), len(frame), parameter_names=names)
        values = frame[names].to_numpy(dtype=np.float64)
        log_densities = frame[LOG_DENSITY_COLUMN].to_numpy(dtype=np.float64)
        accepted = frame[ACCEPTED_COLUMN].to_numpy(dtype=bool)
        for vector, log_density, was_accepted in zip(values, log_densities, accepted):
            chain.append(vector, log_density, was_accepted)
        return chain.finalize()

    def to_csv(self, filename: str) -> None:
        """
        Write the chain to a CSV file.

        Args:
            filename: Path to the CSV file
        """
        self.to_frame().to_csv(filename, index=False, float_format="%.17g")

    @classmethod
    def read_csv(cls, filename: str) -> "Chain":
        return cls.from_frame(pd.read_csv(filename))
