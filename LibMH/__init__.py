from .Chain import Chain, Sample
from .Diagnostics import ChainSummary, summarize
from .Distributions import (
    DensityModel,
    FlatPrior,
    FunctionDensity,
    GaussianLikelihood,
    GaussianMixtureDensity,
    GaussianPrior,
    Likelihood,
    LinearRegressionLikelihood,
    PoissonLikelihood,
    ScipyDensity,
    TargetDistribution,
    UniformPrior,
)
from .Errors import ConfigurationError, MCMCError, SamplingError
from .MetropolisHastings import MetropolisHastings, SamplerConfig, run
from .PRNG import RNG, SEED
from .Proposals import (
    CorrelatedGaussianRandomWalk,
    GaussianRandomWalk,
    LogNormalRandomWalk,
    Proposal,
)
from .Runner import ChainRunner

__version__ = "0.1.0"
