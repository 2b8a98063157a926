import unittest

import numpy as np

from LibMH import (
    ChainRunner,
    ConfigurationError,
    GaussianMixtureDensity,
    GaussianRandomWalk,
    SamplerConfig,
    run,
)
from LibMH.Diagnostics import ChainSummary
from LibMH.PRNG import RNG, spawn_rngs


def bimodal():
    return GaussianMixtureDensity(means=[10.0, 40.0], scales=[2.0, 2.0])


def config(start, seed=None, n=3000):
    return SamplerConfig(initial_state=[start], proposal_scale=1.0, n_iterations=n, seed=seed)


class TestChainRunner(unittest.TestCase):
    def test_chains_started_apart_find_different_modes(self):
        runner = ChainRunner(seed=5)
        runner.add_chain("low", config(-20.0), bimodal())
        runner.add_chain("high", config(70.0), bimodal())
        chains = runner.run()

        self.assertEqual(set(chains), {"low", "high"})
        low = ChainSummary(chains["low"], burn_in=500).parameter_estimates()["theta_0"]
        high = ChainSummary(chains["high"], burn_in=500).parameter_estimates()["theta_0"]
        self.assertAlmostEqual(low, 10.0, delta=1.0)
        self.assertAlmostEqual(high, 40.0, delta=1.0)

    def test_derived_seeds_are_reproducible(self):
        def build():
            runner = ChainRunner(seed=123)
            runner.add_chain(0, config(0.0), bimodal())
            runner.add_chain(1, config(0.0), bimodal())
            return runner.run()

        first, second = build(), build()
        for chain_id in (0, 1):
            np.testing.assert_array_equal(first[chain_id].values, second[chain_id].values)
        # same start, same model, different derived stream
        self.assertFalse(np.array_equal(first[0].values, first[1].values))

    def test_explicit_seed_matches_single_run(self):
        runner = ChainRunner(seed=1)
        runner.add_chain("a", config(5.0, seed=99, n=500), bimodal())
        chains = runner.run()
        reference = run(config(5.0, seed=99, n=500), bimodal(), rng=RNG(99))
        np.testing.assert_array_equal(chains["a"].values, reference.values)

    def test_unseeded_chains_use_streams_spawned_from_the_run_seed(self):
        runner = ChainRunner(seed=31)
        runner.add_chain("first", config(0.0, n=300), bimodal())
        runner.add_chain("second", config(0.0, n=300), bimodal())
        chains = runner.run()
        streams = spawn_rngs(31, 2)
        for chain_id, rng in zip(("first", "second"), streams):
            reference = run(config(0.0, n=300), bimodal(), rng=rng)
            np.testing.assert_array_equal(chains[chain_id].values, reference.values)

    def test_running_without_chains_gives_an_empty_mapping(self):
        runner = ChainRunner(seed=1)
        chains = runner.run()
        self.assertEqual(len(chains), 0)
        self.assertEqual(len(runner), 0)
        with self.assertRaises(TypeError):
            chains["a"] = None

    def test_parallel_matches_sequential(self):
        def build(processes):
            runner = ChainRunner(seed=8, processes=processes)
            runner.add_chain("x", config(-20.0, n=800), bimodal())
            runner.add_chain("y", config(60.0, n=800), bimodal(), GaussianRandomWalk(0.5))
            return runner.run()

        sequential, parallel = build(None), build(2)
        for chain_id in ("x", "y"):
            np.testing.assert_array_equal(sequential[chain_id].values, parallel[chain_id].values)
            self.assertTrue(parallel[chain_id].finalized)

    def test_results_are_read_only(self):
        runner = ChainRunner(seed=2)
        runner.add_chain("only", config(0.0, n=50), bimodal())
        chains = runner.run()
        with self.assertRaises(TypeError):
            chains["other"] = chains["only"]
        self.assertEqual(len(runner), 1)
        self.assertIs(runner["only"], chains["only"])

    def test_should_stop_applies_to_every_chain(self):
        runner = ChainRunner(seed=4)
        runner.add_chain(1, config(0.0, n=100), bimodal())
        runner.add_chain(2, config(0.0, n=100), bimodal())
        chains = runner.run(should_stop=lambda sample: sample.iteration >= 40)
        for chain in chains.values():
            self.assertEqual(len(chain), 40)
            self.assertFalse(chain.complete)

    def test_configuration_errors(self):
        with self.assertRaises(ConfigurationError):
            ChainRunner(processes=0)
        runner = ChainRunner()
        runner.add_chain("a", config(0.0), bimodal())
        with self.assertRaises(ConfigurationError):
            runner.add_chain("a", config(1.0), bimodal())
        with self.assertRaises(ConfigurationError):
            runner.add_chain("b", SamplerConfig([0.0, 0.0], 1.0, 10), bimodal())


if __name__ == "__main__":
    unittest.main()
