import os
import tempfile
import unittest

import numpy as np
import pandas as pd
import scipy.stats as stats

from LibMH import Chain, SamplerConfig, ScipyDensity, run


def small_chain():
    chain = Chain(2, n_iterations=3, parameter_names=["b0", "b1"])
    chain.append([1.0, 2.0], -3.5, True)
    chain.append([1.0, 2.0], -3.5, False)
    chain.append([0.1 + 0.2, -1e-12], -np.inf, True)
    return chain.finalize()


class TestChain(unittest.TestCase):
    def test_append_and_index(self):
        chain = small_chain()
        self.assertEqual(len(chain), 3)
        sample = chain[1]
        self.assertEqual(sample.iteration, 2)
        np.testing.assert_array_equal(sample.vector, [1.0, 2.0])
        self.assertFalse(sample.accepted)
        self.assertEqual(chain[-1].iteration, 3)
        self.assertEqual(chain.sample(3).log_density, -np.inf)
        with self.assertRaises(IndexError):
            chain[3]
        with self.assertRaises(IndexError):
            chain.sample(0)

    def test_iteration_indices_are_contiguous(self):
        chain = small_chain()
        self.assertEqual([s.iteration for s in chain], [1, 2, 3])
        np.testing.assert_array_equal(chain.iterations, [1, 2, 3])

    def test_finalized_chain_is_read_only(self):
        chain = small_chain()
        self.assertTrue(chain.finalized)
        with self.assertRaises(RuntimeError):
            chain.append([0.0, 0.0], 0.0, True)
        with self.assertRaises(ValueError):
            chain.values[0, 0] = 5.0
        with self.assertRaises(ValueError):
            chain[0].vector[0] = 5.0

    def test_sample_is_immutable(self):
        sample = small_chain()[0]
        with self.assertRaises(AttributeError):
            sample.accepted = False

    def test_dimension_is_fixed(self):
        chain = Chain(2, n_iterations=2)
        with self.assertRaises(ValueError):
            chain.append([1.0], 0.0, True)

    def test_grows_past_preallocation(self):
        chain = Chain(1, n_iterations=2)
        for i in range(5):
            chain.append([float(i)], -float(i), i % 2 == 0)
        self.assertEqual(len(chain), 5)
        self.assertTrue(chain.complete)
        np.testing.assert_array_equal(chain.values[:, 0], [0, 1, 2, 3, 4])

    def test_parameter_names(self):
        self.assertEqual(Chain(2).parameter_names, ("theta_0", "theta_1"))
        with self.assertRaises(ValueError):
            Chain(2, parameter_names=["a"])
        with self.assertRaises(ValueError):
            Chain(2, parameter_names=["a", "log_density"])


class TestTabularInterchange(unittest.TestCase):
    def test_frame_layout(self):
        frame = small_chain().to_frame()
        self.assertEqual(list(frame.columns), ["iteration", "b0", "b1", "log_density", "accepted"])
        self.assertEqual(frame["iteration"].tolist(), [1, 2, 3])
        self.assertEqual(frame["accepted"].tolist(), [True, False, True])

    def assertSameSamples(self, a, b):
        self.assertEqual(a.parameter_names, b.parameter_names)
        self.assertEqual(len(a), len(b))
        for x, y in zip(a, b):
            self.assertEqual(x.iteration, y.iteration)
            np.testing.assert_array_equal(x.vector, y.vector)
            self.assertEqual(x.log_density, y.log_density)
            self.assertEqual(x.accepted, y.accepted)

    def test_frame_round_trip(self):
        chain = small_chain()
        self.assertSameSamples(chain, Chain.from_frame(chain.to_frame()))

    def test_csv_round_trip_is_exact(self):
        config = SamplerConfig(initial_state=[0.3, -7.1], proposal_scale=[0.1, 3.0],
                               n_iterations=250, seed=17, parameter_names=("a", "b"))
        chain = run(config, ScipyDensity(stats.norm(0, 1)))
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "chain.csv")
            chain.to_csv(path)
            restored = Chain.read_csv(path)
        self.assertTrue(restored.finalized)
        self.assertSameSamples(chain, restored)

    def test_csv_keeps_minus_infinity(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "chain.csv")
            small_chain().to_csv(path)
            restored = Chain.read_csv(path)
        self.assertSameSamples(small_chain(), restored)

    def test_from_frame_checks_iterations(self):
        frame = small_chain().to_frame()
        frame.loc[1, "iteration"] = 5
        with self.assertRaises(ValueError):
            Chain.from_frame(frame)
        with self.assertRaises(ValueError):
            Chain.from_frame(pd.DataFrame({"iteration": [1], "x": [0.0]}))


if __name__ == "__main__":
    unittest.main()
