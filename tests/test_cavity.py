"""
Tests for the ensemble statistics extractor and the cavity solver.
"""

import numpy as np
import pytest
from scipy import stats

from glv.cavity import CavityParameters, CavityPrediction, cavity_parameters, cavity_predictions, w0, w1, w2
from glv.community import Community, core_interactions, random_community


def assert_self_consistent(p, mu, sigma, gamma, K_std, K_mean = 1.0):
    """The returned moments satisfy the cavity equations."""
    zeta = np.sqrt(K_std ** 2 + sigma ** 2 * p.phi * p.N2_mean)
    delta = (K_mean + mu * p.phi * p.N_mean) / zeta
    assert p.phi == pytest.approx(w0(delta), rel = 1e-5)
    assert p.phi * p.N_mean == pytest.approx(zeta * p.v * w1(delta), rel = 1e-5)
    assert p.phi * p.N2_mean == pytest.approx(zeta ** 2 * p.v ** 2 * w2(delta), rel = 1e-5)
    assert p.v == pytest.approx(1 / (1 - gamma * sigma ** 2 * p.phi * p.v), rel = 1e-5)


class TestTruncatedMoments:

    def test_at_zero(self):
        assert w0(0) == pytest.approx(0.5)
        assert w1(0) == pytest.approx(1 / np.sqrt(2 * np.pi))
        assert w2(0) == pytest.approx(0.5)

    def test_large_threshold(self):
        assert w0(10) == pytest.approx(1)
        assert w1(10) == pytest.approx(10)
        assert w2(10) == pytest.approx(101)

    def test_variance_non_negative(self):
        delta = np.linspace(-3, 3, 61)
        assert np.all(w0(delta) * w2(delta) >= w1(delta) ** 2)


class TestCavityParameters:

    @pytest.fixture
    def community(self):
        A = [[-1, 1, 2], [3, -1, 4], [5, 6, -1]]
        return Community(A, [1, 1, 1], [1, 2, 3])

    def test_statistics(self, community):
        p = cavity_parameters(community)
        a_ij = np.array([1, 2, 3, 4, 5, 6])
        a_ji = np.array([3, 5, 1, 6, 2, 4])
        assert p.mu == pytest.approx(3.5)
        assert p.sigma == pytest.approx(np.std(a_ij, ddof = 1))
        assert p.gamma == pytest.approx(np.corrcoef(a_ij, a_ji)[0, 1])
        assert p.K_mean == pytest.approx(2)
        assert p.K_std == pytest.approx(1)

    def test_rescale(self, community):
        p = cavity_parameters(community)
        q = cavity_parameters(community, rescale = True)
        assert q.mu == pytest.approx(3 * p.mu)
        assert q.sigma == pytest.approx(np.sqrt(3) * p.sigma)
        assert (q.gamma, q.K_mean, q.K_std) == (p.gamma, p.K_mean, p.K_std)

    def test_core(self, community):
        p = cavity_parameters(community, core = True)
        B = core_interactions(community)
        assert p.mu == pytest.approx(np.mean(B[~np.eye(3, dtype = bool)]))

    def test_symmetric_interactions(self):
        A = np.array([[-1, 0.1, 0.3], [0.1, -1, -0.2], [0.3, -0.2, -1]])
        assert cavity_parameters(Community(A, np.ones(3), np.ones(3))).gamma == pytest.approx(1)

    def test_constant_interactions(self):
        A = np.full((3, 3), 0.25)
        np.fill_diagonal(A, -1)
        p = cavity_parameters(Community(A, np.ones(3), np.ones(3)))
        assert p.sigma == 0
        assert p.gamma == 0

    def test_too_few_species(self):
        with pytest.raises(ValueError):
            cavity_parameters(Community([[-1]], [1], [1]))


class TestCavityPredictions:

    def test_weak_interactions_keep_every_species(self):
        S = 100
        c = random_community(S, stats.norm(0 / S, 1 / np.sqrt(S)), rng = 42)
        p = cavity_predictions(c)
        assert p.converged
        assert p.phi == pytest.approx(1, abs = 1e-6)
        assert p.N_mean == pytest.approx(1, abs = 0.05)

    def test_competition_lowers_survival(self):
        mus = [0, -0.5, -1, -2, -4]
        predictions = [cavity_predictions(mu, 1.0, 0.0, 0.3) for mu in mus]
        assert all(p.converged for p in predictions)
        phis = [p.phi for p in predictions]
        assert np.all(np.diff(phis) < 0)
        assert all(0 < phi < 1 for phi in phis)

    @pytest.mark.parametrize('mu, sigma, gamma, K_std', [
        (0.0, 0.5, 0.0, 0.2),
        (-1.0, 1.0, 0.0, 0.3),
        (-1.0, 0.5, 0.5, 0.2),
        (-0.5, 0.8, -0.5, 0.1),
        (0.3, 0.5, 0.0, 0.3),
    ])
    def test_moments_consistent(self, mu, sigma, gamma, K_std):
        p = cavity_predictions(mu, sigma, gamma, K_std)
        assert p.converged
        assert 0 < p.phi <= 1
        assert p.N2_mean >= p.N_mean ** 2
        assert_self_consistent(p, mu, sigma, gamma, K_std)

    def test_reciprocity_changes_response(self):
        assert cavity_predictions(-1.0, 0.5, 0.0, 0.2).v == pytest.approx(1)
        assert cavity_predictions(-1.0, 0.5, 0.5, 0.2).v > 1
        assert cavity_predictions(-1.0, 0.5, -0.5, 0.2).v < 1

    def test_capacity_mean(self):
        p = cavity_predictions(-1.0, 0.5, 0.0, 0.4, K_mean = 2.0)
        assert p.converged
        assert_self_consistent(p, -1.0, 0.5, 0.0, 0.4, K_mean = 2.0)

    def test_zero_capacity_mean(self):
        # survivors are carried by the spread of the capacities alone
        p = cavity_predictions(-1.0, 0.5, 0.0, 0.3, K_mean = 0.0)
        assert p.converged
        assert 0 < p.phi < 0.5
        assert p.N_mean > 0
        assert_self_consistent(p, -1.0, 0.5, 0.0, 0.3, K_mean = 0.0)

    def test_no_disorder(self):
        p = cavity_predictions(-1.0, 0.0, 0.0, 0.0)
        assert tuple(p) == (1.0, 0.5, 0.25, 1.0)

    def test_large_variance_diverges(self):
        p = cavity_predictions(0.0, 2.0, 0.0, 0.0)
        assert not p.converged
        assert tuple(p) == (0.0, 0.0, 0.0, 0.0)
        assert p.message

    def test_strong_mutualism_diverges(self):
        p = cavity_predictions(2.0, 0.5, 0.0, 0.2)
        assert not p.converged
        assert tuple(p) == (0.0, 0.0, 0.0, 0.0)

    def test_iteration_budget(self):
        p = cavity_predictions(-1.0, 1.0, 0.0, 0.3, max_iter = 1)
        assert p == CavityPrediction.diverged(p.message)

    def test_parameters_object(self):
        params = CavityParameters(-1.0, 0.5, 0.0, 1.0, 0.2)
        assert cavity_predictions(params) == cavity_predictions(-1.0, 0.5, 0.0, 0.2, K_mean = 1.0)

    def test_missing_parameters(self):
        with pytest.raises(ValueError):
            cavity_predictions(0.0, 0.5)
        with pytest.raises(ValueError):
            cavity_predictions(0.0, -0.5, 0.0, 0.2)

    def test_unpacks_as_tuple(self):
        phi, N_mean, N2_mean, v = cavity_predictions(-1.0, 0.5, 0.0, 0.2)
        assert phi > 0 and N_mean > 0 and N2_mean > 0 and v > 0
