"""
Tests for the Community data model and its derived quantities.
"""

import numpy as np
import pytest
from scipy import stats

from glv.community import (Community, abundance, core_interactions, offdiag, random_community,
                           relative_yield, richness, species_reactivity, subcommunity)
from glv.errors import InvalidCarryingCapacity, SingularInteractionMatrix


@pytest.fixture
def non_interacting():
    return Community([[-1, 0], [0, -1]], [1, 1], [1, 2])


@pytest.fixture
def interacting():
    return Community([[-1, 0.5], [0.2, -1]], [1, 1], [1, 2])


class TestCommunity:
    """Construction, validation and immutability."""

    def test_richness(self, non_interacting):
        assert richness(non_interacting) == 2
        assert non_interacting.species.tolist() == [0, 1]

    def test_mismatched_dimensions(self):
        with pytest.raises(ValueError):
            Community([[-1, 0], [0, -1]], [1, 1, 1], [1, 1])
        with pytest.raises(ValueError):
            Community([[-1, 0, 0], [0, -1, 0]], [1, 1], [1, 1])

    def test_arrays_are_read_only(self, non_interacting):
        with pytest.raises(ValueError):
            non_interacting.A[0, 1] = 3.0
        with pytest.raises(ValueError):
            non_interacting.K[0] = 3.0

    def test_equality(self, non_interacting):
        same = Community([[-1, 0], [0, -1]], [1, 1], [1, 2])
        other = Community([[-1, 0], [0, -1]], [1, 1], [1, 3])
        assert non_interacting == same
        assert non_interacting != other

    def test_subcommunity_keeps_labels(self, interacting):
        sub = subcommunity(interacting, [1])
        assert richness(sub) == 1
        assert sub.species.tolist() == [1]
        assert sub.A.tolist() == [[-1.0]]
        assert sub.K.tolist() == [2.0]


class TestEquilibrium:
    """Equilibrium abundance and relative yield."""

    def test_non_interacting_abundance_equals_capacity(self, non_interacting):
        assert np.array_equal(abundance(non_interacting), non_interacting.K)
        assert np.array_equal(relative_yield(non_interacting), np.ones(2))

    def test_abundance_solves_linear_system(self, interacting):
        N = abundance(interacting)
        assert np.allclose(interacting.A @ N, -interacting.K)

    def test_relative_yield_is_abundance_over_capacity(self, interacting):
        assert np.allclose(relative_yield(interacting), abundance(interacting) / interacting.K)

    def test_no_positivity_enforced(self):
        c = Community([[-1, -2], [0, -1]], [1, 1], [1, 1])
        assert abundance(c)[0] < 0

    def test_singular_matrix(self):
        c = Community([[-1, 1], [1, -1]], [1, 1], [1, 1])
        with pytest.raises(SingularInteractionMatrix):
            abundance(c)
        with pytest.raises(SingularInteractionMatrix):
            relative_yield(c)

    def test_relative_yield_zero_capacity(self):
        c = Community([[-1, 0.5], [0.2, -1]], [1, 1], [1, 0])
        with pytest.raises(InvalidCarryingCapacity):
            relative_yield(c)


class TestCoreInteractions:
    """Rescaling of interactions by carrying capacities."""

    def test_rescaling(self, interacting):
        B = core_interactions(interacting)
        assert B[0, 1] == pytest.approx(0.5 * 1 / 2)
        assert B[1, 0] == pytest.approx(0.2 * 2 / 1)
        assert np.array_equal(np.diag(B), np.diag(interacting.A))

    def test_zero_capacity(self):
        c = Community([[-1, 0.5], [0.2, -1]], [1, 1], [1, 0])
        with pytest.raises(InvalidCarryingCapacity):
            core_interactions(c)
        with pytest.raises(ValueError):
            core_interactions(c)


class TestReactivity:

    def test_non_interacting_species_are_not_reactive(self, non_interacting):
        assert np.array_equal(species_reactivity(non_interacting), np.zeros(2))

    def test_two_species(self, interacting):
        eta = relative_yield(interacting)
        expected = [abs(0.5) * eta[1], abs(0.2) * eta[0]]
        assert np.allclose(species_reactivity(interacting), expected)


def test_offdiag():
    assert offdiag([[1, 2], [3, 4]]) == {(0, 1): 2, (1, 0): 3}
    assert len(offdiag(np.zeros((4, 4)))) == 12


class TestRandomCommunity:
    """Random construction from per-role distributions."""

    def test_defaults(self):
        c = random_community(20, stats.norm(0, 0.1), rng = 1)
        assert richness(c) == 20
        assert np.array_equal(np.diag(c.A), -np.ones(20))
        assert np.array_equal(c.r, np.ones(20))
        assert np.array_equal(c.K, np.ones(20))

    def test_reproducible(self):
        c1 = random_community(10, stats.norm(0, 0.1), K_i = stats.norm(1, 0.2), rng = 7)
        c2 = random_community(10, stats.norm(0, 0.1), K_i = stats.norm(1, 0.2), rng = 7)
        assert c1 == c2

    def test_interaction_statistics(self):
        S = 100
        c = random_community(S, stats.norm(-1 / S, 0.5 / np.sqrt(S)), rng = 3)
        a = c.A[~np.eye(S, dtype = bool)]
        assert np.mean(a) == pytest.approx(-1 / S, abs = 0.005)
        assert np.std(a) == pytest.approx(0.5 / np.sqrt(S), rel = 0.05)

    def test_diagonal_distribution(self):
        c = random_community(15, stats.norm(0, 0.1), A_ii = stats.uniform(-2, 1), rng = 4)
        diag = np.diag(c.A)
        assert np.all((diag >= -2) & (diag <= -1))

    def test_core_interactions_recover_sampled_matrix(self):
        S = 8
        K_i = stats.uniform(1, 9)
        default = random_community(S, stats.norm(0, 0.3), K_i = K_i, rng = 11)
        core = random_community(S, stats.norm(0, 0.3), K_i = K_i, interaction = 'core', rng = 11)
        mask = ~np.eye(S, dtype = bool)
        assert np.array_equal(core.K, default.K)
        assert np.allclose(core_interactions(core)[mask], default.A[mask])
        assert np.array_equal(np.diag(core.A), -np.ones(S))

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            random_community(0, stats.norm(0, 1))
        with pytest.raises(ValueError):
            random_community(5, stats.norm(0, 1), interaction = 'unknown')
