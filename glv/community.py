import logging

import numpy as np

from glv.config import SINGULAR_COND
from glv.errors import InvalidCarryingCapacity, SingularInteractionMatrix

logger = logging.getLogger(__name__)

# ------------------ Classes ------------------

class Community:
    """
    Community of S species with GLV parameters.

    Args:
        A (array): S x S interaction matrix, A[i, j] is the effect of species j on species i.
            The diagonal (self-regulation) is negative by convention.
        r (array): Growth rates, length S.
        K (array): Carrying capacities, length S.
        species (array): Labels of the species in the original pool. Defaults to 0..S-1.

    Attributes:
        A, r, K, species: Read-only numpy arrays.

    Example:
        >>> c = Community([[-1, 0], [0, -1]], [1, 1], [1, 2])
        >>> richness(c)
        2
    """
    def __init__(self, A, r, K, species = None):
        A = np.array(A, dtype = float)
        r = np.array(r, dtype = float)
        K = np.array(K, dtype = float)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise ValueError(f"A must be a square matrix, got shape {A.shape}")
        S = A.shape[0]
        if r.shape != (S,) or K.shape != (S,):
            raise ValueError(f"r and K must have length {S}, got {r.shape} and {K.shape}")
        if species is None:
            species = np.arange(S)
        species = np.array(species, dtype = int)
        if species.shape != (S,):
            raise ValueError(f"species must have length {S}, got {species.shape}")

        for array in (A, r, K, species):
            array.setflags(write = False)
        self.A, self.r, self.K, self.species = A, r, K, species

    def __len__(self):
        return len(self.r)

    def __eq__(self, other):
        if not isinstance(other, Community):
            return NotImplemented
        return (np.array_equal(self.A, other.A) and np.array_equal(self.r, other.r)
                and np.array_equal(self.K, other.K) and np.array_equal(self.species, other.species))

    __hash__ = None

    def __repr__(self):
        return f"Community(S={len(self)}, species={self.species.tolist()})"

# ------------------ Functions ------------------

def richness(c):
    """Species richness of the community c."""
    return len(c)


def abundance(c):
    """
    Equilibrium abundance of the species of community c, the solution of A N = -K.

    No positivity is enforced: check feasibility separately.

    Args:
        c (Community): Community with invertible A.

    Returns:
        array: Equilibrium abundances, length S.

    Raises:
        SingularInteractionMatrix: If A is numerically singular.
    """
    cond = np.linalg.cond(c.A)
    if not np.isfinite(cond) or cond > SINGULAR_COND:
        raise SingularInteractionMatrix(f"interaction matrix is singular (condition number {cond:.3g})")
    try:
        return np.linalg.solve(c.A, -c.K)
    except np.linalg.LinAlgError as exc:
        raise SingularInteractionMatrix(str(exc)) from exc


equilibrium_abundance = abundance


def relative_yield(c):
    """
    Equilibrium relative yield, the ratio of equilibrium abundance to carrying capacity.

    Two non-interacting species have relative yields equal to one.

    Raises:
        InvalidCarryingCapacity: If some K_i is zero.
    """
    _check_nonzero_capacities(c.K, "relative yields")
    return abundance(c) / c.K


def core_interactions(c):
    """
    Interactions rescaled by carrying capacities, b_ij = a_ij K_i / K_j.

    Used to separate interaction statistics from heterogeneous carrying
    capacities (Barbier and Arnoldi 2017).

    Raises:
        InvalidCarryingCapacity: If some K_j is zero.
    """
    _check_nonzero_capacities(c.K, "core interactions")
    return c.A * c.K[:, None] / c.K[None, :]


def species_reactivity(c):
    """
    Species reactivity, the strongest initial response of each species to a pulse.

    R0_i = sqrt(sum_{j != i} a_ij^2 eta_j^2), with eta the relative yield
    (Lajaaiti et al. 2024). Species with low relative yield are the most reactive.

    Args:
        c (Community): Community with invertible A.

    Returns:
        array: Reactivity of each species.
    """
    eta = relative_yield(c)
    interactions = np.array(c.A)
    np.fill_diagonal(interactions, 0)
    return np.sqrt((interactions ** 2) @ (eta ** 2))


def offdiag(A):
    """
    Off-diagonal elements of a square matrix A.

    Returns:
        dict: Maps (i, j), i != j, to A[i, j].

    Example:
        >>> offdiag([[1, 2], [3, 4]])
        {(0, 1): 2, (1, 0): 3}
    """
    A = np.asarray(A)
    n = A.shape[0]
    return {(i, j): A[i, j].item() for i in range(n) for j in range(n) if i != j}


def subcommunity(c, idx):
    """
    Community restricted to the species at positions idx of c.

    Args:
        c (Community): Community.
        idx (array): Positions (not labels) of the species to keep, in order.

    Returns:
        Community: Sub-community carrying the labels of the kept species.
    """
    idx = np.asarray(idx, dtype = int)
    return Community(c.A[np.ix_(idx, idx)], c.r[idx], c.K[idx], species = c.species[idx])


def _check_nonzero_capacities(K, what):
    if np.any(K == 0):
        zero = np.flatnonzero(K == 0).tolist()
        raise InvalidCarryingCapacity(f"{what} need non-zero carrying capacities, zero at {zero}")


def _draw(distribution, size, rng):
    if distribution is None:
        return np.ones(size)
    if np.isscalar(distribution):
        return np.full(size, float(distribution))
    return np.asarray(distribution.rvs(size = size, random_state = rng), dtype = float)


def random_community(S, A_ij, A_ii = -1.0, r_i = None, K_i = None, interaction = 'default', rng = None):
    """
    Generate a random community with S species.

    Parameters are drawn independently from the given distributions, any
    object with an rvs(size, random_state) method, e.g. a frozen scipy.stats
    distribution. Growth rates and carrying capacities default to one.
    The diagonal of A is always set to A_ii (a constant or a distribution).

    Args:
        S (int): Number of species.
        A_ij: Distribution of the off-diagonal interactions.
        A_ii: Self-regulation, default -1.
        r_i: Distribution of the growth rates, or a constant.
        K_i: Distribution of the carrying capacities, or a constant.
        interaction (str): 'default' stores the sampled interactions as A;
            'core' treats them as core interactions b_ij and stores a_ij = b_ij K_j / K_i.
        rng (np.random.Generator or int): Random state.

    Returns:
        Community: The sampled community.

    Example:
        >>> from scipy import stats
        >>> c = random_community(10, stats.norm(-1 / 10, 0.1 / np.sqrt(10)))
    """
    if S < 1:
        raise ValueError(f"S must be positive, got {S}")
    if interaction not in ('default', 'core'):
        raise ValueError(f"interaction must be 'default' or 'core', got {interaction!r}")
    rng = np.random.default_rng(rng)

    # Fill interaction matrix A: off-diagonal first, diagonal overwritten afterwards
    off_diagonal = ~np.eye(S, dtype = bool)
    A = np.zeros((S, S))
    A[off_diagonal] = _draw(A_ij, S * S - S, rng)
    r = _draw(r_i, S, rng)
    K = _draw(K_i, S, rng)

    if interaction == 'core':
        if np.any(K == 0):
            raise InvalidCarryingCapacity("core interactions need non-zero carrying capacities")
        A = A * K[None, :] / K[:, None]
    np.fill_diagonal(A, _draw(A_ii, S, rng))

    logger.debug("sampled community with %d species (interaction=%s)", S, interaction)
    return Community(A, r, K)
