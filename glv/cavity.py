"""
Cavity method for GLV communities.

Predicts the fraction of surviving species and the first two moments of the
abundance distribution of the survivors from five summary statistics of the
species pool, without simulating it (Bunin 2017; Barbier and Arnoldi 2017;
Barbier et al. 2018).

Sign convention: A_ij > 0 means species j benefits species i, so a negative
mean interaction mu is competition. The effective abundance of a focal
species is a Gaussian truncated at zero,

    N = v max(0, K_mean + mu <N> + zeta z),   zeta^2 = K_std^2 + sigma^2 <N^2>,

where <.> averages over all species (extinct ones count as zero) and
v = 1 / (1 - gamma sigma^2 phi v) is the response of a survivor to its own
carrying capacity. With Delta = (K_mean + mu <N>) / zeta the closure reads

    phi = w0(Delta),  <N> = zeta v w1(Delta),  <N^2> = zeta^2 v^2 w2(Delta).
"""

import logging
from dataclasses import dataclass

import numpy as np
from scipy import optimize, stats

from glv.community import Community, core_interactions, richness
from glv.config import CAVITY

logger = logging.getLogger(__name__)


@dataclass(frozen = True)
class CavityParameters:
    """
    Summary statistics of a species pool used by the cavity method.

    Attributes:
        mu (float): Mean of the off-diagonal interactions.
        sigma (float): Standard deviation of the off-diagonal interactions.
        gamma (float): Correlation between A_ij and A_ji.
        K_mean (float): Mean carrying capacity.
        K_std (float): Standard deviation of the carrying capacities.
    """
    mu: float
    sigma: float
    gamma: float
    K_mean: float
    K_std: float

    def rescaled(self, S):
        """Size-free parameters mu * S and sigma * sqrt(S) of a pool of S species."""
        return CavityParameters(self.mu * S, self.sigma * np.sqrt(S), self.gamma, self.K_mean, self.K_std)


@dataclass(frozen = True)
class CavityPrediction:
    """
    Outcome of the cavity solver.

    Attributes:
        phi (float): Fraction of surviving species.
        N_mean (float): Mean abundance of the surviving species.
        N2_mean (float): Second moment of the abundance of the surviving species.
        v (float): Response of a surviving species' abundance to its own carrying capacity.
        converged (bool): False when no feasible solution was found. The
            community is then expected to collapse or explode, and all four
            values are zero.
        message (str): Why the solver failed, empty on success.
    """
    phi: float
    N_mean: float
    N2_mean: float
    v: float
    converged: bool = True
    message: str = ''

    @classmethod
    def diverged(cls, message = ''):
        return cls(0.0, 0.0, 0.0, 0.0, converged = False, message = message)

    def __iter__(self):
        return iter((self.phi, self.N_mean, self.N2_mean, self.v))

# ------------------ Ensemble statistics ------------------

def cavity_parameters(c, core = False, rescale = False):
    """
    Take a Community and return its summary statistics for the cavity method.

    Args:
        c (Community): Species pool with at least two species.
        core (bool): Use the core interactions a_ij K_i / K_j instead of A.
        rescale (bool): Return mu * S and sigma * sqrt(S), the size-free
            parameters of a pool sampled with mean mu / S and std sigma / sqrt(S).

    Returns:
        CavityParameters: mu, sigma, gamma of the off-diagonal interactions and
        K_mean, K_std of the carrying capacities.
    """
    S = richness(c)
    if S < 2:
        raise ValueError(f"cavity parameters need at least two species, got {S}")
    A = core_interactions(c) if core else c.A

    off_diagonal = ~np.eye(S, dtype = bool)
    a_ij = A[off_diagonal]
    a_ji = A.T[off_diagonal]
    mu = float(np.mean(a_ij))
    sigma = float(np.std(a_ij, ddof = 1))
    with np.errstate(divide = 'ignore', invalid = 'ignore'):
        gamma = float(np.corrcoef(a_ij, a_ji)[0, 1]) if sigma > 0 else np.nan
    if not np.isfinite(gamma):
        logger.debug("interactions have no variance, setting gamma to 0")
        gamma = 0.0
    params = CavityParameters(mu, sigma, gamma, float(np.mean(c.K)), float(np.std(c.K, ddof = 1)))
    return params.rescaled(S) if rescale else params

# ------------------ Truncated Gaussian moments ------------------

def w0(delta):
    """Probability that a standard normal variable exceeds -delta."""
    return stats.norm.cdf(delta)


def w1(delta):
    """First moment of max(0, delta + z), z standard normal."""
    return delta * stats.norm.cdf(delta) + stats.norm.pdf(delta)


def w2(delta):
    """Second moment of max(0, delta + z), z standard normal."""
    return (1 + delta ** 2) * stats.norm.cdf(delta) + delta * stats.norm.pdf(delta)

# ------------------ Solver ------------------

def _residuals(x, mu, sigma, gamma, K_mean, K_std):
    delta, v, zeta = x
    phi = w0(delta)
    return np.array([
        v * (1 - gamma * sigma ** 2 * phi * v) - 1,
        zeta * (delta - mu * v * w1(delta)) - K_mean,
        zeta ** 2 * (1 - sigma ** 2 * v ** 2 * w2(delta)) - K_std ** 2,
    ])


def _moments(delta, v, zeta):
    phi = w0(delta)
    N_mean = zeta * v * w1(delta) / phi
    N2_mean = zeta ** 2 * v ** 2 * w2(delta) / phi
    return phi, N_mean, N2_mean


def _initial_guesses(sigma, K_mean, K_std):
    # abundances close to their carrying capacities, then the marginal point Delta = 0
    spread = np.sqrt(K_std ** 2 + sigma ** 2 * (K_mean ** 2 + K_std ** 2))
    first = K_mean / spread if spread > 0 else 0.0
    return [np.array([first, 1.0, spread]), np.array([0.0, 1.0, spread])]


def _solve(mu, sigma, gamma, K_mean, K_std, tol, max_iter):
    args = (mu, sigma, gamma, K_mean, K_std)
    message = 'root finder did not converge'
    for x0 in _initial_guesses(sigma, K_mean, K_std):
        with np.errstate(over = 'ignore', invalid = 'ignore', divide = 'ignore'):
            soln = optimize.root(_residuals, x0, args = args, method = 'hybr', options = {'maxfev': max_iter})
            residual = np.max(np.abs(_residuals(soln.x, *args)))
        if not soln.success or not residual <= tol:
            message = f'root finder did not converge ({soln.message.strip()}, residual {residual:.3g})'
            continue

        delta, v, zeta = soln.x
        with np.errstate(over = 'ignore', invalid = 'ignore', divide = 'ignore'):
            phi, N_mean, N2_mean = _moments(delta, v, zeta)
        values = np.array([phi, zeta, N_mean, N2_mean, v])
        if not np.all(np.isfinite(values)):
            message = 'solution is not finite'
        elif zeta <= 0 or v <= 0:
            message = f'infeasible solution (zeta={zeta:.3g}, v={v:.3g}): abundances grow without bound'
        elif not 0 < phi <= 1:
            message = f'infeasible survival fraction {phi:.3g}'
        elif N2_mean < N_mean ** 2 * (1 - 1e-9):
            message = f'infeasible moments (N2_mean={N2_mean:.3g} < N_mean^2={N_mean ** 2:.3g})'
        else:
            return CavityPrediction(float(phi), float(N_mean), float(N2_mean), float(v))
    return CavityPrediction.diverged(message)


def cavity_predictions(mu, sigma = None, gamma = None, K_std = None, K_mean = 1.0, *,
                       core = False, rescale = False, tol = None, max_iter = None):
    """
    Predict community properties with the cavity method.

    Returns the fraction of surviving species phi, the first and second
    moments N_mean, N2_mean of the abundance of the survivors, and the
    response coefficient v, the derivative of a survivor's abundance with
    respect to its own carrying capacity.

    If the solver does not converge, or converges to an infeasible point, all
    four values are zero and converged is False. This usually means that the
    community is expected to collapse or explode.

    Args:
        mu (float, Community or CavityParameters): Mean interaction, or a
            community whose statistics are extracted with cavity_parameters,
            or precomputed parameters.
        sigma (float): Standard deviation of the interactions.
        gamma (float): Correlation between A_ij and A_ji.
        K_std (float): Standard deviation of the carrying capacities.
        K_mean (float): Mean carrying capacity.
        core, rescale (bool): Options of cavity_parameters when mu is a Community.
        tol (float): Residual tolerance, default glv.config.CAVITY.tol.
        max_iter (int): Evaluation budget of the root finder, default glv.config.CAVITY.max_iter.

    Returns:
        CavityPrediction: Unpacks as (phi, N_mean, N2_mean, v).

    Example:
        >>> from scipy import stats
        >>> S = 100
        >>> c = random_community(S, stats.norm(0 / S, 1 / np.sqrt(S)))
        >>> cavity_predictions(c)
    """
    if isinstance(mu, Community):
        mu = cavity_parameters(mu, core = core, rescale = rescale)
    if isinstance(mu, CavityParameters):
        mu, sigma, gamma, K_mean, K_std = mu.mu, mu.sigma, mu.gamma, mu.K_mean, mu.K_std
    if sigma is None or gamma is None or K_std is None:
        raise ValueError("sigma, gamma and K_std are required with scalar parameters")
    tol = CAVITY.tol if tol is None else tol
    max_iter = CAVITY.max_iter if max_iter is None else max_iter

    if sigma < 0 or K_std < 0:
        raise ValueError(f"standard deviations must be non-negative, got sigma={sigma}, K_std={K_std}")
    if sigma == 0 and K_std == 0:
        # no disorder: every species sits at K_mean / (1 - mu) when that is positive
        if mu < 1 and K_mean > 0:
            N = K_mean / (1 - mu)
            return CavityPrediction(1.0, N, N ** 2, 1.0)
        prediction = CavityPrediction.diverged('no feasible homogeneous equilibrium')
    else:
        prediction = _solve(mu, sigma, gamma, K_mean, K_std, tol, max_iter)

    if not prediction.converged:
        logger.debug("cavity solver diverged for mu=%g sigma=%g gamma=%g K_mean=%g K_std=%g: %s",
                     mu, sigma, gamma, K_mean, K_std, prediction.message)
    return prediction
