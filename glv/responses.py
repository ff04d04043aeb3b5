"""
Species responses to perturbations.

Pulse responses follow Lajaaiti et al. (2024): species with a low relative
yield respond the most to pulse perturbations. Functional extinctions follow
Saeterberg et al. (2013): a species is functionally extinct when lowering its
abundance drives some other species extinct.
"""

import logging

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from glv.community import abundance, relative_yield, richness
from glv.models import simulate_pulse

logger = logging.getLogger(__name__)


def _check_feasible(N_eq):
    if np.any(N_eq <= 0):
        not_positive = np.flatnonzero(N_eq <= 0).tolist()
        raise ValueError(f"responses need a feasible equilibrium, abundances not positive at {not_positive}")


def species_response(sol, N_eq):
    """
    Quantify how strongly each species responds to the perturbation simulated in sol.

    The response of a species is its mean relative distance to equilibrium
    over the recovery.

    Args:
        sol (Trajectory): Simulated recovery.
        N_eq (array): Equilibrium abundances.

    Returns:
        array: Response of each species.

    Raises:
        ValueError: If some equilibrium abundance is not positive.
    """
    N_eq = np.asarray(N_eq, dtype = float)
    _check_feasible(N_eq)
    dist_to_eq = np.abs(sol.u - N_eq) / N_eq
    return dist_to_eq.mean(axis = 0)


def _pulse_trial(c, N_eq, scale, tspan, saveat, seed):
    rng = np.random.default_rng(seed)
    x = rng.normal(0, scale, richness(c)) * N_eq
    t_eval = np.arange(tspan[0], tspan[-1] + saveat / 2, saveat)
    sol = simulate_pulse(c, x, tspan, t_eval = t_eval)
    if not sol.success:
        logger.debug("pulse trial %s failed: %s", seed, sol.message)
        return None
    return species_response(sol, N_eq)


def pulse_responses(c, n_pulses = 100, scale = 0.1, tspan = (0, 1_000), saveat = 1.0, rng = None, n_jobs = 1):
    """
    Average species responses over random pulse perturbations.

    Each pulse displaces every species by a Normal(0, scale) fraction of its
    equilibrium abundance. Pulses are independent and run in parallel.

    Args:
        c (Community): Community with a feasible equilibrium.
        n_pulses (int): Number of pulses.
        scale (float): Relative size of the pulses.
        tspan (tuple): Recovery time span.
        saveat (float): Sampling interval of the recovery trajectories.
        rng (int or np.random.Generator): Seed of the pulses.
        n_jobs (int): joblib workers.

    Returns:
        DataFrame: One row per species with columns species, response_mean,
        abundance, relative_yield. Failed integrations are left out of the mean.
    """
    N_eq = abundance(c)
    _check_feasible(N_eq)
    seeds = np.random.SeedSequence(np.random.default_rng(rng).integers(2 ** 32)).spawn(n_pulses)
    results = Parallel(n_jobs = n_jobs)(
        delayed(_pulse_trial)(c, N_eq, scale, tspan, saveat, seed)
        for seed in seeds
    )
    responses = [r for r in results if r is not None]
    if len(responses) < n_pulses:
        logger.warning("%d of %d pulse trials failed", n_pulses - len(responses), n_pulses)

    df = pd.DataFrame()
    df['species'] = c.species
    df['response_mean'] = np.mean(responses, axis = 0) if responses else np.nan
    df['abundance'] = N_eq
    df['relative_yield'] = relative_yield(c)
    return df


def extinction_thresholds(c):
    """
    Smallest decrease in each species' carrying capacity that drives some species extinct.

    For species j this is min over i of -N_i / inv(A)_ij, restricted to positive values.

    Returns:
        array: Threshold of each species, inf when no decrease leads to an extinction.
    """
    N_eq = abundance(c)
    A_inv = np.linalg.inv(c.A)
    epsilon = np.full(richness(c), np.inf)
    with np.errstate(divide = 'ignore', invalid = 'ignore'):
        for j in range(richness(c)):
            eps = -N_eq / A_inv[:, j]
            eps = eps[eps > 0]
            if eps.size:
                epsilon[j] = eps.min()
    return epsilon


def eep_sizes(c):
    """
    Ecologically effective population size of each species.

    The abundance below which some other species in the community goes extinct.
    It is zero when the first extinction is the focal species itself
    (numerical, not functional, extinction).

    Returns:
        array: EEP size of each species.
    """
    epsilon = extinction_thresholds(c)
    delta_N = np.diag(np.linalg.inv(c.A)) * epsilon
    return abundance(c) + delta_N
