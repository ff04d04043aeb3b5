import logging

import numpy as np

from glv.community import richness, subcommunity
from glv.config import ASSEMBLY
from glv.errors import CommunityCollapsed, IntegrationFailure
from glv.models import solve

logger = logging.getLogger(__name__)


def assemble(c, u0 = None, tspan = None, threshold = None, **kwargs):
    """
    Assemble the pool of species of community c and return the surviving sub-community.

    The community is simulated, species whose final abundance is at or below
    threshold are removed, and the remaining species are simulated again until
    all of them persist. Richness strictly decreases between passes, so the loop
    ends after at most richness(c) passes. A community that is already stable is
    returned unchanged.

    Args:
        c (Community): Species pool.
        u0 (array): Initial abundances of the pool, restricted to the survivors on
            later passes. Defaults to ones.
        tspan (tuple): Duration of each simulation, default glv.config.ASSEMBLY.tspan.
        threshold (float): Extinction threshold, default glv.config.ASSEMBLY.threshold.
        **kwargs: Integrator options passed to solve.

    Returns:
        Community: Surviving species; result.species holds their labels.

    Raises:
        CommunityCollapsed: If every species goes extinct.
        IntegrationFailure: If a simulation fails, since survivors cannot be decided.
    """
    tspan = ASSEMBLY.tspan if tspan is None else tspan
    threshold = ASSEMBLY.threshold if threshold is None else threshold
    u0 = np.ones(richness(c)) if u0 is None else np.asarray(u0, dtype = float)
    if u0.shape != (richness(c),):
        raise ValueError(f"initial state must have length {richness(c)}, got shape {u0.shape}")

    current = c
    for n_pass in range(1, richness(c) + 1):
        sol = solve(current, u0, tspan, **kwargs)
        if not sol.success:
            raise IntegrationFailure(f"assembly simulation failed on pass {n_pass}: {sol.message}", sol)

        alive = sol.final > threshold
        logger.debug("assembly pass %d: %d of %d species persist", n_pass, int(alive.sum()), richness(current))
        if alive.all():
            return current
        if not alive.any():
            break
        keep = np.flatnonzero(alive)
        current = subcommunity(current, keep)
        u0 = u0[keep]

    raise CommunityCollapsed(f"all {richness(c)} species went extinct during assembly")


def n_removed(c, assembled):
    """Number of species of c lost during assembly."""
    return richness(c) - richness(assembled)
