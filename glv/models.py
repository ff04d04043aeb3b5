import logging

import numpy as np

from glv.community import abundance
from glv.integrate import integrate, integrate_noise

logger = logging.getLogger(__name__)

# ------------------ Classes ------------------

class GLVmodel:
    """
    Generalized Lotka-Volterra vector field of a community.

        dN_i/dt = r_i N_i (K_i + sum_j A_ij N_j) / K_i

    With the self-regulation convention A_ii = -1 the bracket is
    K_i + sum_{j != i} A_ij N_j - N_i, and the interior fixed point solves A N = -K.
    N_i = 0 is absorbing.

    Args:
        community (Community): Community whose parameters define the field.
        K (array): Carrying capacities replacing community.K (press perturbation).
        extinct (array): Indices of species held at zero abundance.

    Attributes:
        A, r, K: Parameters used by the field.
        extinct (array): Indices whose derivative is forced to zero.
    """
    def __init__(self, community, K = None, extinct = None):
        self.A = community.A
        self.r = community.r
        self.K = community.K if K is None else np.asarray(K, dtype = float)
        if self.K.shape != self.r.shape:
            raise ValueError(f"K must have length {len(self.r)}, got shape {self.K.shape}")
        self.extinct = np.array([], dtype = int) if extinct is None else np.asarray(extinct, dtype = int)

    def abundances_function(self, x):
        """
        Per-capita growth of each species relative to its growth rate.

        Args:
            x (array): Current abundances.

        Returns:
            array: (K + A x) / K.
        """
        return (self.K + self.A @ x) / self.K

    def forward(self, t, x):
        """
        Compute the derivative at time t and state x.

        Args:
            t (float): Current time.
            x (array): Current abundances.

        Returns:
            array: Derivative dx/dt at time t.
        """
        dxdt = self.r * x * self.abundances_function(x)
        dxdt[self.extinct] = 0
        return dxdt

    __call__ = forward

# ------------------ Functions ------------------

def solve(c, u0, tspan, noise = None, rng = None, **kwargs):
    """
    Run the GLV model of community c from u0 over tspan.

    Args:
        c (Community): Community to simulate.
        u0 (array): Initial abundances.
        tspan (tuple): (t0, t1).
        noise (callable): Optional noise(du, u, t) writing the additive noise
            amplitude of each species into du, in place.
        rng (np.random.Generator or int): Random state of the noise.
        **kwargs: Integrator options (t_eval, method, rtol, atol, dt for noisy runs).

    Returns:
        Trajectory: Check trajectory.success before using its final state.

    Example:
        >>> c = Community([[-1, 0], [0, -1]], [1.0, 1.0], [1.0, 2.0])
        >>> sol = solve(c, [1.0, 1.0], (0, 10_000))
    """
    return _run(GLVmodel(c), u0, tspan, noise = noise, rng = rng, **kwargs)


def simulate_noise(c, noise, tspan, rng = None, **kwargs):
    """
    Simulate community c under stochastic noise, starting at its equilibrium.

    Args:
        c (Community): Community with invertible A.
        noise (callable): noise(du, u, t), in place.
        tspan (tuple): (t0, t1).

    Returns:
        Trajectory: Noisy path around the equilibrium.
    """
    return solve(c, abundance(c), tspan, noise = noise, rng = rng, **kwargs)


def simulate_pulse(c, x, tspan, **kwargs):
    """
    Simulate the recovery of community c after the pulse perturbation x.

    The initial state is N* + x where N* is the equilibrium abundance.

    Args:
        c (Community): Community with invertible A.
        x (array): Displacement of each species' abundance.
        tspan (tuple): Time span, usually starting at 0.

    Returns:
        Trajectory: Recovery trajectory; its first state is exactly N* + x.
    """
    x = np.asarray(x, dtype = float)
    if x.shape != c.r.shape:
        raise ValueError(f"pulse must have length {len(c)}, got shape {x.shape}")
    return solve(c, abundance(c) + x, tspan, **kwargs)


def simulate_press(c, K_new, tspan, **kwargs):
    """
    Simulate community c after a press perturbation of its carrying capacities.

    The dynamics start at the equilibrium of the original community and
    evolve with carrying capacities K_new.

    Example:
        >>> K_new = c.K - np.array([0.9, 0, 0, 0, 0])  # lower the capacity of the first species
        >>> simulate_press(c, K_new, (0, 100))
    """
    model = GLVmodel(c, K = K_new)
    return _run(model, abundance(c), tspan, **kwargs)


def simulate_extinctions(c, idx, tspan, **kwargs):
    """
    Simulate community c after the extinction of the species at positions idx.

    The removed species start at zero and are held there.
    """
    idx = np.atleast_1d(np.asarray(idx, dtype = int))
    if np.any((idx < 0) | (idx >= len(c))):
        raise ValueError(f"extinct species indices out of range for {len(c)} species: {idx.tolist()}")
    u0 = abundance(c)
    u0[idx] = 0
    model = GLVmodel(c, extinct = idx)
    return _run(model, u0, tspan, **kwargs)


def _run(model, u0, tspan, noise = None, rng = None, dt = None, t_eval = None, **kwargs):
    u0 = np.asarray(u0, dtype = float)
    if u0.shape != model.r.shape:
        raise ValueError(f"initial state must have length {len(model.r)}, got shape {u0.shape}")
    if noise is None:
        return integrate(model, u0, tspan, t_eval = t_eval, **kwargs)
    if kwargs:
        logger.debug("ignoring solver options %s for noisy integration", sorted(kwargs))
    return integrate_noise(model, noise, u0, tspan, dt = dt, t_eval = t_eval, rng = rng)
