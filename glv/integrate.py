"""
Adapters around the numerical integrators.

Deterministic dynamics go through scipy.integrate.solve_ivp. Noisy dynamics
use a fixed-step Euler-Maruyama scheme with diagonal additive noise whose
amplitude is written in place by a caller-supplied function. Both return a
Trajectory and report failures through its success flag.
"""

import logging
from dataclasses import dataclass

import numpy as np
from scipy.integrate import solve_ivp

from glv.config import INTEGRATION
from glv.errors import IntegrationFailure

logger = logging.getLogger(__name__)


@dataclass(frozen = True)
class Trajectory:
    """
    Time series of species abundances.

    Attributes:
        t (array): Time points, length T.
        u (array): Abundances, shape (T, S).
        success (bool): False if the integrator failed or the state became non-finite.
        message (str): Integrator status message.
    """
    t: np.ndarray
    u: np.ndarray
    success: bool = True
    message: str = ''

    @property
    def final(self):
        """
        State at the last time point. Not meaningful when success is False.

        Raises:
            IntegrationFailure: If no state was stored, e.g. when the solver
                failed before the first requested time point.
        """
        if len(self.u) == 0:
            raise IntegrationFailure(f"trajectory holds no states: {self.message}", self)
        return self.u[-1]

    def __len__(self):
        return len(self.t)


def integrate(field, u0, tspan, t_eval = None, method = None, rtol = None, atol = None, **kwargs):
    """
    Integrate du/dt = field(t, u) with scipy's solve_ivp.

    Args:
        field (callable): Vector field field(t, u) -> du/dt.
        u0 (array): Initial state.
        tspan (tuple): (t0, t1).
        t_eval (array): Times at which to store the solution. Defaults to the solver steps.
        method, rtol, atol: Solver options, defaulting to glv.config.INTEGRATION.
        **kwargs: Passed on to solve_ivp.

    Returns:
        Trajectory: The solution, flagged unsuccessful on solver failure or divergence.
    """
    u0 = np.array(u0, dtype = float)
    method = INTEGRATION.method if method is None else method
    rtol = INTEGRATION.rtol if rtol is None else rtol
    atol = INTEGRATION.atol if atol is None else atol
    with np.errstate(over = 'ignore', invalid = 'ignore'):
        soln = solve_ivp(field, (tspan[0], tspan[-1]), u0, t_eval = t_eval,
                         method = method, rtol = rtol, atol = atol, **kwargs)
    # solve_ivp returns empty lists when it fails before the first t_eval point
    t = np.asarray(soln.t, dtype = float)
    u = np.asarray(soln.y, dtype = float).reshape(len(u0), -1).T
    finite = bool(np.all(np.isfinite(u)))
    success = bool(soln.success) and finite
    message = soln.message
    if soln.success and not finite:
        message = 'state diverged to non-finite values'
    if not success:
        logger.debug("integration failed on %s: %s", tspan, message)
    return Trajectory(t, u, success, message)


def integrate_noise(field, noise, u0, tspan, dt = None, t_eval = None, rng = None):
    """
    Integrate dN = field(t, N) dt + g dW with the Euler-Maruyama scheme.

    Args:
        field (callable): Drift field(t, u) -> du/dt.
        noise (callable): noise(du, u, t) writes the noise amplitude g into du, in place.
        u0 (array): Initial state.
        tspan (tuple): (t0, t1).
        dt (float): Step size, defaulting to glv.config.INTEGRATION.dt.
        t_eval (array): Times at which to store the solution (rounded to the nearest step).
            Defaults to every step.
        rng (np.random.Generator or int): Random state of the Wiener increments.

    Returns:
        Trajectory: The sampled path, flagged unsuccessful if it becomes non-finite.
    """
    rng = np.random.default_rng(rng)
    dt = INTEGRATION.dt if dt is None else dt
    if not dt > 0:
        raise ValueError(f"step size must be positive, got {dt}")
    t0, t1 = float(tspan[0]), float(tspan[-1])
    n_steps = max(int(np.ceil((t1 - t0) / dt)), 1)
    times = t0 + dt * np.arange(n_steps + 1)
    times[-1] = t1

    if t_eval is None:
        keep = np.arange(n_steps + 1)
    else:
        keep = np.unique(np.clip(np.rint((np.asarray(t_eval) - t0) / dt), 0, n_steps).astype(int))
    store = np.zeros(n_steps + 1, dtype = bool)
    store[keep] = True

    u = np.array(u0, dtype = float)
    g = np.zeros_like(u)
    path = [u.copy()] if store[0] else []
    success, message = True, 'Euler-Maruyama integration completed'
    with np.errstate(over = 'ignore', invalid = 'ignore'):
        for step in range(n_steps):
            h = times[step + 1] - times[step]
            g[:] = 0
            noise(g, u, times[step])
            u = u + field(times[step], u) * h + g * np.sqrt(h) * rng.standard_normal(u.shape)
            if not np.all(np.isfinite(u)):
                success, message = False, f'state diverged to non-finite values at t={times[step + 1]:g}'
                path.append(u.copy())
                keep = keep[keep <= step + 1]
                if not store[step + 1]:
                    keep = np.append(keep, step + 1)
                break
            if store[step + 1]:
                path.append(u.copy())

    if not success:
        logger.debug("noisy integration failed: %s", message)
    return Trajectory(times[keep], np.array(path), success, message)
