"""
Exceptions raised by the glv package.

Numerical non-convergence is not an error here: failed integrations are
flagged on the Trajectory and failed cavity solves return a diverged
CavityPrediction. Only structural problems are raised.
"""


class GLVError(Exception):
    """Base class for glv errors."""


class SingularInteractionMatrix(GLVError):
    """The interaction matrix cannot be inverted, so the equilibrium is undefined."""


class InvalidCarryingCapacity(GLVError, ValueError):
    """A zero carrying capacity was used as a denominator."""


class CommunityCollapsed(GLVError):
    """Assembly removed every species of the community."""


class IntegrationFailure(GLVError):
    """
    A trajectory was needed but the integrator failed.

    Args:
        message (str): Description of the failure.
        trajectory (Trajectory): The failed trajectory, kept for inspection.
    """
    def __init__(self, message, trajectory = None):
        super().__init__(message)
        self.trajectory = trajectory
