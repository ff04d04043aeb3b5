"""
Generalized Lotka-Volterra communities and their cavity-method predictions.

Example:
    >>> from scipy import stats
    >>> from glv import random_community, assemble, cavity_predictions
    >>> c = random_community(50, stats.norm(-1 / 50, 0.3 / 50 ** 0.5))
    >>> survivors = assemble(c)
    >>> cavity_predictions(c, rescale = True)
"""

from glv.assembly import assemble, n_removed
from glv.cavity import CavityParameters, CavityPrediction, cavity_parameters, cavity_predictions
from glv.community import (Community, abundance, core_interactions, equilibrium_abundance, offdiag,
                           random_community, relative_yield, richness, species_reactivity, subcommunity)
from glv.errors import (CommunityCollapsed, GLVError, IntegrationFailure, InvalidCarryingCapacity,
                        SingularInteractionMatrix)
from glv.integrate import Trajectory
from glv.models import GLVmodel, simulate_extinctions, simulate_noise, simulate_press, simulate_pulse, solve
from glv.responses import eep_sizes, extinction_thresholds, pulse_responses, species_response

__version__ = '0.1.0'

__all__ = [
    'Community', 'richness', 'abundance', 'equilibrium_abundance', 'relative_yield', 'core_interactions',
    'species_reactivity', 'offdiag', 'subcommunity', 'random_community',
    'GLVmodel', 'Trajectory', 'solve', 'simulate_noise', 'simulate_pulse', 'simulate_press', 'simulate_extinctions',
    'assemble', 'n_removed',
    'CavityParameters', 'CavityPrediction', 'cavity_parameters', 'cavity_predictions',
    'species_response', 'pulse_responses', 'extinction_thresholds', 'eep_sizes',
    'GLVError', 'SingularInteractionMatrix', 'InvalidCarryingCapacity', 'CommunityCollapsed', 'IntegrationFailure',
]
