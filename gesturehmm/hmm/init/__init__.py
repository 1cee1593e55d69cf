r"""
.. currentmodule: gesturehmm.hmm.init

Heuristics which yield initial parameters for Baum-Welch training.

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    initialize_parameters
    initialize_means_first_phrase
    initialize_covariances_all_phrases
    initialize_mixture_components
    estimate_n_states
    from_data
"""

from ._segments import initialize_parameters, initialize_means_first_phrase, initialize_covariances_all_phrases, \
    initialize_mixture_components, estimate_n_states
from ._gaussian_mixture_impl import from_data
