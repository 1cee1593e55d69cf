r"""
.. currentmodule: gesturehmm.hmm

Hidden Markov models with Gaussian mixture emissions for gesture following: training with the Baum-Welch
algorithm :footcite:`rabiner1989tutorial` and frame-by-frame decoding with an optional regression of an output
modality from an input modality.

Models
------

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    HiddenMarkovModel
    TransitionModel
    Topology
    EmissionModel
    GaussianMixtureEmission

Estimation
----------

Since Baum-Welch only converges to a local optimum, the initial parameters matter. By default, they are derived from
equal-length segments of the training phrases (see :mod:`gesturehmm.hmm.init`), alternatively an initial guess based
on scikit-learn's Gaussian mixture estimation can be used.

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    MaximumLikelihoodHMM
    BaumWelchTrainer
    StopCriterion
    ForwardBackwardEngine
    SequenceBuffers

    init.initialize_parameters
    init.estimate_n_states
    init.from_data

Decoding
--------

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    RealtimeDecoder
    DecodingResult

Persistence
-----------

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    to_dict
    from_dict
    save
    load

References
----------
.. footbibliography::
"""

from ._emission_model import EmissionModel
from ._gaussian_mixture import GaussianMixtureEmission
from ._transition_model import TransitionModel, Topology
from ._hidden_markov_model import HiddenMarkovModel
from ._forward_backward import ForwardBackwardEngine, SequenceBuffers, allocate_sequence_buffers
from ._baum_welch import BaumWelchTrainer, MaximumLikelihoodHMM, StopCriterion
from ._decoder import RealtimeDecoder, DecodingResult
from ._serialization import to_dict, from_dict, save, load

from . import init
