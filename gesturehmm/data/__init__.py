r"""
.. currentmodule: gesturehmm.data

Training data containers.

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    Phrase
    TrainingSet
"""

from ._training_set import Phrase, TrainingSet
