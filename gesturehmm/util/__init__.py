r"""
.. currentmodule: gesturehmm.util

===============================================================================
Exceptions and warnings
===============================================================================

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    exceptions.ConfigurationError
    exceptions.PersistenceFormatError
    exceptions.DegeneratePriorWarning
    exceptions.NotConvergedWarning

===============================================================================
Other utilities
===============================================================================
.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    types.ensure_sequences

    callbacks.supports_progress_interface
    callbacks.LikelihoodProgressCallback
"""

from . import exceptions
from . import types
from . import callbacks
