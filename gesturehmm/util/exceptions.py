class ConfigurationError(ValueError):
    r"""
    Raised when a model is configured inconsistently, e.g., with a non-positive number of states, an unknown
    transition mode or when an API is used which is not available in the model's current mode (bimodal
    functions on a unimodal model, exit probabilities on a non-hierarchical model).
    """


class PersistenceFormatError(ValueError):
    r"""
    Raised when a serialized model document is malformed or does not match the model it is loaded into.

    Parameters
    ----------
    message : str
        Description of the problem.
    field : str, optional, default=None
        Name of the offending field of the document.
    """

    def __init__(self, message, field=None):
        if field is not None:
            message = f"{message} (field '{field}')"
        super().__init__(message)
        self.field = field


class DegeneratePriorWarning(RuntimeWarning):
    r"""
    This warning indicates that the prior distribution over hidden states had zero mass after
    re-estimation or normalization and was reset to the uniform distribution.
    """


class NotConvergedWarning(RuntimeWarning):
    r"""
    This warning indicates that some iterative procedure has not
    converged or reached the maximum number of iterations implemented
    as a safe guard to prevent arbitrary many iterations in loops with
    a conditional termination criterion.
    """
