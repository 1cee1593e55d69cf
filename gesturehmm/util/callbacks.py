class _SilentProgressBar:
    r""" Counts updates without displaying anything, used when no progress bar was requested. """

    def __init__(self, total=None):
        self.total = total
        self.n = 0

    def update(self, inc=1):
        self.n += inc

    def close(self):
        pass

    def set_description(self, description):
        pass


PROGRESS_METHODS = ('update', 'close', 'set_description')
PROGRESS_ATTRIBUTES = ('n',)


def supports_progress_interface(bar) -> bool:
    r""" Whether an object can be driven as a progress bar, i.e., it has the methods listed in
    :data:`PROGRESS_METHODS` and the attributes listed in :data:`PROGRESS_ATTRIBUTES`, as a `tqdm` bar does.

    Parameters
    ----------
    bar : object
        The candidate progress bar.

    Returns
    -------
    supports : bool
        Whether the object qualifies.
    """
    return all(callable(getattr(bar, name, None)) for name in PROGRESS_METHODS) \
        and all(hasattr(bar, name) for name in PROGRESS_ATTRIBUTES)


class LikelihoodProgressCallback:
    r""" Advances a progress bar once per Baum-Welch iteration and shows the most recent log-likelihood next to
    the description. Used as a context manager, leaving the context completes and closes the bar.

    Parameters
    ----------
    progress : callable or None
        Progress bar factory accepting a `total` keyword argument, e.g. `tqdm.tqdm`. If None, progress is counted
        but not displayed.
    description : str, optional, default=None
        Text in front of the bar.
    total : int, optional, default=None
        Expected number of iterations, None if unknown.

    Raises
    ------
    TypeError
        If the created bar does not satisfy :func:`supports_progress_interface`.
    """

    def __init__(self, progress, description=None, total=None):
        factory = _SilentProgressBar if progress is None else progress
        self.progress_bar = factory(total=total)
        if not supports_progress_interface(self.progress_bar):
            raise TypeError(f"Progress bar must provide the methods {PROGRESS_METHODS} "
                            f"and the attributes {PROGRESS_ATTRIBUTES}.")
        self.description = description
        if description is not None:
            self.progress_bar.set_description(description)

    def __call__(self, inc=1, log_likelihood=None):
        self.progress_bar.update(inc)
        if log_likelihood is not None:
            self.progress_bar.set_description(f"{self.description} - [log-lik: {log_likelihood:.4e}]")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            # unknown totals are fixed up so the bar renders as complete
            self.progress_bar.total = self.progress_bar.n
        self.progress_bar.close()
