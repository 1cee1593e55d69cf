import itertools
from typing import Tuple, Optional, List

import numpy as np


def ensure_array(arr, shape: Optional[Tuple] = None, ndim: Optional[int] = None,
                 dtype=None, size=None) -> np.ndarray:
    if isinstance(arr, set):
        if dtype is not None:
            arr = np.fromiter(arr, dtype, len(arr))
        else:
            arr = np.asarray(list(arr))
    if not isinstance(arr, np.ndarray):
        arr = np.asanyarray(arr)

    if shape is not None and arr.shape != shape:
        raise ValueError(f"Shape of provided array was {arr.shape} != {shape}")
    if ndim is not None and arr.ndim != ndim:
        raise ValueError(f"ndim of provided array was {arr.ndim} != {ndim}")
    if size is not None and np.size(arr) != size:
        raise ValueError(f"size of provided array was {np.size(arr)} != {size}")
    if dtype is not None and not np.issubdtype(arr.dtype, dtype):
        raise ValueError(f"Array got incompatible dtype: {arr.dtype} is not a subtype of {dtype}.")
    return arr


def ensure_floating_array(arr, shape: Tuple = None, ndim: int = None, size=None) -> np.ndarray:
    arr = ensure_array(arr, shape=shape, ndim=ndim, size=size, dtype=np.number)
    if not np.issubdtype(arr.dtype, np.floating):
        arr = arr.astype(np.float64)
    return arr


def ensure_sequences(input_data) -> List[np.ndarray]:
    r""" Ensures that the input data is a list of sequences, i.e., two-dimensional arrays of shape (T, d). A single
    one-dimensional array is interpreted as one sequence of scalar observations, a single two-dimensional array
    as one sequence and a three-dimensional array as a stack of sequences.

    Parameters
    ----------
    input_data : ndarray or list of ndarray
        the input data

    Returns
    -------
    data : list of np.ndarray
        sequences with at least two dimensions each
    """
    if isinstance(input_data, np.ndarray) and input_data.ndim >= 3:
        input_data = [x for x in input_data]
    if not isinstance(input_data, (list, tuple)):
        input_data = [input_data]
    grouped = itertools.groupby(input_data, type)
    unique_types = [t for t, _ in grouped]
    if len(unique_types) > 1:
        raise ValueError("All sequences must be of same type, but got types {}".format(unique_types))
    sequences = []
    for x in input_data:
        x = ensure_floating_array(x)
        if x.ndim == 1:
            x = x[:, None]
        if x.ndim != 2:
            raise ValueError(f"Sequences must be one- or two-dimensional, but got ndim={x.ndim}.")
        sequences.append(x)
    return sequences
