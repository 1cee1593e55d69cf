from typing import Optional, Iterator, Dict, List, Tuple

import numpy as np

from ..base import Dataset
from ..util.exceptions import ConfigurationError
from ..util.types import ensure_floating_array


class Phrase:
    r""" A recorded multidimensional sequence of observations. In bimodal mode, each observation vector consists
    of an input segment (the first :attr:`dimension_input` entries) followed by an output segment.

    Parameters
    ----------
    data : (T, d) ndarray
        The observations.
    dimension_input : int, optional, default=None
        Width of the input segment. None means that the phrase is unimodal.
    """

    def __init__(self, data, dimension_input: Optional[int] = None):
        data = np.array(ensure_floating_array(data), dtype=np.float64)
        if data.ndim == 1:
            data = data[:, None]
        if data.ndim != 2:
            raise ValueError(f"Phrase data must be two-dimensional (time, dimension), but had ndim={data.ndim}.")
        if dimension_input is not None and not 0 < dimension_input < data.shape[1]:
            raise ConfigurationError(f"Input dimension ({dimension_input}) must be positive and smaller than the "
                                     f"total dimension ({data.shape[1]}).")
        self._data = data
        self._dimension_input = dimension_input

    @property
    def data(self) -> np.ndarray:
        r""" The full observation array of shape (T, d). """
        return self._data

    @property
    def dimension(self) -> int:
        return self._data.shape[1]

    @property
    def dimension_input(self) -> Optional[int]:
        return self._dimension_input

    @property
    def bimodal(self) -> bool:
        return self._dimension_input is not None

    @property
    def inputs(self) -> np.ndarray:
        r""" View on the input segments of all observations, shape (T, dimension_input). For unimodal phrases,
        this is the full data. """
        if not self.bimodal:
            return self._data
        return self._data[:, :self._dimension_input]

    @property
    def outputs(self) -> Optional[np.ndarray]:
        r""" View on the output segments of all observations or None if the phrase is unimodal. """
        if not self.bimodal:
            return None
        return self._data[:, self._dimension_input:]

    def input_at(self, t: int) -> np.ndarray:
        return self.inputs[t]

    def output_at(self, t: int) -> Optional[np.ndarray]:
        return None if not self.bimodal else self.outputs[t]

    def __len__(self):
        return self._data.shape[0]

    def __getitem__(self, item):
        return self._data[item]

    def setflags(self, write=True):
        self._data.setflags(write=write)


class TrainingSet(Dataset):
    r""" An ordered collection of :class:`phrases <Phrase>` which share dimension and input dimension.

    Phrases are addressed by integer index and iterated in increasing index order. Every mutation increments
    :attr:`generation`, so that consumers holding derived buffers can check whether they need to reallocate.

    Parameters
    ----------
    dimension : int, optional, default=1
        Total dimension of the observations.
    dimension_input : int, optional, default=None
        Width of the input segment of each observation. If given, the training set is bimodal.

    Examples
    --------
    >>> ts = TrainingSet(dimension=3, dimension_input=1)
    >>> ts.add_phrase(np.zeros((10, 3)))
    0
    >>> len(ts), ts.bimodal
    (1, True)
    """

    def __init__(self, dimension: int = 1, dimension_input: Optional[int] = None):
        if dimension < 1:
            raise ConfigurationError("Dimension must be positive.")
        self._dimension = int(dimension)
        self._dimension_input = None
        self._phrases: Dict[int, Phrase] = {}
        self._generation = 0
        self.dimension_input = dimension_input

    @staticmethod
    def from_sequences(sequences: List[np.ndarray], dimension_input: Optional[int] = None) -> "TrainingSet":
        r""" Creates a training set from a list of (T, d) arrays, indexed in list order.

        Parameters
        ----------
        sequences : list of ndarray
            The sequences.
        dimension_input : int, optional, default=None
            Width of the input segment if the training set should be bimodal.

        Returns
        -------
        training_set : TrainingSet
            The new training set.
        """
        from ..util.types import ensure_sequences
        sequences = ensure_sequences(sequences)
        if len(sequences) == 0:
            raise ValueError("Need at least one sequence.")
        training_set = TrainingSet(dimension=sequences[0].shape[1], dimension_input=dimension_input)
        for seq in sequences:
            training_set.add_phrase(seq)
        return training_set

    @property
    def generation(self) -> int:
        r""" Counter which is incremented on every modification of this training set. """
        return self._generation

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def dimension_input(self) -> Optional[int]:
        return self._dimension_input

    @dimension_input.setter
    def dimension_input(self, value: Optional[int]):
        if value is not None:
            value = int(value)
            if not 0 < value < self._dimension:
                raise ConfigurationError(f"Input dimension ({value}) must be positive and smaller than the total "
                                         f"dimension ({self._dimension}).")
        self._dimension_input = value
        for index, phrase in self._phrases.items():
            self._phrases[index] = Phrase(phrase.data, value)
        self._generation += 1

    @property
    def bimodal(self) -> bool:
        return self._dimension_input is not None

    @property
    def indices(self) -> List[int]:
        r""" Sorted phrase indices. """
        return sorted(self._phrases.keys())

    @property
    def lengths(self) -> Tuple[int, ...]:
        r""" Lengths of the phrases in index order. """
        return tuple(len(p) for p in self)

    def is_empty(self) -> bool:
        return len(self._phrases) == 0

    def add_phrase(self, data, index: Optional[int] = None) -> int:
        r""" Adds (or replaces) a phrase.

        Parameters
        ----------
        data : (T, d) ndarray
            The observations, second axis must match :attr:`dimension`.
        index : int, optional, default=None
            Index under which the phrase is stored. Defaults to one past the largest index in use.

        Returns
        -------
        index : int
            The index of the phrase.
        """
        phrase = Phrase(data, self._dimension_input)
        if phrase.dimension != self._dimension:
            raise ConfigurationError(f"Phrase dimension ({phrase.dimension}) does not match the training set "
                                     f"dimension ({self._dimension}).")
        if len(phrase) == 0:
            raise ValueError("Cannot add an empty phrase.")
        if index is None:
            index = max(self._phrases.keys()) + 1 if self._phrases else 0
        if index < 0:
            raise IndexError(f"Phrase index must be non-negative but was {index}.")
        self._phrases[index] = phrase
        self._generation += 1
        return index

    def remove_phrase(self, index: int) -> None:
        if index not in self._phrases:
            raise IndexError(f"No phrase with index {index}.")
        del self._phrases[index]
        self._generation += 1

    def clear(self) -> None:
        self._phrases.clear()
        self._generation += 1

    def setflags(self, write=True):
        for phrase in self._phrases.values():
            phrase.setflags(write=write)

    def __len__(self):
        return len(self._phrases)

    def __getitem__(self, index) -> Phrase:
        try:
            return self._phrases[index]
        except KeyError:
            raise IndexError(f"No phrase with index {index}.") from None

    def __iter__(self) -> Iterator[Phrase]:
        for index in self.indices:
            yield self._phrases[index]
