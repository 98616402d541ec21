"""Ordered per-timestep container exchanged between layers."""

import numpy as np

from procnet.exceptions import SequenceError


class Sequence:
    """
    Mapping from timestep index to a tuple of column-vector arrays.

    The tuple width (depth) is fixed per sequence: one entry per layer input
    or output. Iteration is always in ascending index order regardless of
    insertion order, so a backward pass may fill it from the last index down.
    """

    def __init__(self, depth=1):
        if depth < 1:
            raise SequenceError(f"Sequence depth must be positive, got {depth}")
        self.depth = depth
        self._samples = {}

    @classmethod
    def from_array(cls, array):
        """
        Build a depth-1 sequence from a (T, features) array.

        Row t becomes the (features, 1) column vector at index t.
        """
        array = np.asarray(array, dtype=float)
        if array.ndim == 1:
            array = array[:, None]
        sequence = cls(1)
        for index, row in enumerate(array):
            sequence.put(index, row.reshape(-1, 1))
        return sequence

    @classmethod
    def zip(cls, sequences):
        """Combine depth-1 sequences sharing indices into one multi-entry sequence."""
        sequences = list(sequences)
        if not sequences:
            raise SequenceError("Cannot zip an empty list of sequences")
        keys = sequences[0].keys()
        for other in sequences[1:]:
            if other.keys() != keys:
                raise SequenceError("Zipped sequences must share the same indices")
        zipped = cls(sum(sequence.depth for sequence in sequences))
        for index in keys:
            zipped.put(index, tuple(entry for sequence in sequences for entry in sequence[index]))
        return zipped

    def put(self, index, sample):
        if isinstance(sample, np.ndarray):
            sample = (sample,)
        sample = tuple(sample)
        if len(sample) != self.depth:
            raise SequenceError(f"Sample at index {index} has depth {len(sample)}, expected {self.depth}")
        self._samples[index] = sample

    def get(self, index, entry=None):
        sample = self._samples[index]
        return sample if entry is None else sample[entry]

    def __getitem__(self, index):
        return self._samples[index]

    def __setitem__(self, index, sample):
        self.put(index, sample)

    def __contains__(self, index):
        return index in self._samples

    def __len__(self):
        return len(self._samples)

    def __iter__(self):
        return iter(self.keys())

    def keys(self):
        return sorted(self._samples)

    def descending_keys(self):
        return sorted(self._samples, reverse=True)

    def items(self):
        return [(index, self._samples[index]) for index in self.keys()]

    @property
    def first_key(self):
        return min(self._samples)

    @property
    def last_key(self):
        return max(self._samples)

    def check_contiguous(self):
        """Raise SequenceError unless indices are 0..N-1."""
        if self.keys() != list(range(len(self))):
            raise SequenceError(f"Sequence indices must be contiguous from 0, got {self.keys()}")

    def entry(self, entry):
        """Depth-1 view of a single tuple position."""
        sequence = Sequence(1)
        for index, sample in self._samples.items():
            sequence.put(index, sample[entry])
        return sequence

    def join(self, other):
        """Concatenate matching entries of two sequences along the feature axis."""
        if other.keys() != self.keys() or other.depth != self.depth:
            raise SequenceError("Joined sequences must share indices and depth")
        joined = Sequence(self.depth)
        for index, sample in self._samples.items():
            joined.put(index, tuple(np.concatenate((a, b), axis=0) for a, b in zip(sample, other[index])))
        return joined

    def split(self, rows):
        """Inverse of join: split every entry after the first `rows` features."""
        first, second = Sequence(self.depth), Sequence(self.depth)
        for index, sample in self._samples.items():
            first.put(index, tuple(entry[:rows] for entry in sample))
            second.put(index, tuple(entry[rows:] for entry in sample))
        return first, second

    def add(self, other):
        """Element-wise sum of two sequences with the same indices."""
        if other.keys() != self.keys() or other.depth != self.depth:
            raise SequenceError("Added sequences must share indices and depth")
        total = Sequence(self.depth)
        for index, sample in self._samples.items():
            total.put(index, tuple(a + b for a, b in zip(sample, other[index])))
        return total

    def to_array(self, entry=0):
        """Stack one entry over time into a (T, features) array."""
        return np.stack([self._samples[index][entry][:, 0] for index in self.keys()])

    def __repr__(self):
        return f"Sequence(length={len(self)}, depth={self.depth})"
