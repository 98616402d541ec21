"""Named, identity-hashed weight matrix."""

import numpy as np

from procnet.tensor.initialization import Initialization, initialize_array


class Matrix:
    """
    Owned weight or constant tensor.

    The array in ``value`` is only mutated in place (initialize, reset,
    optimizer updates), so procedures holding a reference always see the
    current values. Instances hash by identity and are used as keys of
    weight gradient maps.
    """

    def __init__(self, rows, columns, initialization=Initialization.ZERO, name=None, rng=None):
        self.name = name
        self.initialization = Initialization(initialization)
        self.value = initialize_array(self.initialization, rows, columns, rng)
        self.regularize = False

    @property
    def rows(self):
        return self.value.shape[0]

    @property
    def columns(self):
        return self.value.shape[1]

    @property
    def shape(self):
        return self.value.shape

    @property
    def size(self):
        return self.value.size

    def initialize(self, initialization=None, rng=None):
        """Re-randomize in place keeping the shape."""
        initialization = self.initialization if initialization is None else Initialization(initialization)
        self.value[...] = initialize_array(initialization, self.rows, self.columns, rng)

    def reset(self):
        """Zero in place."""
        self.value.fill(0.0)

    def copy_from(self, other):
        np.copyto(self.value, other.value if isinstance(other, Matrix) else other)

    def __repr__(self):
        return f"Matrix(name={self.name!r}, shape={self.shape})"
