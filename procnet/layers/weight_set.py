"""Owned bundle of named weight tensors for one layer direction."""

from procnet.tensor.initialization import Initialization
from procnet.tensor.matrix import Matrix


class WeightSet:
    """
    Named weights and constants of one layer (or one direction of a
    bidirectional layer).

    Subclasses register their matrices in __init__; afterwards the set of
    matrices and their shapes never change.
    """

    def __init__(self, initialization=Initialization.UNIFORM_XAVIER, rng=None):
        self.initialization = Initialization(initialization)
        self.rng = rng
        self._weights = {}
        self._biases = set()
        self._constants = {}
        self.stop_gradients = set()

    def register_weight(self, name, rows, columns, regularize=False):
        weight = Matrix(rows, columns, self.initialization, name=name, rng=self.rng)
        weight.regularize = regularize
        self._weights[name] = weight
        return weight

    def register_bias(self, name, rows):
        bias = Matrix(rows, 1, Initialization.ZERO, name=name)
        self._weights[name] = bias
        self._biases.add(name)
        return bias

    def register_constant(self, name, rows, columns, initialization=Initialization.ONE, stop_gradient=True):
        constant = Matrix(rows, columns, initialization, name=name)
        self._constants[name] = constant
        if stop_gradient:
            self.stop_gradients.add(name)
        return constant

    def __getitem__(self, name):
        if name in self._weights:
            return self._weights[name]
        return self._constants[name]

    def named_weights(self):
        return list(self._weights.items())

    def named_constants(self):
        return list(self._constants.items())

    @property
    def weights(self):
        return list(self._weights.values())

    @property
    def constants(self):
        return list(self._constants.values())

    def reinitialize(self):
        """Re-randomize weights and zero biases in place."""
        for name, weight in self._weights.items():
            if name in self._biases:
                weight.reset()
            else:
                weight.initialize(self.initialization, self.rng)

    @property
    def number_of_parameters(self):
        return sum(weight.size for weight in self._weights.values())

    def state_dict(self):
        return {name: weight.value.copy() for name, weight in self._weights.items()}

    def load_state_dict(self, state):
        for name, weight in self._weights.items():
            if state[name].shape != weight.shape:
                raise ValueError(f"Weight {name} has shape {weight.shape}, checkpoint has {state[name].shape}")
            weight.copy_from(state[name])
