"""Activation functions with forward evaluation and derivative."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np


class ActivationFunctionType(Enum):
    LINEAR = "linear"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    RELU = "relu"
    SOFTMAX = "softmax"


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 0.5 * (1.0 + np.tanh(0.5 * x))


def _softmax(x: np.ndarray) -> np.ndarray:
    # Column vectors: normalize over rows.
    e = np.exp(x - np.max(x, axis=0, keepdims=True))
    return e / np.sum(e, axis=0, keepdims=True)


@dataclass(frozen=True)
class ActivationFunction:
    """
    Named unary function.

    deriv receives (x, y) where y = fn(x) so that sigmoid and tanh can reuse
    their output. Softmax has no element-wise derivative and is handled by its
    Jacobian-vector product in gradient().
    """
    name: str
    fn: Callable[[np.ndarray], np.ndarray]
    deriv: Optional[Callable[[np.ndarray, np.ndarray], np.ndarray]] = None

    def apply(self, x: np.ndarray) -> np.ndarray:
        return self.fn(x)

    def gradient(self, x: np.ndarray, y: np.ndarray, output_gradient: np.ndarray) -> np.ndarray:
        """Gradient with respect to x given the gradient with respect to y."""
        if self.deriv is None:
            return y * (output_gradient - np.sum(output_gradient * y, axis=0, keepdims=True))
        return output_gradient * self.deriv(x, y)

    def __str__(self):
        return self.name


_FUNCTIONS = {
    ActivationFunctionType.LINEAR: ActivationFunction(
        "LINEAR", lambda x: x.copy(), lambda x, y: np.ones_like(x)),
    ActivationFunctionType.SIGMOID: ActivationFunction(
        "SIGMOID", _sigmoid, lambda x, y: y * (1.0 - y)),
    ActivationFunctionType.TANH: ActivationFunction(
        "TANH", np.tanh, lambda x, y: 1.0 - y * y),
    ActivationFunctionType.RELU: ActivationFunction(
        "RELU", lambda x: np.maximum(x, 0.0), lambda x, y: (x > 0).astype(x.dtype)),
    ActivationFunctionType.SOFTMAX: ActivationFunction("SOFTMAX", _softmax),
}


def get_activation(function_type) -> ActivationFunction:
    """Look up an activation by type, name string or pass an instance through."""
    if isinstance(function_type, ActivationFunction):
        return function_type
    if isinstance(function_type, str):
        function_type = ActivationFunctionType[function_type.upper()]
    return _FUNCTIONS[function_type]
