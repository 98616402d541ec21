"""
Tape operations.

Each expression knows how to evaluate itself for concrete operand values and
how to push an output gradient back to its operands (local derivative rule).
Operands are 2D column-oriented arrays.
"""

import numpy as np


def check_shapes(a, b, allow_scalar=False):
    """Element-wise operands must match, or one may be a (1, 1) scalar."""
    if a.shape == b.shape:
        return
    if allow_scalar and (a.shape == (1, 1) or b.shape == (1, 1)):
        return
    raise ValueError(f"Incompatible shapes {a.shape} and {b.shape}")


def unbroadcast(gradient, shape):
    """Sum a broadcast gradient back down to the operand shape."""
    for axis, size in enumerate(shape):
        if size == 1 and gradient.shape[axis] != 1:
            gradient = np.sum(gradient, axis=axis, keepdims=True)
    return gradient


class Expression:
    """Base class of tape operations."""

    symbol = "?"

    def forward(self, *operands):
        raise NotImplementedError

    def backward(self, gradient, operands, output):
        """Return one gradient per operand."""
        raise NotImplementedError

    def describe(self, names):
        return f" {self.symbol} ".join(names)

    def __repr__(self):
        return type(self).__name__


class AddExpression(Expression):
    symbol = "+"

    def forward(self, a, b):
        check_shapes(a, b)
        return a + b

    def backward(self, gradient, operands, output):
        a, b = operands
        return unbroadcast(gradient, a.shape), unbroadcast(gradient, b.shape)


class SubtractExpression(Expression):
    symbol = "-"

    def forward(self, a, b):
        check_shapes(a, b)
        return a - b

    def backward(self, gradient, operands, output):
        a, b = operands
        return unbroadcast(gradient, a.shape), unbroadcast(-gradient, b.shape)


class MultiplyExpression(Expression):
    """Element-wise product, a (1, 1) operand broadcasts as a scalar."""

    symbol = "*"

    def forward(self, a, b):
        check_shapes(a, b, allow_scalar=True)
        return a * b

    def backward(self, gradient, operands, output):
        a, b = operands
        return unbroadcast(gradient * b, a.shape), unbroadcast(gradient * a, b.shape)


class DotExpression(Expression):
    symbol = "·"

    def forward(self, a, b):
        return a @ b

    def backward(self, gradient, operands, output):
        a, b = operands
        return gradient @ b.T, a.T @ gradient


class UnaryFunctionExpression(Expression):

    def __init__(self, activation):
        self.activation = activation

    def forward(self, a):
        return self.activation.apply(a)

    def backward(self, gradient, operands, output):
        return (self.activation.gradient(operands[0], output, gradient),)

    def describe(self, names):
        return f"{self.activation.name}({names[0]})"


class TransposeExpression(Expression):

    def forward(self, a):
        return a.T

    def backward(self, gradient, operands, output):
        return (gradient.T,)

    def describe(self, names):
        return f"{names[0]}ᵀ"


class JoinExpression(Expression):
    """Concatenate two column vectors along the row (feature) axis."""

    symbol = "⊕"

    def forward(self, a, b):
        return np.concatenate((a, b), axis=0)

    def backward(self, gradient, operands, output):
        rows = operands[0].shape[0]
        return gradient[:rows], gradient[rows:]


class UnjoinExpression(Expression):
    """Slice `rows` rows starting at `start`."""

    def __init__(self, start, rows):
        self.start = start
        self.rows = rows

    def forward(self, a):
        if self.start + self.rows > a.shape[0]:
            raise ValueError(f"Unjoin rows {self.start}:{self.start + self.rows} out of range for {a.shape}")
        return a[self.start:self.start + self.rows]

    def backward(self, gradient, operands, output):
        operand_gradient = np.zeros_like(operands[0])
        operand_gradient[self.start:self.start + self.rows] = gradient
        return (operand_gradient,)

    def describe(self, names):
        return f"{names[0]}[{self.start}:{self.start + self.rows}]"
