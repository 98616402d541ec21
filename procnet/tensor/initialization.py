"""Weight initialization schemes."""

from enum import Enum

import numpy as np


class Initialization(Enum):
    """Initialization scheme for a weight matrix."""

    ZERO = "zero"
    ONE = "one"
    RANDOM = "random"
    NORMAL_XAVIER = "normal_xavier"
    UNIFORM_XAVIER = "uniform_xavier"
    NORMAL_HE = "normal_he"
    UNIFORM_HE = "uniform_he"
    NORMAL_LECUN = "normal_lecun"
    UNIFORM_LECUN = "uniform_lecun"


_default_rng = np.random.default_rng(0)


def seed(value):
    """Reseed the generator used when no explicit generator is passed."""
    global _default_rng
    _default_rng = np.random.default_rng(value)


def initialize_array(initialization, rows, columns, rng=None):
    """
    Create a (rows, columns) array initialized with the given scheme.

    Args:
        initialization: Initialization member (or its string value)
        rows: Number of rows (fan out)
        columns: Number of columns (fan in)
        rng: Optional numpy Generator, module generator if None

    Returns:
        array: float64 array of shape (rows, columns)
    """
    initialization = Initialization(initialization)
    rng = _default_rng if rng is None else rng
    shape = (rows, columns)
    fan_in, fan_out = columns, rows

    if initialization is Initialization.ZERO:
        return np.zeros(shape)
    if initialization is Initialization.ONE:
        return np.ones(shape)
    if initialization is Initialization.RANDOM:
        return rng.random(shape)

    if initialization is Initialization.NORMAL_XAVIER:
        return rng.normal(0.0, np.sqrt(2.0 / (fan_in + fan_out)), size=shape)
    if initialization is Initialization.UNIFORM_XAVIER:
        limit = np.sqrt(6.0 / (fan_in + fan_out))
        return rng.uniform(-limit, limit, size=shape)
    if initialization is Initialization.NORMAL_HE:
        return rng.normal(0.0, np.sqrt(2.0 / fan_in), size=shape)
    if initialization is Initialization.UNIFORM_HE:
        limit = np.sqrt(6.0 / fan_in)
        return rng.uniform(-limit, limit, size=shape)
    if initialization is Initialization.NORMAL_LECUN:
        return rng.normal(0.0, np.sqrt(1.0 / fan_in), size=shape)
    # UNIFORM_LECUN
    limit = np.sqrt(3.0 / fan_in)
    return rng.uniform(-limit, limit, size=shape)
