"""Loss functions over sequences."""

import numpy as np

from procnet.exceptions import SequenceError
from procnet.utils.sequence import Sequence


def mean_squared_error(outputs, targets, mask=None):
    """
    Mean squared error over every timestep and feature.

    Args:
        outputs: Depth-1 Sequence of layer outputs
        targets: Depth-1 Sequence of targets with the same indices
        mask: Optional depth-1 Sequence of 0/1 arrays selecting active targets

    Returns:
        loss: Scalar loss value
        gradient: Sequence with dLoss/dOutput per timestep
    """
    if outputs.keys() != targets.keys():
        raise SequenceError("Outputs and targets must share the same indices")

    errors = {}
    count = 0
    for index in outputs.keys():
        diff = outputs.get(index, 0) - targets.get(index, 0)
        if mask is not None:
            diff = diff * mask.get(index, 0)
            count += int(np.sum(mask.get(index, 0)))
        else:
            count += diff.size
        errors[index] = diff

    gradient = Sequence(1)
    if count == 0:
        for index, diff in errors.items():
            gradient.put(index, np.zeros_like(diff))
        return 0.0, gradient

    loss = sum(float(np.sum(diff * diff)) for diff in errors.values()) / count
    for index, diff in errors.items():
        gradient.put(index, 2.0 * diff / count)
    return loss, gradient
