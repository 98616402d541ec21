"""Weight update rules applied to layer weight gradients."""

import numpy as np


class Optimizer:
    """Applies a gradient to a weight Matrix in place."""

    name = "Optimizer"

    def optimize(self, weight, gradient):
        raise NotImplementedError

    def forget(self, weights):
        """Forget accumulated state of the given weights only."""

    def state_dict(self, weights):
        return {}

    def load_state_dict(self, state, weights):
        pass


class GradientDescent(Optimizer):
    """
    Plain gradient descent.

    L2 weight decay is only applied to weights flagged for regularization.
    """

    name = "GradientDescent"

    def __init__(self, learning_rate=0.01, weight_decay=0.0):
        self.learning_rate = learning_rate
        self.weight_decay = weight_decay

    def optimize(self, weight, gradient):
        if self.weight_decay > 0.0 and weight.regularize:
            gradient = gradient + self.weight_decay * weight.value
        weight.value -= self.learning_rate * gradient


class Adam(Optimizer):
    """Adam with per-weight first and second moment estimates."""

    name = "Adam"

    def __init__(self, learning_rate=0.001, beta1=0.9, beta2=0.999, eps=1e-8, weight_decay=0.0):
        self.learning_rate = learning_rate
        self.beta1 = beta1
        self.beta2 = beta2
        self.eps = eps
        self.weight_decay = weight_decay
        self._moments = {}

    def optimize(self, weight, gradient):
        if self.weight_decay > 0.0 and weight.regularize:
            gradient = gradient + self.weight_decay * weight.value
        step, m, v = self._moments.get(weight, (0, np.zeros_like(gradient), np.zeros_like(gradient)))
        step += 1
        m = self.beta1 * m + (1 - self.beta1) * gradient
        v = self.beta2 * v + (1 - self.beta2) * gradient * gradient
        self._moments[weight] = (step, m, v)

        m_hat = m / (1 - self.beta1 ** step)
        v_hat = v / (1 - self.beta2 ** step)
        weight.value -= self.learning_rate * m_hat / (np.sqrt(v_hat) + self.eps)

    def forget(self, weights):
        for weight in weights:
            self._moments.pop(weight, None)

    def state_dict(self, weights):
        return {
            "learning_rate": self.learning_rate,
            "moments": [self._moments.get(weight) for weight in weights],
        }

    def load_state_dict(self, state, weights):
        self.learning_rate = state["learning_rate"]
        self._moments = {weight: moment for weight, moment in zip(weights, state["moments"])
                         if moment is not None}
