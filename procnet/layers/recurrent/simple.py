"""
Simple recurrent layer.

    out = act(W * x + B + Wl * out(t-1))
"""

from procnet.layers.cell import CellDefinition
from procnet.layers.weight_set import WeightSet
from procnet.tensor.activation import ActivationFunctionType, get_activation


class RecurrentWeightSet(WeightSet):

    def __init__(self, initialization, previous_layer_width, layer_width,
                 regulate_direct_weights=True, regulate_recurrent_weights=False, rng=None):
        super().__init__(initialization, rng)
        self.register_weight("W", layer_width, previous_layer_width, regulate_direct_weights)
        self.register_weight("Wl", layer_width, layer_width, regulate_recurrent_weights)
        self.register_bias("B", layer_width)


class RecurrentCell(CellDefinition):
    name = "Recurrent"
    PARAM_DEFS = {"regulate_direct_weights": bool, "regulate_recurrent_weights": bool}
    DEFAULTS = {"regulate_direct_weights": True, "regulate_recurrent_weights": False}

    def __init__(self, activation=ActivationFunctionType.TANH, **params):
        super().__init__(**params)
        self.activation = get_activation(activation)

    def create_weight_set(self, initialization, previous_layer_width, layer_width, rng=None):
        return RecurrentWeightSet(initialization, previous_layer_width, layer_width,
                                  self.regulate_direct_weights, self.regulate_recurrent_weights, rng)

    def forward_step(self, w, inputs, state):
        output = w.W.dot(inputs[0]).add(w.B).add(w.Wl.dot(state["PrevOutput"]))
        output = output.apply(self.activation).set_name("Output")
        return [output], {"PrevOutput": output}

    def details(self):
        return f"activation: {self.activation}, " + super().details()
