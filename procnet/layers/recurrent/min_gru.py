"""
Minimal GRU: a single forget gate plays both update and reset role.

    f = sigmoid(Wf * x + Uf * out(t-1) + bf)
    h = tanh(Wh * x + Uh * (out(t-1) x f) + bh)
    out = (1 - f) x h + f x out(t-1)
"""

from procnet.layers.cell import CellDefinition
from procnet.layers.recurrent.lstm import SIGMOID, TANH
from procnet.layers.weight_set import WeightSet


class MinGRUWeightSet(WeightSet):

    def __init__(self, initialization, previous_layer_width, layer_width,
                 regulate_direct_weights=True, regulate_recurrent_weights=False, rng=None):
        super().__init__(initialization, rng)
        for gate in "fh":
            self.register_weight(f"W{gate}", layer_width, previous_layer_width, regulate_direct_weights)
        for gate in "fh":
            self.register_weight(f"U{gate}", layer_width, layer_width, regulate_recurrent_weights)
        for gate in "fh":
            self.register_bias(f"b{gate}", layer_width)
        self.register_constant("ones", layer_width, 1)


class MinGRUCell(CellDefinition):
    name = "MinGRU"
    PARAM_DEFS = {"regulate_direct_weights": bool, "regulate_recurrent_weights": bool}
    DEFAULTS = {"regulate_direct_weights": True, "regulate_recurrent_weights": False}

    def create_weight_set(self, initialization, previous_layer_width, layer_width, rng=None):
        return MinGRUWeightSet(initialization, previous_layer_width, layer_width,
                               self.regulate_direct_weights, self.regulate_recurrent_weights, rng)

    def forward_step(self, w, inputs, state):
        x = inputs[0]
        previous_output = state["PrevOutput"]

        f = w.Wf.dot(x).add(w.Uf.dot(previous_output)).add(w.bf).apply(SIGMOID).set_name("f")
        h = w.Wh.dot(x).add(w.Uh.dot(previous_output.multiply(f))).add(w.bh).apply(TANH).set_name("h")

        output = w.ones.subtract(f).multiply(h).add(f.multiply(previous_output)).set_name("Output")
        return [output], {"PrevOutput": output}
