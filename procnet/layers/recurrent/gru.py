"""
Gated Recurrent Unit (GRU).

    z = sigmoid(Wz * x + Uz * out(t-1) + bz)          -> update gate
    r = sigmoid(Wr * x + Ur * out(t-1) + br)          -> reset gate
    h = tanh(Wh * x + Uh * (out(t-1) x r) + bh)       -> candidate
    out = (1 - z) x h + z x out(t-1)
"""

from procnet.layers.cell import CellDefinition
from procnet.layers.recurrent.lstm import SIGMOID, TANH
from procnet.layers.weight_set import WeightSet


class GRUWeightSet(WeightSet):

    def __init__(self, initialization, previous_layer_width, layer_width,
                 regulate_direct_weights=True, regulate_recurrent_weights=False, rng=None):
        super().__init__(initialization, rng)
        for gate in "zrh":
            self.register_weight(f"W{gate}", layer_width, previous_layer_width, regulate_direct_weights)
        for gate in "zrh":
            self.register_weight(f"U{gate}", layer_width, layer_width, regulate_recurrent_weights)
        for gate in "zrh":
            self.register_bias(f"b{gate}", layer_width)
        self.register_constant("ones", layer_width, 1)


class GRUCell(CellDefinition):
    name = "GRU"
    PARAM_DEFS = {"regulate_direct_weights": bool, "regulate_recurrent_weights": bool}
    DEFAULTS = {"regulate_direct_weights": True, "regulate_recurrent_weights": False}

    def create_weight_set(self, initialization, previous_layer_width, layer_width, rng=None):
        return GRUWeightSet(initialization, previous_layer_width, layer_width,
                            self.regulate_direct_weights, self.regulate_recurrent_weights, rng)

    def forward_step(self, w, inputs, state):
        x = inputs[0]
        previous_output = state["PrevOutput"]

        z = w.Wz.dot(x).add(w.Uz.dot(previous_output)).add(w.bz).apply(SIGMOID).set_name("z")
        r = w.Wr.dot(x).add(w.Ur.dot(previous_output)).add(w.br).apply(SIGMOID).set_name("r")
        h = w.Wh.dot(x).add(w.Uh.dot(previous_output.multiply(r))).add(w.bh).apply(TANH).set_name("h")

        output = w.ones.subtract(z).multiply(h).add(z.multiply(previous_output)).set_name("Output")
        return [output], {"PrevOutput": output}
