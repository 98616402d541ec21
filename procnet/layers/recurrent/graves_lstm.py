"""
Graves LSTM with peephole connections (Graves 2013).

    i = sigmoid(Wi * x + Ui * out(t-1) + Ci x c(t-1) + bi)
    f = sigmoid(Wf * x + Uf * out(t-1) + Cf x c(t-1) + bf)
    s = tanh(Ws * x + Us * out(t-1) + bs)
    c = i x s + f x c(t-1)
    o = sigmoid(Wo * x + Uo * out(t-1) + Co x c + bo)
    h = tanh(c) x o  or  h = c x o

The output gate peeks at the current cell state, so it is computed after c.
"""

from procnet.layers.cell import CellDefinition
from procnet.layers.recurrent.lstm import SIGMOID, TANH
from procnet.layers.weight_set import WeightSet
from procnet.tensor.activation import get_activation
from procnet.tensor.initialization import Initialization


class GravesLSTMWeightSet(WeightSet):

    def __init__(self, initialization, previous_layer_width, layer_width,
                 regulate_direct_weights=True, regulate_recurrent_weights=False,
                 regulate_state_weights=False, rng=None):
        super().__init__(initialization, rng)
        for gate in "ifos":
            self.register_weight(f"W{gate}", layer_width, previous_layer_width, regulate_direct_weights)
        for gate in "ifos":
            self.register_weight(f"U{gate}", layer_width, layer_width, regulate_recurrent_weights)
        for gate in "ifo":
            self.register_weight(f"C{gate}", layer_width, 1, regulate_state_weights)
        for gate in "ifos":
            self.register_bias(f"b{gate}", layer_width)


class GravesLSTMCell(CellDefinition):
    name = "GravesLSTM"
    PARAM_DEFS = {
        "double_tanh": bool,
        "regulate_direct_weights": bool,
        "regulate_recurrent_weights": bool,
        "regulate_state_weights": bool,
    }
    DEFAULTS = {
        "double_tanh": True,
        "regulate_direct_weights": True,
        "regulate_recurrent_weights": False,
        "regulate_state_weights": False,
    }

    def __init__(self, activation=TANH, **params):
        super().__init__(**params)
        self.activation = get_activation(activation)

    def create_weight_set(self, initialization, previous_layer_width, layer_width, rng=None):
        return GravesLSTMWeightSet(initialization, previous_layer_width, layer_width,
                                   self.regulate_direct_weights, self.regulate_recurrent_weights,
                                   self.regulate_state_weights, rng)

    def state_definitions(self):
        return {"PrevOutput": Initialization.ZERO, "PrevC": Initialization.ZERO}

    def forward_step(self, w, inputs, state):
        x = inputs[0]
        previous_output = state["PrevOutput"]
        previous_cell_state = state["PrevC"]

        i = w.Wi.dot(x).add(w.Ui.dot(previous_output)).add(w.Ci.multiply(previous_cell_state)).add(w.bi)
        i = i.apply(SIGMOID).set_name("i")
        f = w.Wf.dot(x).add(w.Uf.dot(previous_output)).add(w.Cf.multiply(previous_cell_state)).add(w.bf)
        f = f.apply(SIGMOID).set_name("f")
        s = w.Ws.dot(x).add(w.Us.dot(previous_output)).add(w.bs).apply(TANH).set_name("s")

        c = i.multiply(s).add(previous_cell_state.multiply(f)).set_name("c")

        o = w.Wo.dot(x).add(w.Uo.dot(previous_output)).add(w.Co.multiply(c)).add(w.bo)
        o = o.apply(SIGMOID).set_name("o")

        h = (c.apply(self.activation) if self.double_tanh else c).multiply(o).set_name("Output")

        return [h], {"PrevOutput": h, "PrevC": c}
