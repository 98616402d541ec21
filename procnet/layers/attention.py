"""
Additive attention over several previous-layer inputs of the same width.

    score_k = v * tanh(Wa * [input_k ; out(t-1)] + ba)
    weights = softmax([score_1 ... score_K])
    out     = sum_k weights_k * input_k

The output is fed back as out(t-1) at the next timestep. The context starts
as a ones vector.
"""

import numpy as np

from procnet.exceptions import ConfigurationError, SequenceError
from procnet.layers.cell import CellDefinition
from procnet.layers.execution_layer import ExecutionLayer
from procnet.layers.weight_set import WeightSet
from procnet.tensor.activation import ActivationFunctionType
from procnet.tensor.initialization import Initialization


class AttentionWeightSet(WeightSet):

    def __init__(self, initialization, previous_layer_width, regulate_direct_weights=True, rng=None):
        super().__init__(initialization, rng)
        self.register_weight("Wa", previous_layer_width, 2 * previous_layer_width, regulate_direct_weights)
        self.register_bias("ba", previous_layer_width)
        self.register_weight("v", 1, previous_layer_width, regulate_direct_weights)


class AttentionCell(CellDefinition):
    name = "Attention"
    PARAM_DEFS = {"regulate_direct_weights": bool}
    DEFAULTS = {"regulate_direct_weights": True}

    def create_weight_set(self, initialization, previous_layer_width, layer_width, rng=None):
        return AttentionWeightSet(initialization, previous_layer_width, self.regulate_direct_weights, rng)

    def state_definitions(self):
        return {"PreviousOutput": Initialization.ONE}

    def forward_step(self, w, inputs, state):
        previous_output = state["PreviousOutput"]

        scores = None
        for index, input_symbol in enumerate(inputs):
            hidden = w.Wa.dot(input_symbol.join(previous_output)).add(w.ba).apply(ActivationFunctionType.TANH)
            score = w.v.dot(hidden).set_name(f"Score{index}")
            scores = score if scores is None else scores.join(score)
        attention_weights = scores.apply(ActivationFunctionType.SOFTMAX).set_name("AttentionWeights")

        output = None
        for index, input_symbol in enumerate(inputs):
            term = input_symbol.multiply(attention_weights.unjoin(index))
            output = term if output is None else output.add(term)
        output.set_name("Output")
        return [output], {"PreviousOutput": output}


class AttentionLayer(ExecutionLayer):
    """
    Attention layer. Not recurrent: backward passes always visit every step.

    The layer width equals the common width of its inputs and is set by
    initialize_weights().
    """

    name = "Attention"

    def __init__(self, cell=None, **kwargs):
        super().__init__(cell if cell is not None else AttentionCell(), None, **kwargs)

    @property
    def layer_width(self):
        return self.width

    def check_input_widths(self, widths):
        if len(set(widths)) != 1:
            raise ConfigurationError(f"Attention inputs must share one width, got {widths}")
        self.width = widths[0]
        return widths

    def forward_process(self, input_sequence):
        """
        Args:
            input_sequence: Sequence with one entry per previous layer
                (see Sequence.zip)

        Returns:
            output_sequence: Depth-1 Sequence of attended (width, 1) arrays
        """
        self._check_initialized()
        if input_sequence.depth != len(self.input_widths):
            raise SequenceError(f"Attention layer has {len(self.input_widths)} inputs, "
                                f"sequence has depth {input_sequence.depth}")
        input_sequence.check_contiguous()
        self.prepare_state()
        return self.procedures[0].calculate_expression(input_sequence)

    def backward_process(self, output_gradient_sequence):
        """Returns a Sequence with one gradient entry per previous layer."""
        self._check_initialized()
        return self.procedures[0].calculate_gradient(output_gradient_sequence)

    def attention_weights(self):
        """Attention weights of the last forward pass as a (T, number_of_inputs) array."""
        self._check_initialized()
        values = self.procedures[0].node_values("AttentionWeights")
        return np.stack([values[step][:, 0] for step in sorted(values)])
