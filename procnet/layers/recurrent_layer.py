"""Recurrent layer: replays a recurrent cell over a sequence, optionally in both directions."""

from procnet.exceptions import ConfigurationError
from procnet.layers.execution_layer import ExecutionLayer


class RecurrentLayer(ExecutionLayer):
    """
    Recurrent layer built from any recurrent cell definition.

    Bidirectional layers own a second weight set and procedure that iterate
    the same input sequence in descending index order. Outputs of both
    directions are joined along the feature axis, so layer_width is twice the
    cell width.
    """

    PARAM_DEFS = {
        "truncate_steps": int,
        "reversed_input": bool,
    }
    DEFAULTS = {
        "truncate_steps": -1,
        "reversed_input": False,
    }

    def __init__(self, cell, width, bidirectional=False, **kwargs):
        self.bidirectional = bool(bidirectional)
        super().__init__(cell, width, **kwargs)

    @property
    def name(self):
        return f"Bidirectional {self.cell.name}" if self.bidirectional else self.cell.name

    def validate_param(self, param, value):
        if param == "truncate_steps" and value < -1:
            raise ConfigurationError(f"truncate_steps must be -1 (unlimited) or non-negative, got {value}")

    @property
    def number_of_directions(self):
        return 2 if self.bidirectional else 1

    def is_recurrent_layer(self):
        return True

    def check_input_widths(self, widths):
        if len(widths) != 1:
            raise ConfigurationError(f"{self.name} layer takes exactly one previous layer, got {len(widths)}")
        return widths

    def forward_process(self, input_sequence):
        """
        Args:
            input_sequence: Depth-1 Sequence of (previous_layer_width, 1) arrays

        Returns:
            output_sequence: Depth-1 Sequence of (layer_width, 1) arrays, same indices
        """
        self._check_initialized()
        input_sequence.check_contiguous()
        self.prepare_state()

        outputs = self.procedures[0].calculate_expression(input_sequence, reverse=self.reversed_input)
        if self.bidirectional:
            reverse_outputs = self.procedures[1].calculate_expression(input_sequence, reverse=not self.reversed_input)
            outputs = outputs.join(reverse_outputs)
        return outputs

    def backward_process(self, output_gradient_sequence):
        """
        Args:
            output_gradient_sequence: Gradient of the loss w.r.t. every layer output

        Returns:
            input_gradient_sequence: Gradient w.r.t. every layer input; both
                directions are summed for bidirectional layers
        """
        self._check_initialized()
        if not self.bidirectional:
            return self.procedures[0].calculate_gradient(output_gradient_sequence, steps=self.truncate_steps)

        forward_gradients, reverse_gradients = output_gradient_sequence.split(self.width)
        input_gradients = self.procedures[0].calculate_gradient(forward_gradients, steps=self.truncate_steps)
        reverse_input_gradients = self.procedures[1].calculate_gradient(reverse_gradients, steps=self.truncate_steps)
        return input_gradients.add(reverse_input_gradients)

    def print(self):
        super().print()
        print(f"  Truncate steps: {self.truncate_steps}, reversed input: {self.reversed_input}")
