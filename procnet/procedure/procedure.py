"""
Replayable computation graph with reverse-mode differentiation through time.

A Procedure is the compiled tape of one timestep. Forward replay evaluates the
tape once per timestep, feeding every state placeholder with the value its
successor node produced at the previous step. Backward replay walks the
processed timesteps in reverse, pushing gradients through each tape node's
local derivative rule and carrying state gradients into the previous step.
"""

from enum import Enum

import numpy as np

from procnet.exceptions import ProcedureError
from procnet.procedure.node import NodeKind
from procnet.tensor.initialization import initialize_array
from procnet.utils.sequence import Sequence


class StateSlot(Enum):
    """Snapshot slot for recurrent state kept per execution mode."""
    TRAINING = "training"
    TESTING = "testing"


class Procedure:
    """
    Compiled tape.

    The tape structure never changes after construction. Replay reads the
    current values of weight matrices, so optimizer updates between passes are
    picked up without rebuilding.
    """

    def __init__(self, nodes, input_indices, output_indices, state_links, operation_indices, name=None):
        self.nodes = list(nodes)
        self.input_indices = list(input_indices)
        self.output_indices = list(output_indices)
        self.state_links = dict(state_links)
        self.operation_indices = list(operation_indices)
        self.name = name

        self.weights = [node.matrix for node in self.nodes if node.kind is NodeKind.WEIGHT]
        self.constants = [node.matrix for node in self.nodes if node.kind is NodeKind.CONSTANT]
        self.stop_gradients = [node.matrix for node in self.nodes
                               if node.kind is NodeKind.CONSTANT and node.stop_gradient]

        # State carried into the next forward pass, keyed by state node index.
        # Missing entries mean "start from the state's initial value".
        self._dependencies = {}
        self._training_snapshot = None
        self._testing_snapshot = None

        self._history = {}
        self._order = []
        self._gradients = {}
        self._forward_done = False

    @property
    def has_dependencies(self):
        return bool(self.state_links)

    def get_node(self, name):
        for node in self.nodes:
            if node.name == name:
                return node
        raise ProcedureError(f"No node named {name!r}")

    # ----- state lifecycle -----

    def reset(self, reset_dependencies=True):
        """
        Clear per-sequence history and gradients.

        Args:
            reset_dependencies: If True also drop carried recurrent state so the
                next sequence starts from initial state values
        """
        self._history = {}
        self._order = []
        self._gradients = {}
        self._forward_done = False
        if reset_dependencies:
            self._dependencies = {}

    def store_dependencies(self, slot):
        snapshot = dict(self._dependencies)
        if StateSlot(slot) is StateSlot.TRAINING:
            self._training_snapshot = snapshot
        else:
            self._testing_snapshot = snapshot

    def restore_dependencies(self, slot):
        snapshot = self._training_snapshot if StateSlot(slot) is StateSlot.TRAINING else self._testing_snapshot
        self._dependencies = dict(snapshot) if snapshot is not None else {}

    def current_state(self):
        """Carried state by state name, initial values for states not yet produced."""
        return {self.nodes[index].name: self._initial_state(index) for index in self.state_links}

    def _initial_state(self, state_index):
        if state_index in self._dependencies:
            return self._dependencies[state_index]
        node = self.nodes[state_index]
        return initialize_array(node.initialization, *node.shape)

    # ----- forward -----

    def calculate_expression(self, input_sequence, output_sequence=None, reverse=False):
        """
        Replay the tape over a sequence.

        Args:
            input_sequence: Sequence with one entry per procedure input
            output_sequence: Optional Sequence to fill, created if None
            reverse: Iterate timestep indices in descending order

        Returns:
            output_sequence: Sequence with one entry per procedure output
        """
        if input_sequence.depth != len(self.input_indices):
            raise ProcedureError(f"Procedure expects {len(self.input_indices)} inputs per step, "
                                 f"sequence has depth {input_sequence.depth}")
        if output_sequence is None:
            output_sequence = Sequence(len(self.output_indices))

        self._history = {}
        self._gradients = {}
        self._order = input_sequence.descending_keys() if reverse else input_sequence.keys()

        state = {index: self._initial_state(index) for index in self.state_links}
        for step in self._order:
            values = self._evaluate(input_sequence[step], state)
            self._history[step] = values
            state = {index: values[successor] for index, successor in self.state_links.items()}
            output_sequence.put(step, tuple(values[index] for index in self.output_indices))
        self._forward_done = True

        if self._order:
            self._dependencies = state
        return output_sequence

    def _evaluate(self, sample, state):
        values = [None] * len(self.nodes)
        for entry, index in enumerate(self.input_indices):
            values[index] = sample[entry]
        for index, value in state.items():
            values[index] = value
        for node in self.nodes:
            if node.matrix is not None:
                values[node.index] = node.matrix.value
        for index in self.operation_indices:
            node = self.nodes[index]
            values[index] = node.expression.forward(*[values[operand] for operand in node.operands])
        return values

    # ----- backward -----

    def calculate_gradient(self, output_gradient_sequence, input_gradient_sequence=None, steps=-1):
        """
        Reverse-mode differentiation through the last forward replay.

        Args:
            output_gradient_sequence: Gradient of the loss for every procedure output
            input_gradient_sequence: Optional Sequence to fill, created if None
            steps: Number of most recent timesteps to visit, -1 for all

        Returns:
            input_gradient_sequence: Gradient for every procedure input; timesteps
                outside the truncation window get zero gradients
        """
        if not self._forward_done:
            raise ProcedureError("calculate_gradient called before calculate_expression")
        if output_gradient_sequence.depth != len(self.output_indices):
            raise ProcedureError(f"Procedure has {len(self.output_indices)} outputs, "
                                 f"gradient sequence has depth {output_gradient_sequence.depth}")
        if input_gradient_sequence is None:
            input_gradient_sequence = Sequence(len(self.input_indices))

        self._gradients = {node.matrix: np.zeros(node.shape)
                           for node in self.nodes if node.kind is NodeKind.WEIGHT}
        carried = {}
        backward_order = list(reversed(self._order))
        visited = backward_order if steps < 0 else backward_order[:steps]

        for step in visited:
            gradients = self._backpropagate_step(step, output_gradient_sequence, carried)
            for node in self.nodes:
                if node.kind is NodeKind.WEIGHT and gradients[node.index] is not None:
                    self._gradients[node.matrix] += gradients[node.index]
            input_gradient_sequence.put(step, tuple(
                gradients[index] if gradients[index] is not None else np.zeros(self.nodes[index].shape)
                for index in self.input_indices))
            carried = {index: gradients[index] for index in self.state_links if gradients[index] is not None}

        for step in backward_order[len(visited):]:
            input_gradient_sequence.put(step, tuple(np.zeros(self.nodes[index].shape)
                                                    for index in self.input_indices))
        return input_gradient_sequence

    def _backpropagate_step(self, step, output_gradient_sequence, carried):
        values = self._history[step]
        gradients = [None] * len(self.nodes)

        def accumulate(index, gradient):
            if self.nodes[index].stop_gradient:
                return
            gradients[index] = gradient if gradients[index] is None else gradients[index] + gradient

        if step in output_gradient_sequence:
            for entry, index in enumerate(self.output_indices):
                accumulate(index, output_gradient_sequence[step][entry])
        for state_index, gradient in carried.items():
            accumulate(self.state_links[state_index], gradient)

        for index in reversed(self.operation_indices):
            gradient = gradients[index]
            if gradient is None:
                continue
            node = self.nodes[index]
            operand_values = [values[operand] for operand in node.operands]
            operand_gradients = node.expression.backward(gradient, operand_values, values[index])
            for operand, operand_gradient in zip(node.operands, operand_gradients):
                accumulate(operand, operand_gradient)
        return gradients

    def get_gradient(self, matrix):
        if matrix not in self._gradients:
            raise ProcedureError(f"No gradient for {matrix!r}")
        return self._gradients[matrix]

    @property
    def gradients(self):
        return dict(self._gradients)

    def node_values(self, name):
        """Per-timestep values of a named node from the last forward replay."""
        node = self.get_node(name)
        return {step: self._history[step][node.index] for step in sorted(self._history)}

    # ----- printing -----

    def print_expression_chain(self):
        if self.name:
            print(f"{self.name}:")
        for node in self.nodes:
            if node.is_leaf and node.kind is not NodeKind.OPERATION:
                print(f"  {node.describe(self.nodes)}")
        for index in self.operation_indices:
            print(f"  {self.nodes[index].describe(self.nodes)}")
        for state_index, successor in self.state_links.items():
            print(f"  {self.nodes[state_index].name}(t+1) <- {self.nodes[successor].name}(t)")

    def print_gradient_chain(self):
        if self.name:
            print(f"{self.name}:")
        for state_index, successor in self.state_links.items():
            print(f"  d{self.nodes[successor].name}(t) += d{self.nodes[state_index].name}(t+1)")
        for index in reversed(self.operation_indices):
            node = self.nodes[index]
            for operand in node.operands:
                if self.nodes[operand].stop_gradient:
                    continue
                print(f"  d{self.nodes[operand].name} += d{node.name} via {node.expression!r}")
