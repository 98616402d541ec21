"""
Builds a Procedure by running a cell definition once against placeholder symbols.

A cell definition writes its single-timestep formula with ordinary method
calls (``w.Wi.dot(x).add(w.bi)``). Each call records a node on the tape and
returns a new symbol, so after one symbolic pass the tape holds the complete
operation chain for one timestep.
"""

from types import SimpleNamespace

import numpy as np

from procnet.exceptions import ProcedureError
from procnet.procedure.expression import (
    AddExpression,
    DotExpression,
    JoinExpression,
    MultiplyExpression,
    SubtractExpression,
    TransposeExpression,
    UnaryFunctionExpression,
    UnjoinExpression,
)
from procnet.procedure.node import Node, NodeKind
from procnet.procedure.procedure import Procedure
from procnet.tensor.activation import get_activation
from procnet.tensor.initialization import Initialization


class Symbol:
    """Placeholder handle for a tape node used while building a procedure."""

    __slots__ = ("factory", "index")

    def __init__(self, factory, index):
        self.factory = factory
        self.index = index

    @property
    def node(self):
        return self.factory.nodes[self.index]

    @property
    def shape(self):
        return self.node.shape

    @property
    def name(self):
        return self.node.name

    def set_name(self, name):
        self.node.name = name
        return self

    def _record(self, expression, *others):
        return self.factory.record(expression, (self,) + others)

    def add(self, other):
        return self._record(AddExpression(), other)

    def subtract(self, other):
        return self._record(SubtractExpression(), other)

    def multiply(self, other):
        return self._record(MultiplyExpression(), other)

    def dot(self, other):
        return self._record(DotExpression(), other)

    def apply(self, activation):
        return self._record(UnaryFunctionExpression(get_activation(activation)))

    def transpose(self):
        return self._record(TransposeExpression())

    def join(self, other):
        return self._record(JoinExpression(), other)

    def unjoin(self, start, rows=1):
        return self._record(UnjoinExpression(start, rows))

    __add__ = add
    __sub__ = subtract
    __mul__ = multiply
    __matmul__ = dot

    def __repr__(self):
        return f"Symbol({self.name!r}, shape={self.shape})"


class ProcedureFactory:
    """Records leaves and operations, then compiles them into a Procedure."""

    def __init__(self, name=None):
        self.name = name
        self.nodes = []
        self._inputs = []
        self._states = []
        self._matrix_nodes = {}

    def _add_node(self, **fields):
        node = Node(index=len(self.nodes), **fields)
        self.nodes.append(node)
        return Symbol(self, node.index)

    def input(self, name, rows, columns=1):
        symbol = self._add_node(kind=NodeKind.INPUT, name=name, shape=(rows, columns))
        self._inputs.append(symbol.index)
        return symbol

    def state(self, name, rows, columns=1, initialization=Initialization.ZERO):
        """Placeholder for the value a node produced at the previous timestep."""
        symbol = self._add_node(kind=NodeKind.STATE, name=name, shape=(rows, columns),
                                initialization=Initialization(initialization))
        self._states.append(symbol.index)
        return symbol

    def weight(self, matrix):
        return self._matrix_leaf(matrix, NodeKind.WEIGHT, stop_gradient=False)

    def constant(self, matrix, stop_gradient=True):
        return self._matrix_leaf(matrix, NodeKind.CONSTANT, stop_gradient=stop_gradient)

    def _matrix_leaf(self, matrix, kind, stop_gradient):
        if id(matrix) in self._matrix_nodes:
            return Symbol(self, self._matrix_nodes[id(matrix)])
        symbol = self._add_node(kind=kind, name=matrix.name or f"Node{len(self.nodes)}",
                                shape=matrix.shape, matrix=matrix, stop_gradient=stop_gradient)
        self._matrix_nodes[id(matrix)] = symbol.index
        return symbol

    def record(self, expression, operands):
        for operand in operands:
            if not isinstance(operand, Symbol) or operand.factory is not self:
                raise ProcedureError(f"{expression!r} operand {operand!r} is not a symbol of this procedure")
        shapes = [operand.shape for operand in operands]
        try:
            shape = expression.forward(*[np.zeros(s) for s in shapes]).shape
        except ValueError as e:
            raise ProcedureError(f"{expression!r} cannot combine shapes {shapes}: {e}") from e
        return self._add_node(kind=NodeKind.OPERATION, name=f"Node{len(self.nodes)}", shape=shape,
                              expression=expression, operands=tuple(o.index for o in operands))

    def build(self, outputs, next_state):
        """
        Compile the recorded tape.

        Args:
            outputs: Symbol or list of symbols exposed per timestep
            next_state: Dict state placeholder name -> symbol holding its next value

        Returns:
            procedure: Compiled Procedure
        """
        if isinstance(outputs, Symbol):
            outputs = [outputs]
        outputs = list(outputs or [])
        if not outputs:
            raise ProcedureError("Procedure produces no output")
        if not self._inputs:
            raise ProcedureError("Procedure has no input")

        states_by_name = {self.nodes[index].name: index for index in self._states}
        if set(next_state) != set(states_by_name):
            raise ProcedureError(f"State successors {sorted(next_state)} do not match "
                                 f"declared states {sorted(states_by_name)}")
        state_links = {}
        for name, symbol in next_state.items():
            state_index = states_by_name[name]
            if symbol.shape != self.nodes[state_index].shape:
                raise ProcedureError(f"State {name} has shape {self.nodes[state_index].shape} "
                                     f"but its successor has shape {symbol.shape}")
            state_links[state_index] = symbol.index

        targets = [symbol.index for symbol in outputs] + list(state_links.values())
        return Procedure(
            nodes=self.nodes,
            input_indices=self._inputs,
            output_indices=[symbol.index for symbol in outputs],
            state_links=state_links,
            operation_indices=self._reachable_operations(targets),
            name=self.name,
        )

    def _reachable_operations(self, targets):
        reachable = set()
        pending = list(targets)
        while pending:
            index = pending.pop()
            if index in reachable:
                continue
            reachable.add(index)
            pending.extend(self.nodes[index].operands)
        # Operands always precede their node, so tape order is a valid evaluation order.
        return [index for index in sorted(reachable) if not self.nodes[index].is_leaf]


def build_procedure(cell, weight_set, input_widths, layer_width, name=None):
    """
    Build the procedure for one weight set by running the cell definition once.

    Args:
        cell: Cell definition providing state_definitions() and forward_step()
        weight_set: WeightSet whose matrices become weight / constant leaves
        input_widths: Width of each layer input
        layer_width: Width of the cell output
        name: Optional procedure name used when printing

    Returns:
        procedure: Compiled Procedure
    """
    factory = ProcedureFactory(name)
    inputs = [factory.input(f"Input{index}" if len(input_widths) > 1 else "Input", width)
              for index, width in enumerate(input_widths)]
    state = {state_name: factory.state(state_name, layer_width, initialization=initialization)
             for state_name, initialization in cell.state_definitions().items()}
    symbols = {weight_name: factory.weight(matrix) for weight_name, matrix in weight_set.named_weights()}
    for constant_name, matrix in weight_set.named_constants():
        symbols[constant_name] = factory.constant(matrix, stop_gradient=constant_name in weight_set.stop_gradients)
    outputs, next_state = cell.forward_step(SimpleNamespace(**symbols), inputs, state)
    return factory.build(outputs, next_state)
