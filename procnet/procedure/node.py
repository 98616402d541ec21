"""Tape entries."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from procnet.procedure.expression import Expression
from procnet.tensor.initialization import Initialization
from procnet.tensor.matrix import Matrix


class NodeKind(Enum):
    INPUT = "input"
    STATE = "state"
    WEIGHT = "weight"
    CONSTANT = "constant"
    OPERATION = "operation"


@dataclass
class Node:
    """
    One tape position.

    Leaves (inputs, states, weights, constants) have no expression; operation
    nodes reference their operands by tape index.
    """
    index: int
    kind: NodeKind
    name: str
    shape: Tuple[int, int]
    expression: Optional[Expression] = None
    operands: Tuple[int, ...] = ()
    matrix: Optional[Matrix] = None
    initialization: Initialization = Initialization.ZERO  # STATE only
    stop_gradient: bool = False

    @property
    def is_leaf(self):
        return self.expression is None

    def describe(self, nodes):
        if self.is_leaf:
            return f"{self.name} <{self.kind.value} {self.shape[0]}x{self.shape[1]}>"
        operand_names = [nodes[index].name for index in self.operands]
        return f"{self.name} = {self.expression.describe(operand_names)}"
