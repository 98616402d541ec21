#!/usr/bin/env python
"""
Test procedure construction and replay.

Usage:
    python tests/test_procedure.py
"""

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import torch

from procnet.exceptions import ProcedureError
from procnet.procedure.factory import ProcedureFactory
from procnet.procedure.node import NodeKind
from procnet.procedure.procedure import StateSlot
from procnet.tensor.activation import ActivationFunctionType
from procnet.tensor.initialization import Initialization
from procnet.tensor.matrix import Matrix
from procnet.utils.sequence import Sequence


def simple_procedure(rng):
    """out = tanh(W x + U out(t-1))"""
    factory = ProcedureFactory("simple")
    x = factory.input("Input", 3)
    h = factory.state("PrevOutput", 2)
    W = Matrix(2, 3, Initialization.NORMAL_XAVIER, name="W", rng=rng)
    U = Matrix(2, 2, Initialization.NORMAL_XAVIER, name="U", rng=rng)
    out = (factory.weight(W) @ x + factory.weight(U) @ h).apply(ActivationFunctionType.TANH).set_name("Output")
    return factory.build(out, {"PrevOutput": out}), W, U


def test_construction():
    """Test tape structure after build."""
    print("\n" + "=" * 60)
    print("Test 1: Construction")
    print("=" * 60)

    procedure, W, U = simple_procedure(np.random.default_rng(0))
    assert procedure.weights == [W, U]
    assert procedure.has_dependencies
    assert procedure.get_node("Output").kind is NodeKind.OPERATION
    assert procedure.get_node("PrevOutput").kind is NodeKind.STATE
    assert len(procedure.operation_indices) == 4
    print("✓ Leaves, state link and four operations recorded")

    # Unused operations are dropped
    factory = ProcedureFactory()
    x = factory.input("Input", 2)
    ones = factory.constant(Matrix(2, 1, Initialization.ONE, name="ones"))
    x.add(ones).add(ones)
    out = x.multiply(ones)
    procedure = factory.build([out], {})
    assert len(procedure.operation_indices) == 1
    assert procedure.stop_gradients == procedure.constants
    assert not procedure.has_dependencies
    print("✓ Unreachable operations dropped, constants recorded as stop-gradient")

    print("\n✅ Construction tests passed!")


def test_construction_errors():
    """Test construction time errors."""
    print("\n" + "=" * 60)
    print("Test 2: Construction errors")
    print("=" * 60)

    def expect_error(build, label):
        try:
            build()
            assert False, f"{label} should fail"
        except ProcedureError:
            print(f"✓ {label}")

    def no_output():
        factory = ProcedureFactory()
        factory.input("Input", 2)
        factory.build([], {})

    def no_input():
        factory = ProcedureFactory()
        W = factory.weight(Matrix(2, 1, name="W"))
        factory.build([W.add(W)], {})

    def unknown_state():
        factory = ProcedureFactory()
        x = factory.input("Input", 2)
        factory.build([x.add(x)], {"Missing": x})

    def state_without_successor():
        factory = ProcedureFactory()
        x = factory.input("Input", 2)
        h = factory.state("PrevOutput", 2)
        factory.build([x.add(h)], {})

    def state_shape_mismatch():
        factory = ProcedureFactory()
        x = factory.input("Input", 2)
        h = factory.state("PrevOutput", 3)
        factory.build([x.add(x)], {"PrevOutput": x.add(x)})

    def operand_shape_mismatch():
        factory = ProcedureFactory()
        x = factory.input("Input", 2)
        factory.weight(Matrix(3, 3, name="W")).dot(x)

    def add_broadcast():
        factory = ProcedureFactory()
        x = factory.input("Input", 3)
        x.add(x.transpose())

    def multiply_broadcast():
        factory = ProcedureFactory()
        x = factory.input("Input", 3)
        x.multiply(x.transpose())

    def foreign_symbol():
        first, second = ProcedureFactory(), ProcedureFactory()
        first.input("Input", 2).add(second.input("Input", 2))

    expect_error(no_output, "Procedure without output rejected")
    expect_error(no_input, "Procedure without input rejected")
    expect_error(unknown_state, "Unknown state name rejected")
    expect_error(state_without_successor, "State without successor rejected")
    expect_error(state_shape_mismatch, "State / successor shape mismatch rejected")
    expect_error(operand_shape_mismatch, "Operand shape mismatch rejected at record time")
    expect_error(add_broadcast, "Addition of (3, 1) and (1, 3) rejected")
    expect_error(multiply_broadcast, "Product of (3, 1) and (1, 3) rejected")
    expect_error(foreign_symbol, "Symbol of another procedure rejected")

    procedure, _, _ = simple_procedure(np.random.default_rng(0))
    expect_error(lambda: procedure.calculate_gradient(Sequence(1)), "Backward before forward rejected")
    expect_error(lambda: procedure.calculate_expression(Sequence(2)), "Input depth mismatch rejected")

    factory = ProcedureFactory()
    x = factory.input("Input", 3)
    scale = factory.weight(Matrix(1, 1, name="s"))
    assert x.multiply(scale).shape == (3, 1) and scale.multiply(x).shape == (3, 1)
    print("✓ (1, 1) operand still scales a vector")

    print("\n✅ Construction error tests passed!")


def test_gradients_match_torch():
    """Test an expression using every operation against PyTorch."""
    print("\n" + "=" * 60)
    print("Test 3: Every operation vs PyTorch autograd")
    print("=" * 60)

    rng = np.random.default_rng(1)
    factory = ProcedureFactory("all operations")
    x = factory.input("Input", 3)
    h = factory.state("PrevOutput", 3)
    A = Matrix(3, 1, Initialization.NORMAL_XAVIER, name="A", rng=rng)
    B = Matrix(2, 3, Initialization.NORMAL_XAVIER, name="B", rng=rng)
    s = Matrix(1, 1, Initialization.NORMAL_XAVIER, name="s", rng=rng)
    a, b, scale = factory.weight(A), factory.weight(B), factory.weight(s)

    joined = x.join(a).apply(ActivationFunctionType.SOFTMAX)                 # (6, 1)
    middle = joined.unjoin(2, 3)                                             # (3, 1)
    row = middle.transpose().dot(b.transpose())                              # (1, 2)
    hidden = row.transpose().apply(ActivationFunctionType.SIGMOID)           # (2, 1)
    mixed = b.transpose().dot(hidden).multiply(scale)                        # (3, 1)
    out = mixed.subtract(h).apply(ActivationFunctionType.TANH).add(x).set_name("Output")
    procedure = factory.build(out, {"PrevOutput": out})

    length = 4
    xs = rng.normal(size=(length, 3))
    G = rng.normal(size=(length, 3))
    outputs = procedure.calculate_expression(Sequence.from_array(xs))
    input_gradients = procedure.calculate_gradient(Sequence.from_array(G))

    tA, tB, ts = (torch.tensor(m.value, requires_grad=True) for m in (A, B, s))
    tx = [torch.tensor(xs[t].reshape(-1, 1), requires_grad=True) for t in range(length)]
    state = torch.zeros(3, 1, dtype=torch.float64)
    loss = 0.0
    for t in range(length):
        j = torch.softmax(torch.cat([tx[t], tA]), dim=0)
        hid = torch.sigmoid((j[2:5].T @ tB.T).T)
        state = torch.tanh((tB.T @ hid) * ts - state) + tx[t]
        assert np.allclose(outputs.get(t, 0), state.detach().numpy(), atol=1e-12)
        loss = loss + (state * torch.tensor(G[t].reshape(-1, 1))).sum()
    loss.backward()

    for matrix, tensor in ((A, tA), (B, tB), (s, ts)):
        assert np.allclose(procedure.get_gradient(matrix), tensor.grad.numpy(), atol=1e-10), matrix.name
    for t in range(length):
        assert np.allclose(input_gradients.get(t, 0), tx[t].grad.numpy(), atol=1e-10)
    print("✓ add, subtract, multiply, dot, apply, join, unjoin, transpose match")

    print("\n✅ Gradient tests passed!")


def test_stop_gradient():
    """Test that gradients do not flow into stop-gradient constants."""
    print("\n" + "=" * 60)
    print("Test 4: Stop gradient")
    print("=" * 60)

    factory = ProcedureFactory()
    x = factory.input("Input", 2)
    ones = factory.constant(Matrix(2, 1, Initialization.ONE, name="ones"))
    W = Matrix(2, 2, Initialization.ONE, name="W")
    out = ones.subtract(factory.weight(W).dot(x)).set_name("Output")
    procedure = factory.build(out, {})

    procedure.calculate_expression(Sequence.from_array([[1.0, 2.0]]))
    procedure.calculate_gradient(Sequence.from_array([[1.0, 1.0]]))
    assert np.allclose(procedure.get_gradient(W), -np.array([[1.0, 2.0], [1.0, 2.0]]))
    try:
        procedure.get_gradient(procedure.constants[0])
        assert False, "constants have no gradient"
    except ProcedureError:
        pass
    print("✓ Constant excluded from gradients, weight gradient correct")

    print("\n✅ Stop gradient tests passed!")


def test_state_snapshots():
    """Test reset, store and restore of carried state."""
    print("\n" + "=" * 60)
    print("Test 5: State snapshots")
    print("=" * 60)

    procedure, _, _ = simple_procedure(np.random.default_rng(2))
    sequence = Sequence.from_array(np.random.default_rng(3).normal(size=(3, 3)))

    first = procedure.calculate_expression(sequence).to_array()
    carried = procedure.current_state()["PrevOutput"].copy()
    assert np.allclose(carried[:, 0], first[-1])
    print("✓ Final output carried as next initial state")

    procedure.store_dependencies(StateSlot.TRAINING)
    continued = procedure.calculate_expression(sequence).to_array()
    assert not np.allclose(continued, first)

    procedure.reset(True)
    assert np.all(procedure.current_state()["PrevOutput"] == 0.0)
    assert np.allclose(procedure.calculate_expression(sequence).to_array(), first)
    print("✓ reset(True) returns to zero state")

    procedure.restore_dependencies(StateSlot.TRAINING)
    assert np.allclose(procedure.calculate_expression(sequence).to_array(), continued)
    print("✓ restore_dependencies reloads the stored state")

    procedure.restore_dependencies(StateSlot.TESTING)
    assert np.all(procedure.current_state()["PrevOutput"] == 0.0)
    print("✓ Empty slot restores initial state")

    procedure.calculate_expression(sequence)
    procedure.reset(False)
    assert np.allclose(procedure.calculate_expression(sequence).to_array(), continued)
    print("✓ reset(False) keeps carried state")

    print("\n✅ Snapshot tests passed!")


def test_printing():
    """Test expression and gradient chain printing."""
    print("\n" + "=" * 60)
    print("Test 6: Printing")
    print("=" * 60)

    procedure, _, _ = simple_procedure(np.random.default_rng(0))
    procedure.print_expression_chain()
    procedure.print_gradient_chain()
    print("✓ Expression and gradient chains printed")


def run_all_tests():
    """Run all tests."""
    print("\n" + "=" * 60)
    print("PROCEDURE TEST SUITE")
    print("=" * 60)

    test_construction()
    test_construction_errors()
    test_gradients_match_torch()
    test_stop_gradient()
    test_state_snapshots()
    test_printing()

    print("\n" + "=" * 60)
    print("ALL TESTS PASSED! ✅")
    print("=" * 60)


if __name__ == "__main__":
    run_all_tests()
