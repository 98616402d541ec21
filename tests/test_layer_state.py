#!/usr/bin/env python
"""
Test recurrent state lifecycle and truncated backpropagation.

- State reset between sequences
- State store / restore across training and testing mode switches
- Truncated backpropagation through time against PyTorch with detached state
- Parameter validation

Usage:
    python tests/test_layer_state.py
"""

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import torch

from procnet.exceptions import ConfigurationError, ProcedureError
from procnet.layers.factory import create_layer
from procnet.utils.sequence import Sequence
from reference_cells import STATES, STEPS, column, replay, torch_weights


def make_layer(layer_type="lstm", width=3, input_width=2, seed=0, **params):
    rng = np.random.default_rng(seed)
    layer = create_layer(layer_type, width, rng=rng, **params)
    layer.initialize_weights(input_width)
    for weight in layer.weights:
        weight.value[...] = rng.normal(0.0, 0.5, size=weight.shape)
    return layer


def random_sequence(rng, length=4, width=2):
    return Sequence.from_array(rng.normal(size=(length, width)))


def test_state_reset():
    """Test that reset flags decide whether state carries over between sequences."""
    print("\n" + "=" * 60)
    print("Test 1: State reset")
    print("=" * 60)

    rng = np.random.default_rng(1)
    first, second = random_sequence(rng), random_sequence(rng)

    fresh = make_layer().forward_process(second).to_array()

    layer = make_layer(reset_state_training=True)
    layer.set_training(True)
    layer.forward_process(first)
    assert np.array_equal(layer.forward_process(second).to_array(), fresh)
    print("✓ reset_state_training=True: second sequence starts from zero state")

    layer = make_layer(reset_state_training=False)
    layer.set_training(True)
    layer.forward_process(first)
    carried = layer.forward_process(second).to_array()
    assert not np.allclose(carried, fresh)
    print("✓ reset_state_training=False: state carries into the next sequence")

    layer = make_layer(reset_state_testing=True)
    layer.forward_process(first)
    assert np.array_equal(layer.forward_process(second).to_array(), fresh)
    print("✓ reset_state_testing=True in testing mode")

    layer.forward_process(first)
    layer.reset_state()
    layer.set_params(reset_state_testing=False)
    assert np.array_equal(layer.forward_process(second).to_array(), fresh)
    print("✓ reset_state() drops carried state")

    print("\n✅ State reset tests passed!")


def test_state_restore():
    """Test that testing calls do not disturb the restored training state."""
    print("\n" + "=" * 60)
    print("Test 2: State restore across mode switches")
    print("=" * 60)

    rng = np.random.default_rng(2)
    train_a, test_c, train_b = random_sequence(rng), random_sequence(rng), random_sequence(rng)
    flags = dict(restore_state_training=True, restore_state_testing=True)

    reference = make_layer(**flags)
    reference.set_training(True)
    reference.forward_process(train_a)
    expected = reference.forward_process(train_b).to_array()

    layer = make_layer(**flags)
    layer.set_training(True)
    layer.forward_process(train_a)
    layer.set_training(False)
    test_output = layer.forward_process(test_c).to_array()
    layer.set_training(True)
    resumed = layer.forward_process(train_b).to_array()

    assert np.array_equal(resumed, expected)
    print("✓ Training continues from its own state after a testing call")

    assert np.array_equal(test_output, make_layer().forward_process(test_c).to_array())
    print("✓ First testing call starts from zero state")

    # Without restore the mode switch always resets
    layer = make_layer()
    layer.set_training(True)
    layer.forward_process(train_a)
    layer.set_training(False)
    layer.forward_process(test_c)
    layer.set_training(True)
    restarted = layer.forward_process(train_b).to_array()
    assert np.array_equal(restarted, make_layer().forward_process(train_b).to_array())
    print("✓ Without restore flags a mode switch starts from zero state")

    # Testing state is restored on the next testing call
    layer = make_layer(**flags)
    layer.forward_process(test_c)
    testing_state = layer.procedures[0].current_state()
    layer.set_training(True)
    layer.forward_process(train_a)
    layer.set_training(False)
    layer.forward_process(test_c)
    continued = make_layer(**flags)
    continued.forward_process(test_c)
    expected = continued.forward_process(test_c)
    assert np.array_equal(layer.procedures[0].node_values("Output")[3], expected.get(3, 0))
    assert set(testing_state) == {"PrevOutput", "PrevC"}
    print("✓ Testing state is restored after a training call")

    print("\n✅ State restore tests passed!")


def truncated_reference(layer, xs, G, steps):
    length = len(xs)
    width = layer.width
    weights = torch_weights(layer.weight_sets[0])
    inputs = [column(xs[t], requires_grad=True) for t in range(length)]
    state = {name: torch.zeros(width, 1, dtype=torch.float64) for name in STATES["lstm"]}
    first_visited = length - steps
    outputs, _ = replay(STEPS["lstm"], weights, inputs, state, range(length), detach_before=first_visited)
    loss = sum((outputs[t] * column(G[t])).sum() for t in range(first_visited, length))
    loss.backward()
    return weights, inputs


def test_truncated_backpropagation():
    """Test truncate_steps against PyTorch with the state detached."""
    print("\n" + "=" * 60)
    print("Test 3: Truncated backpropagation")
    print("=" * 60)

    rng = np.random.default_rng(3)
    length = 6
    xs = rng.normal(size=(length, 2))
    G = rng.normal(size=(length, 3))

    for steps in [1, 2, 4]:
        layer = make_layer(truncate_steps=steps)
        layer.forward_process(Sequence.from_array(xs))
        input_gradients = layer.backward_process(Sequence.from_array(G))
        gradients = layer.get_layer_weight_gradients()

        weights, inputs = truncated_reference(layer, xs, G, steps)
        for name, matrix in layer.weight_sets[0].named_weights():
            assert np.allclose(gradients[matrix], weights[name].grad.numpy(), atol=1e-10), name
        for t in range(length):
            if t < length - steps:
                assert np.all(input_gradients.get(t, 0) == 0.0)
            else:
                assert np.allclose(input_gradients.get(t, 0), inputs[t].grad.numpy(), atol=1e-10)
        print(f"✓ truncate_steps={steps} matches detached PyTorch replay")

    layer = make_layer(truncate_steps=0)
    layer.forward_process(Sequence.from_array(xs))
    input_gradients = layer.backward_process(Sequence.from_array(G))
    assert all(np.all(g == 0.0) for g in layer.get_layer_weight_gradients().values())
    assert all(np.all(input_gradients.get(t, 0) == 0.0) for t in range(length))
    print("✓ truncate_steps=0 visits no step")

    full = make_layer(truncate_steps=-1)
    longer = make_layer(truncate_steps=100)
    for candidate in (full, longer):
        candidate.forward_process(Sequence.from_array(xs))
        candidate.backward_process(Sequence.from_array(G))
    for a, b in zip(full.weights, longer.weights):
        assert np.allclose(full.get_layer_weight_gradients()[a], longer.get_layer_weight_gradients()[b])
    print("✓ truncate_steps larger than the sequence equals unlimited")

    print("\n✅ Truncation tests passed!")


def test_parameter_validation():
    """Test that invalid parameters are rejected."""
    print("\n" + "=" * 60)
    print("Test 4: Parameter validation")
    print("=" * 60)

    for layer_type in ["recurrent", "lstm", "peephole_lstm", "graves_lstm", "gru", "min_gru", "bi_lstm"]:
        try:
            create_layer(layer_type, 3, truncate_steps=-5)
            assert False, "truncate_steps=-5 should be rejected"
        except ConfigurationError:
            pass
    print("✓ truncate_steps=-5 rejected for every recurrent type")

    invalid = [
        dict(truncate_steps=1.5),
        dict(truncate_steps=True),
        dict(reset_state_training="yes"),
        dict(unknown_flag=True),
        dict(regulate_state_weights=True),  # Graves LSTM only
    ]
    for params in invalid:
        try:
            create_layer("lstm", 3, **params)
            assert False, f"{params} should be rejected"
        except ConfigurationError:
            pass
    print("✓ Wrong types and unknown parameters rejected")

    layer = create_layer("graves_lstm", 3, regulate_state_weights=True)
    assert layer.get_param("regulate_state_weights") is True
    layer.initialize_weights(2)
    assert layer.weight_sets[0]["Ci"].regularize
    assert not layer.weight_sets[0]["bi"].regularize
    try:
        layer.set_params(double_tanh=False)
        assert False, "cell parameters are fixed once weights exist"
    except ConfigurationError:
        pass
    layer.set_params(truncate_steps=3)
    assert layer.truncate_steps == 3
    print("✓ Graves LSTM state weight flag and post-initialization rules")

    for width in [0, -2, 2.5]:
        try:
            create_layer("gru", width)
            assert False, f"width {width} should be rejected"
        except ConfigurationError:
            pass
    try:
        create_layer("gru", 3).initialize_weights(0)
        assert False, "previous layer width 0 should be rejected"
    except ConfigurationError:
        pass
    print("✓ Non-positive widths rejected")

    layer = create_layer("lstm", 3)
    try:
        layer.forward_process(Sequence.from_array(np.zeros((2, 2))))
        assert False, "forward before initialize_weights should fail"
    except ProcedureError:
        pass
    print("✓ Forward before initialize_weights rejected")

    print("\n✅ Validation tests passed!")


def run_all_tests():
    """Run all tests."""
    print("\n" + "=" * 60)
    print("LAYER STATE TEST SUITE")
    print("=" * 60)

    test_state_reset()
    test_state_restore()
    test_truncated_backpropagation()
    test_parameter_validation()

    print("\n" + "=" * 60)
    print("ALL TESTS PASSED! ✅")
    print("=" * 60)


if __name__ == "__main__":
    run_all_tests()
