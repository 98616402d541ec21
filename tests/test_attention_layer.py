#!/usr/bin/env python
"""
Test the attention layer.

- Softmax weights sum to one
- Output and gradients vs PyTorch
- Width mismatch rejected
- Context persistence

Usage:
    python tests/test_attention_layer.py
"""

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import torch

from procnet.exceptions import ConfigurationError, SequenceError
from procnet.layers.attention import AttentionLayer
from procnet.layers.factory import create_layer
from procnet.utils.sequence import Sequence
from reference_cells import attention_step, column, replay, torch_weights


def make_inputs(rng, count, length=5, width=3):
    arrays = [rng.normal(size=(length, width)) for _ in range(count)]
    return arrays, Sequence.zip([Sequence.from_array(a) for a in arrays])


def make_layer(count, width=3, seed=0, **params):
    rng = np.random.default_rng(seed)
    layer = AttentionLayer(rng=rng, **params)
    layer.initialize_weights([width] * count)
    for weight in layer.weights:
        weight.value[...] = rng.normal(0.0, 0.5, size=weight.shape)
    return layer


def test_structure():
    """Test attention layer structure."""
    print("\n" + "=" * 60)
    print("Test 1: Structure")
    print("=" * 60)

    layer = make_layer(3, width=4)
    assert not layer.is_recurrent_layer()
    assert not layer.is_bidirectional()
    assert layer.layer_width == 4
    weight_set = layer.weight_sets[0]
    assert weight_set["Wa"].shape == (4, 8)
    assert weight_set["ba"].shape == (4, 1)
    assert weight_set["v"].shape == (1, 4)
    assert layer.number_of_parameters == 4 * 8 + 4 + 4
    print("✓ Wa (4x8), ba (4x1), v (1x4)")

    assert create_layer("attention").name == "Attention"
    print("✓ Created through the layer factory")

    print("\n✅ Structure tests passed!")


def test_softmax_sums_to_one():
    """Test per-step attention weights sum to one."""
    print("\n" + "=" * 60)
    print("Test 2: Attention weights sum to one")
    print("=" * 60)

    rng = np.random.default_rng(1)
    for count in [1, 2, 5]:
        layer = make_layer(count)
        _, inputs = make_inputs(rng, count)
        outputs = layer.forward_process(inputs)
        weights = layer.attention_weights()
        assert weights.shape == (5, count)
        assert np.all(np.abs(weights.sum(axis=1) - 1.0) < 1e-9)
        assert np.all(weights >= 0.0)
        assert outputs.depth == 1 and outputs.get(0, 0).shape == (3, 1)
        print(f"✓ {count} input(s): weights sum to 1")

    print("\n✅ Softmax tests passed!")


def test_gradients_match_torch():
    """Test outputs and gradients against PyTorch."""
    print("\n" + "=" * 60)
    print("Test 3: Gradients vs PyTorch autograd")
    print("=" * 60)

    rng = np.random.default_rng(2)
    count, length, width = 3, 4, 3
    layer = make_layer(count, width)
    arrays, inputs = make_inputs(rng, count, length, width)
    G = rng.normal(size=(length, width))

    outputs = layer.forward_process(inputs)
    input_gradients = layer.backward_process(Sequence.from_array(G))
    gradients = layer.get_layer_weight_gradients()

    weights = torch_weights(layer.weight_sets[0])
    torch_inputs = [[column(a[t], requires_grad=True) for a in arrays] for t in range(length)]
    state = {"PreviousOutput": torch.ones(width, 1, dtype=torch.float64)}
    expected, _ = replay(attention_step, weights, torch_inputs, state, range(length))
    sum((expected[t] * column(G[t])).sum() for t in range(length)).backward()

    assert input_gradients.depth == count
    for t in range(length):
        assert np.allclose(outputs.get(t, 0), expected[t].detach().numpy(), atol=1e-10)
        for k in range(count):
            assert np.allclose(input_gradients.get(t, k), torch_inputs[t][k].grad.numpy(), atol=1e-10)
    for name, matrix in layer.weight_sets[0].named_weights():
        assert np.allclose(gradients[matrix], weights[name].grad.numpy(), atol=1e-10), name
    print("✓ Outputs, weight and per-input gradients match")

    print("\n✅ Gradient tests passed!")


def test_width_mismatch():
    """Test that inputs of different widths are rejected."""
    print("\n" + "=" * 60)
    print("Test 4: Width mismatch")
    print("=" * 60)

    layer = AttentionLayer()
    try:
        layer.initialize_weights([3, 4])
        assert False, "mismatched widths should be rejected"
    except ConfigurationError:
        print("✓ Widths [3, 4] rejected")

    layer = make_layer(2)
    _, inputs = make_inputs(np.random.default_rng(3), 3)
    try:
        layer.forward_process(inputs)
        assert False, "wrong number of inputs should be rejected"
    except SequenceError:
        print("✓ Three inputs for a two-input layer rejected")

    print("\n✅ Width mismatch tests passed!")


def test_context_persistence():
    """Test that the previous output context carries between sequences unless reset."""
    print("\n" + "=" * 60)
    print("Test 5: Context persistence")
    print("=" * 60)

    rng = np.random.default_rng(4)
    _, first = make_inputs(rng, 2)
    _, second = make_inputs(rng, 2)
    fresh = make_layer(2).forward_process(second).to_array()

    layer = make_layer(2)
    layer.forward_process(first)
    assert not np.allclose(layer.forward_process(second).to_array(), fresh)
    print("✓ Context carries into the next sequence")

    layer = make_layer(2, reset_state_testing=True)
    layer.forward_process(first)
    assert np.array_equal(layer.forward_process(second).to_array(), fresh)
    print("✓ Context resets to ones with reset_state_testing")

    print("\n✅ Context tests passed!")


def run_all_tests():
    """Run all tests."""
    print("\n" + "=" * 60)
    print("ATTENTION LAYER TEST SUITE")
    print("=" * 60)

    test_structure()
    test_softmax_sums_to_one()
    test_gradients_match_torch()
    test_width_mismatch()
    test_context_persistence()

    print("\n" + "=" * 60)
    print("ALL TESTS PASSED! ✅")
    print("=" * 60)


if __name__ == "__main__":
    run_all_tests()
