"""Synthetic sequence tasks."""

from typing import List, Tuple

import numpy as np

from procnet.utils.sequence import Sequence


def xor_delayed(T: int, tau: int, m: int, n_visible: int, rng=None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Returns (X, D, M) with shapes:
      X: (T, m)         inputs
      D: (T, n_visible) targets, XOR of the bits shown tau steps earlier
      M: (T, n_visible) 0/1 mask for which targets are active at t
    """
    assert m >= 2 and n_visible >= 1
    rng = np.random.default_rng() if rng is None else rng
    X = np.zeros((T, m), dtype=float)
    D = np.zeros((T, n_visible), dtype=float)
    M = np.zeros((T, n_visible), dtype=float)

    xor_inputs = np.array([[0, 0], [0, 1], [1, 0], [1, 1]], dtype=float)
    xor_outputs = np.array([0, 1, 1, 0], dtype=float)

    for t in range(T):
        if t + tau < T:
            idx = rng.integers(4)
            X[t, :2] = xor_inputs[idx]
            D[t + tau, 0] = xor_outputs[idx]
            M[t + tau, 0] = 1.0
    return X, D, M


def delayed_xor_sequences(num_sequences: int, length: int, delay: int, rng=None) -> List[tuple]:
    """(input, target, mask) Sequence triples of the delayed XOR task."""
    rng = np.random.default_rng() if rng is None else rng
    samples = []
    for _ in range(num_sequences):
        X, D, M = xor_delayed(length, delay, 2, 1, rng)
        samples.append((Sequence.from_array(X), Sequence.from_array(D), Sequence.from_array(M)))
    return samples


def sine_sequences(num_sequences: int, length: int, rng=None,
                   frequency_range=(0.1, 0.4), amplitude=0.8) -> List[tuple]:
    """
    Next-step prediction pairs on sine waves with random frequency and phase.

    Input at t is sin(w*t + phi), target at t is the value at t + 1.
    """
    rng = np.random.default_rng() if rng is None else rng
    samples = []
    for _ in range(num_sequences):
        frequency = rng.uniform(*frequency_range)
        phase = rng.uniform(0.0, 2.0 * np.pi)
        wave = amplitude * np.sin(frequency * np.arange(length + 1) + phase)
        samples.append((Sequence.from_array(wave[:-1]), Sequence.from_array(wave[1:])))
    return samples
