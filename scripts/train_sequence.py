#!/usr/bin/env python
"""
Train a recurrent layer on a synthetic sequence task.

Usage:
    python scripts/train_sequence.py
    python scripts/train_sequence.py --task xor --layer-type gru
    python scripts/train_sequence.py --layer-type lstm --truncate-steps 5
    python scripts/train_sequence.py --resume checkpoints/best_model.pt

Targets are one-dimensional, so the layer width must be 1. Bidirectional
types join two directions and are rejected.
"""

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

import argparse

import numpy as np

from config.recurrent_config import RecurrentConfig, XORConfig
from procnet.data.synthetic import delayed_xor_sequences, sine_sequences
from procnet.layers.factory import create_layer_from_config
from procnet.tensor.initialization import seed
from procnet.training.optimizer import Adam, GradientDescent
from procnet.training.trainer import Trainer
from procnet.utils.checkpointing import load_checkpoint
from procnet.utils.visualization import plot_training_curves


def build_optimizer(config):
    weight_decay = getattr(config, 'weight_decay', 0.0)
    if config.optimizer == "sgd":
        return GradientDescent(config.learning_rate, weight_decay)
    return Adam(config.learning_rate, weight_decay=weight_decay)


def build_data(config, rng):
    if config.task == "xor":
        train_data = delayed_xor_sequences(config.num_train_sequences, config.sequence_length, config.xor_delay, rng)
        val_data = delayed_xor_sequences(config.num_val_sequences, config.sequence_length, config.xor_delay, rng)
    else:
        train_data = sine_sequences(config.num_train_sequences, config.sequence_length, rng)
        val_data = sine_sequences(config.num_val_sequences, config.sequence_length, rng)
    return train_data, val_data


def main(argv=None):
    """Main training function."""
    parser = argparse.ArgumentParser(description='Train a recurrent layer on a synthetic task')
    parser.add_argument('--task', type=str, default='sine', choices=['sine', 'xor'])
    parser.add_argument('--layer-type', type=str, default=None, help='Override config.layer_type')
    parser.add_argument('--truncate-steps', type=int, default=None, help='Override config.truncate_steps')
    parser.add_argument('--epochs', type=int, default=None, help='Override config.num_epochs')
    parser.add_argument('--resume', type=str, default=None, help='Resume from checkpoint')
    parser.add_argument('--print-expressions', action='store_true', help='Print the compiled procedure')
    args = parser.parse_args(argv)

    config = XORConfig() if args.task == "xor" else RecurrentConfig()
    if args.layer_type:
        config.layer_type = args.layer_type
    if args.truncate_steps is not None:
        config.truncate_steps = args.truncate_steps
    if args.epochs is not None:
        config.num_epochs = args.epochs

    print("=" * 60)
    print(f"Sequence Training ({config.task})")
    print("=" * 60)

    seed(config.seed)
    rng = np.random.default_rng(config.seed)

    optimizer = build_optimizer(config)
    layer = create_layer_from_config(config, rng=rng, optimizer=optimizer)
    layer.initialize_weights(1 if config.task == "sine" else 2)
    if layer.layer_width != 1:
        parser.error(f"layer width is {layer.layer_width}, the target width is 1")
    layer.print()
    if args.print_expressions:
        layer.print_expressions()
    print()

    if args.resume:
        load_checkpoint([layer], optimizer, args.resume)

    train_data, val_data = build_data(config, rng)
    print(f"✓ {len(train_data)} training / {len(val_data)} validation sequences of length {config.sequence_length}")

    trainer = Trainer([layer], train_data, val_data, optimizer, config)
    trainer.train()

    plot_path = os.path.join(config.output_dir, 'training_curves.png')
    plot_training_curves(trainer.csv_logger.log_path, save_path=plot_path)


if __name__ == "__main__":
    main()
