"""Training loop for stacks of sequence layers."""

import math
import os
import time

from tqdm import tqdm

from procnet.training.losses import mean_squared_error
from procnet.utils.checkpointing import save_checkpoint
from procnet.utils.csv_logger import CSVLogger


class Trainer:
    """Trains a list of layers on (input, target[, mask]) Sequence samples with MSE loss."""

    def __init__(self, layers, train_data, val_data, optimizer, config, log_path=None):
        """
        Args:
            layers: Layers with initialized weights, in network order
            train_data: List of (input, target) or (input, target, mask) Sequences
            val_data: Validation samples in the same format (may be empty)
            optimizer: Optimizer shared by every layer
            config: Training configuration
            log_path: CSV log path, timestamped file in config.log_dir if None
        """
        self.layers = list(layers)
        self.train_data = train_data
        self.val_data = val_data
        self.optimizer = optimizer
        self.config = config
        self.best_val_loss = float('inf')
        self.current_epoch = 0
        for layer in self.layers:
            layer.optimizer = optimizer

        self.num_epochs = getattr(config, 'num_epochs', 10)
        self.weight_decay = getattr(config, 'weight_decay', 0.0)
        self.checkpoint_dir = getattr(config, 'checkpoint_dir', 'checkpoints')
        self.save_checkpoints = getattr(config, 'save_checkpoints', True)
        self.show_progress = getattr(config, 'show_progress', True)

        # Early stopping
        self.early_stopping_patience = getattr(config, 'early_stopping_patience', 8)
        self.early_stopping_min_delta = getattr(config, 'early_stopping_min_delta', 0.0001)
        self.epochs_without_improvement = 0

        self.cumulative_time = 0.0
        self.history = []

        if log_path is None:
            log_dir = getattr(config, 'log_dir', 'logs')
            os.makedirs(log_dir, exist_ok=True)
            timestamp = time.strftime('%Y%m%d_%H%M%S')
            log_path = os.path.join(log_dir, f'training_log_{timestamp}.csv')
        self.csv_logger = CSVLogger(log_path, config)
        print(f"CSV logging enabled: {log_path}")

    @property
    def number_of_parameters(self):
        return sum(layer.number_of_parameters for layer in self.layers)

    def forward(self, sequence):
        for layer in self.layers:
            sequence = layer.forward_process(sequence)
        return sequence

    def backward(self, gradient):
        for layer in reversed(self.layers):
            gradient = layer.backward_process(gradient)
        return gradient

    def set_training(self, training):
        for layer in self.layers:
            layer.set_training(training)

    def regularization_error(self):
        if self.weight_decay <= 0.0:
            return 0.0
        return sum(layer.regularization_error(self.weight_decay) for layer in self.layers)

    @staticmethod
    def _unpack(sample):
        inputs, targets = sample[0], sample[1]
        mask = sample[2] if len(sample) > 2 else None
        return inputs, targets, mask

    def _grad_norm(self):
        total = 0.0
        for layer in self.layers:
            for gradient in layer.get_layer_weight_gradients().values():
                total += float((gradient * gradient).sum())
        return math.sqrt(total)

    def train_epoch(self):
        """Train for one epoch, one optimizer step per sequence."""
        self.set_training(True)
        total_loss = 0.0
        total_grad_norm = 0.0

        for sample in tqdm(self.train_data, desc="Training", disable=not self.show_progress):
            inputs, targets, mask = self._unpack(sample)
            outputs = self.forward(inputs)
            loss, gradient = mean_squared_error(outputs, targets, mask)
            self.backward(gradient)
            total_grad_norm += self._grad_norm()
            for layer in self.layers:
                layer.optimize()
            total_loss += loss

        num_samples = max(len(self.train_data), 1)
        return total_loss / num_samples, total_grad_norm / num_samples

    def validate(self):
        """Validate in testing mode."""
        self.set_training(False)
        total_loss = 0.0

        for sample in tqdm(self.val_data, desc="Validation", disable=not self.show_progress):
            inputs, targets, mask = self._unpack(sample)
            loss, _ = mean_squared_error(self.forward(inputs), targets, mask)
            total_loss += loss

        return total_loss / max(len(self.val_data), 1)

    def train(self):
        """Full training loop with checkpointing and early stopping."""
        print(f"\nStarting training for {self.num_epochs} epochs")
        print(f"Training sequences: {len(self.train_data)}")
        print(f"Validation sequences: {len(self.val_data)}")
        print(f"Parameters: {self.number_of_parameters:,}")

        for epoch in range(self.num_epochs):
            self.current_epoch = epoch + 1
            epoch_start_time = time.time()

            train_loss, grad_norm = self.train_epoch()
            regularization = self.regularization_error()
            val_loss = self.validate() if self.val_data else train_loss

            print(f"\nEpoch {epoch + 1}/{self.num_epochs}")
            print(f"  Train Loss: {train_loss:.6f} | Val Loss: {val_loss:.6f}")
            if regularization:
                print(f"  Regularization: {regularization:.6f}")

            checkpoint_path = ""
            is_best_loss = False
            if val_loss < self.best_val_loss - self.early_stopping_min_delta:
                self.best_val_loss = val_loss
                is_best_loss = True
                self.epochs_without_improvement = 0
                if self.save_checkpoints:
                    checkpoint_path = os.path.join(self.checkpoint_dir, 'best_model.pt')
                    save_checkpoint(self.layers, self.optimizer, epoch + 1, val_loss, checkpoint_path)
                print(f"  -> New best model (Val Loss: {val_loss:.6f})")
            else:
                self.epochs_without_improvement += 1
                print(f"  -> No improvement for {self.epochs_without_improvement} epoch(s) "
                      f"(patience: {self.early_stopping_patience})")

            epoch_time = time.time() - epoch_start_time
            self.cumulative_time += epoch_time

            metrics = {
                'epoch': epoch + 1,
                'train_loss': train_loss,
                'val_loss': val_loss if self.val_data else '',
                'regularization_error': regularization,
                'grad_norm': grad_norm,
                'best_val_loss': self.best_val_loss,
                'is_best_loss': is_best_loss,
                'checkpoint_path': checkpoint_path,
                'num_parameters': self.number_of_parameters,
                'epoch_time_seconds': epoch_time,
                'cumulative_time_seconds': self.cumulative_time,
            }
            self.csv_logger.log(dict(metrics))
            self.history.append(metrics)

            if self.epochs_without_improvement >= self.early_stopping_patience:
                print(f"\n{'=' * 60}")
                print("EARLY STOPPING TRIGGERED")
                print(f"{'=' * 60}")
                print(f"No improvement in validation loss for {self.epochs_without_improvement} epochs")
                print(f"Stopping training at epoch {epoch + 1}/{self.num_epochs}")
                break

        print("\nTraining complete!")
        print(f"Best validation loss: {self.best_val_loss:.6f}")
        return self.history
