"""CSV logger for training metrics and configuration."""

import csv
from datetime import datetime
from pathlib import Path


class CSVLogger:
    """Logger for writing training metrics to CSV file."""

    # Config attributes copied into every row when present.
    CONFIG_COLUMNS = [
        'layer_type',
        'hidden_width',
        'truncate_steps',
        'learning_rate',
        'optimizer',
        'weight_decay',
        'sequence_length',
    ]

    def __init__(self, log_path, config):
        """
        Initialize CSV logger.

        Args:
            log_path: Path to CSV file
            config: Training configuration object
        """
        self.log_path = Path(log_path)
        self.config = config
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self.file_exists = self.log_path.exists()
        self.columns = self._get_columns()

        if not self.file_exists:
            self._write_header()

    def _get_columns(self):
        """Define all columns for the CSV file."""
        columns = [
            # Timestamp and identification
            'timestamp',
            'epoch',

            # Metrics
            'train_loss',
            'val_loss',
            'regularization_error',
            'grad_norm',

            # Best model tracking
            'best_val_loss',
            'is_best_loss',
            'checkpoint_path',

            # Model size
            'num_parameters',

            # Timing
            'epoch_time_seconds',
            'cumulative_time_seconds',
        ]
        return columns + self.CONFIG_COLUMNS

    def _write_header(self):
        """Write CSV header."""
        with open(self.log_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=self.columns)
            writer.writeheader()

    def log(self, metrics):
        """
        Log metrics to CSV file.

        Args:
            metrics: Dictionary of metrics to log
        """
        if 'timestamp' not in metrics:
            metrics['timestamp'] = datetime.now().strftime('%Y-%m-%d %H:%M:%S')

        for key, value in self._get_config_params().items():
            if key not in metrics:
                metrics[key] = value

        # Missing columns are written blank
        row = {col: metrics.get(col, '') for col in self.columns}

        with open(self.log_path, 'a', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=self.columns)
            writer.writerow(row)

    def _get_config_params(self):
        """Extract relevant parameters from config."""
        return {name: getattr(self.config, name) for name in self.CONFIG_COLUMNS
                if hasattr(self.config, name)}

    def log_epoch(self, epoch, metrics):
        metrics['epoch'] = epoch
        self.log(metrics)
