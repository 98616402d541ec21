"""Base configuration for all sequence models."""


class BaseConfig:
    """Shared configuration across all models."""

    # Reproducibility
    seed = 42

    # Weights
    initialization = "uniform_xavier"  # zero, one, random, {normal,uniform}_{xavier,he,lecun}

    # Training
    num_epochs = 30
    optimizer = "adam"      # Options: adam, sgd
    learning_rate = 1e-2
    weight_decay = 0.0      # L2 penalty, only applied to regularization-eligible weights

    # Early Stopping
    early_stopping_patience = 5
    early_stopping_min_delta = 1e-5

    # Reporting
    show_progress = True
    save_checkpoints = True

    # Paths
    checkpoint_dir = "checkpoints"
    log_dir = "logs"
    output_dir = "outputs"
