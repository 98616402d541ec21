"""Recurrent layer configurations."""

from .base_config import BaseConfig


class RecurrentConfig(BaseConfig):
    """Configuration for a single recurrent layer trained on a synthetic task."""

    # Layer
    layer_type = "lstm"     # recurrent, lstm, peephole_lstm, graves_lstm, gru, min_gru (bi_ prefix for bidirectional)
    hidden_width = 1        # Output width must match the target width

    # Recurrent state
    reset_state_training = True
    reset_state_testing = True
    restore_state_training = False
    restore_state_testing = False
    truncate_steps = -1     # -1: full backpropagation through time
    reversed_input = False

    # Cell options (None keeps the cell default)
    double_tanh = None
    regulate_direct_weights = None
    regulate_recurrent_weights = None
    regulate_state_weights = None

    # Task
    task = "sine"           # Options: sine, xor
    num_train_sequences = 64
    num_val_sequences = 16
    sequence_length = 20
    xor_delay = 3


class XORConfig(RecurrentConfig):
    """Delayed XOR needs memory across steps."""

    layer_type = "gru"
    task = "xor"
    num_epochs = 50
    sequence_length = 12
    xor_delay = 2
