"""Layer construction by type name and from configuration objects."""

from enum import Enum

from procnet.exceptions import ConfigurationError
from procnet.layers.attention import AttentionLayer
from procnet.layers.recurrent.graves_lstm import GravesLSTMCell
from procnet.layers.recurrent.gru import GRUCell
from procnet.layers.recurrent.lstm import LSTMCell
from procnet.layers.recurrent.min_gru import MinGRUCell
from procnet.layers.recurrent.peephole_lstm import PeepholeLSTMCell
from procnet.layers.recurrent.simple import RecurrentCell
from procnet.layers.recurrent_layer import RecurrentLayer


class LayerType(Enum):
    RECURRENT = "recurrent"
    LSTM = "lstm"
    PEEPHOLE_LSTM = "peephole_lstm"
    GRAVES_LSTM = "graves_lstm"
    GRU = "gru"
    MIN_GRU = "min_gru"
    BI_RECURRENT = "bi_recurrent"
    BI_LSTM = "bi_lstm"
    BI_PEEPHOLE_LSTM = "bi_peephole_lstm"
    BI_GRAVES_LSTM = "bi_graves_lstm"
    BI_GRU = "bi_gru"
    BI_MIN_GRU = "bi_min_gru"
    ATTENTION = "attention"


_CELLS = {
    "recurrent": RecurrentCell,
    "lstm": LSTMCell,
    "peephole_lstm": PeepholeLSTMCell,
    "graves_lstm": GravesLSTMCell,
    "gru": GRUCell,
    "min_gru": MinGRUCell,
}

# Names read from config objects and passed to layers as parameters.
LAYER_PARAMS = [
    "reset_state_training",
    "reset_state_testing",
    "restore_state_training",
    "restore_state_testing",
    "truncate_steps",
    "reversed_input",
    "double_tanh",
    "regulate_direct_weights",
    "regulate_recurrent_weights",
    "regulate_state_weights",
]


def create_layer(layer_type, width=None, **kwargs):
    """
    Create a layer by type.

    Args:
        layer_type: LayerType member or its string value
        width: Width of one direction (ignored for attention)
        **kwargs: initialization, optimizer, rng, activation and layer parameters

    Returns:
        layer: RecurrentLayer or AttentionLayer
    """
    try:
        layer_type = LayerType(layer_type.lower() if isinstance(layer_type, str) else layer_type)
    except ValueError:
        raise ConfigurationError(f"Unknown layer type {layer_type!r}") from None

    if layer_type is LayerType.ATTENTION:
        return AttentionLayer(**kwargs)

    bidirectional = layer_type.value.startswith("bi_")
    cell_class = _CELLS[layer_type.value[3:] if bidirectional else layer_type.value]
    cell_kwargs = {}
    if "activation" in kwargs:
        if cell_class in (GRUCell, MinGRUCell):
            raise ConfigurationError(f"{cell_class.name} does not take an activation function")
        cell_kwargs["activation"] = kwargs.pop("activation")
    return RecurrentLayer(cell_class(**cell_kwargs), width, bidirectional=bidirectional, **kwargs)


def params_from_config(config, layer):
    """Collect the parameters `layer` accepts from a config object, skipping unset ones."""
    accepted = layer.param_defs()
    params = {}
    for name in LAYER_PARAMS:
        value = getattr(config, name, None)
        if value is not None and name in accepted:
            params[name] = value
    return params


def create_layer_from_config(config, rng=None, optimizer=None):
    """Create and configure the layer described by `config`."""
    layer = create_layer(getattr(config, "layer_type", "lstm"), getattr(config, "hidden_width", 16),
                         initialization=getattr(config, "initialization", "uniform_xavier"),
                         optimizer=optimizer, rng=rng)
    layer.set_params(**params_from_config(config, layer))
    return layer
