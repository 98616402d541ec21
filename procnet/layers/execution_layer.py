"""
Base class of layers whose forward pass is a compiled Procedure.

The layer owns one WeightSet and one Procedure per direction and manages the
recurrent state lifecycle between sequences and across training / testing
mode switches.
"""

import numpy as np

from procnet.exceptions import ConfigurationError, ProcedureError
from procnet.procedure.factory import build_procedure
from procnet.procedure.procedure import StateSlot
from procnet.tensor.initialization import Initialization
from procnet.training.optimizer import GradientDescent


class ExecutionLayer:
    """
    Layer executed by replaying a procedure built from a cell definition.

    Args:
        cell: CellDefinition providing the single-timestep formula
        width: Output width of one direction
        initialization: Initialization scheme for weights (biases are zero)
        optimizer: Optimizer used by optimize(), GradientDescent if None
        rng: Optional numpy Generator for weight initialization
        **params: Layer and cell parameters (see param_defs())
    """

    name = "Execution"
    PARAM_DEFS = {
        "reset_state_training": bool,
        "reset_state_testing": bool,
        "restore_state_training": bool,
        "restore_state_testing": bool,
    }
    DEFAULTS = {
        "reset_state_training": False,
        "reset_state_testing": False,
        "restore_state_training": False,
        "restore_state_testing": False,
    }

    def __init__(self, cell, width, initialization=Initialization.UNIFORM_XAVIER,
                 optimizer=None, rng=None, **params):
        if width is not None:
            self._check_width(width, "Layer width")
        self.cell = cell
        self.width = width
        self.initialization = Initialization(initialization)
        self.optimizer = optimizer if optimizer is not None else GradientDescent()
        self.rng = rng

        self.training = False
        self._previous_training = False
        self.input_widths = None
        self.weight_sets = []
        self.procedures = []

        for param, value in self._defaults().items():
            setattr(self, param, value)
        self.set_params(**params)

    # ----- parameters -----

    def _defaults(self):
        defaults = {}
        for klass in reversed(type(self).__mro__):
            defaults.update(getattr(klass, "DEFAULTS", {}))
        return defaults

    def param_defs(self):
        """All parameter names accepted by this layer and its cell, with their types."""
        defs = {}
        for klass in reversed(type(self).__mro__):
            defs.update(getattr(klass, "PARAM_DEFS", {}))
        defs.update(self.cell.PARAM_DEFS)
        return defs

    def set_params(self, **params):
        defs = self.param_defs()
        for param, value in params.items():
            if param not in defs:
                raise ConfigurationError(f"Unknown parameter {param!r} for {self.name} layer")
            value = self._check_type(param, value, defs[param])
            self.validate_param(param, value)
            if param in self.cell.PARAM_DEFS:
                if self.procedures:
                    raise ConfigurationError(f"Parameter {param!r} cannot change after weights are initialized")
                setattr(self.cell, param, value)
            else:
                setattr(self, param, value)

    def get_param(self, param):
        if param in self.cell.PARAM_DEFS:
            return getattr(self.cell, param)
        if param in self.param_defs():
            return getattr(self, param)
        raise ConfigurationError(f"Unknown parameter {param!r} for {self.name} layer")

    @staticmethod
    def _check_type(param, value, expected):
        if expected is bool:
            if not isinstance(value, (bool, np.bool_)):
                raise ConfigurationError(f"Parameter {param!r} must be a boolean, got {value!r}")
            return bool(value)
        if expected is int:
            if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
                raise ConfigurationError(f"Parameter {param!r} must be an integer, got {value!r}")
            return int(value)
        return value

    def validate_param(self, param, value):
        """Hook for range checks of individual parameters."""

    @staticmethod
    def _check_width(width, label):
        if isinstance(width, (bool, np.bool_)) or not isinstance(width, (int, np.integer)) or width <= 0:
            raise ConfigurationError(f"{label} must be a positive integer, got {width!r}")

    # ----- structure -----

    @property
    def number_of_directions(self):
        return 1

    @property
    def layer_width(self):
        return self.width * self.number_of_directions

    def is_recurrent_layer(self):
        return False

    def is_bidirectional(self):
        return self.number_of_directions == 2

    def set_training(self, training):
        self.training = bool(training)

    def check_input_widths(self, widths):
        """Hook validating the previous layer widths; returns the widths to use."""
        return widths

    def initialize_weights(self, previous_layer_width):
        """
        Create weight sets and build one procedure per direction.

        Args:
            previous_layer_width: Width of the previous layer, or a list of
                widths for layers taking several inputs
        """
        widths = list(previous_layer_width) if isinstance(previous_layer_width, (list, tuple)) \
            else [previous_layer_width]
        if not widths:
            raise ConfigurationError(f"{self.name} layer needs at least one previous layer")
        for width in widths:
            self._check_width(width, "Previous layer width")
        self.input_widths = self.check_input_widths([int(width) for width in widths])

        self.weight_sets = []
        self.procedures = []
        for direction in range(self.number_of_directions):
            weight_set = self.cell.create_weight_set(self.initialization, self.input_widths[0], self.width, self.rng)
            name = self.cell.name if direction == 0 else f"{self.cell.name} (reverse)"
            self.weight_sets.append(weight_set)
            self.procedures.append(build_procedure(self.cell, weight_set, self.input_widths, self.width, name))
        self._previous_training = self.training

    @property
    def weights(self):
        return [weight for weight_set in self.weight_sets for weight in weight_set.weights]

    @property
    def number_of_parameters(self):
        return sum(weight_set.number_of_parameters for weight_set in self.weight_sets)

    def reinitialize(self):
        for weight_set in self.weight_sets:
            weight_set.reinitialize()
        for procedure in self.procedures:
            procedure.reset(True)
        self.optimizer.forget(self.weights)

    # ----- state lifecycle -----

    def _restore_flag(self, training):
        return self.restore_state_training if training else self.restore_state_testing

    def prepare_state(self):
        """
        Apply the state lifecycle before a forward pass.

        On a mode switch the outgoing mode's state is stored (if that mode
        restores state), the procedures are reset and the incoming mode's
        stored state is restored (if that mode restores state). Within a
        mode, carried state is dropped only when that mode's reset flag is set.
        """
        if self.training != self._previous_training:
            outgoing = StateSlot.TRAINING if self._previous_training else StateSlot.TESTING
            incoming = StateSlot.TRAINING if self.training else StateSlot.TESTING
            for procedure in self.procedures:
                if self._restore_flag(self._previous_training):
                    procedure.store_dependencies(outgoing)
                procedure.reset(True)
                if self._restore_flag(self.training):
                    procedure.restore_dependencies(incoming)
            self._previous_training = self.training
        else:
            reset = self.reset_state_training if self.training else self.reset_state_testing
            for procedure in self.procedures:
                procedure.reset(reset)

    def reset_state(self):
        """Drop carried state of every direction."""
        for procedure in self.procedures:
            procedure.reset(True)

    def _check_initialized(self):
        if not self.procedures:
            raise ProcedureError(f"{self.name} layer weights are not initialized")

    # ----- passes -----

    def forward_process(self, input_sequence):
        raise NotImplementedError

    def backward_process(self, output_gradient_sequence):
        raise NotImplementedError

    def get_layer_weight_gradients(self):
        """Gradient of every weight Matrix of every direction from the last backward pass."""
        gradients = {}
        for procedure in self.procedures:
            gradients.update(procedure.gradients)
        return gradients

    def optimize(self):
        """Hand every weight gradient to the optimizer."""
        for procedure in self.procedures:
            for weight in procedure.weights:
                self.optimizer.optimize(weight, procedure.get_gradient(weight))

    def regularization_error(self, lambda_):
        """L2 penalty 0.5 * lambda * sum(w^2) over regularization-eligible weights."""
        return 0.5 * lambda_ * sum(float(np.sum(weight.value ** 2))
                                   for weight in self.weights if weight.regularize)

    def append(self, other, tau):
        """Soft update w <- (1 - tau) * w + tau * w_other for every weight."""
        other_weights = other.weights
        if len(other_weights) != len(self.weights):
            raise ConfigurationError("Cannot append layers with different weight structure")
        for weight, other_weight in zip(self.weights, other_weights):
            if weight.shape != other_weight.shape:
                raise ConfigurationError(f"Weight {weight.name} has shape {weight.shape}, "
                                         f"other layer has {other_weight.shape}")
            weight.value[...] = (1.0 - tau) * weight.value + tau * other_weight.value

    def state_dict(self):
        return {"weight_sets": [weight_set.state_dict() for weight_set in self.weight_sets]}

    def load_state_dict(self, state):
        if len(state["weight_sets"]) != len(self.weight_sets):
            raise ConfigurationError(f"Checkpoint has {len(state['weight_sets'])} weight sets, "
                                     f"layer has {len(self.weight_sets)}")
        for weight_set, weight_state in zip(self.weight_sets, state["weight_sets"]):
            weight_set.load_state_dict(weight_state)

    # ----- printing -----

    def print(self):
        print(f"{self.name} layer")
        print(f"  Width: {self.layer_width}")
        print(f"  Parameters: {self.number_of_parameters:,}")
        print(f"  Optimizer: {self.optimizer.name}")
        details = self.cell.details()
        if details:
            print(f"  {details}")

    def print_expressions(self):
        for procedure in self.procedures:
            procedure.print_expression_chain()

    def print_gradients(self):
        for procedure in self.procedures:
            procedure.print_gradient_chain()

    def __repr__(self):
        return f"{type(self).__name__}(width={self.width}, parameters={self.number_of_parameters})"
