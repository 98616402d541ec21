"""Single-timestep formula supplied by each layer type."""

from procnet.tensor.initialization import Initialization


class CellDefinition:
    """
    Forward formula of one timestep.

    Subclasses declare their parameters in PARAM_DEFS (name -> type) with
    defaults in DEFAULTS, build their WeightSet in create_weight_set() and
    write the step equations in forward_step() against placeholder symbols:

        forward_step(w, inputs, state) -> (outputs, next_state)

    `w` exposes the weight set's matrices by name, `inputs` is the list of
    input symbols and `state` maps each state name from state_definitions()
    to the symbol holding its previous-step value.
    """

    name = "Cell"
    PARAM_DEFS = {}
    DEFAULTS = {}

    def __init__(self, **params):
        for param, value in self.DEFAULTS.items():
            setattr(self, param, value)
        for param, value in params.items():
            setattr(self, param, value)

    def create_weight_set(self, initialization, previous_layer_width, layer_width, rng=None):
        raise NotImplementedError

    def state_definitions(self):
        """State name -> initialization of its value before the first step."""
        return {"PrevOutput": Initialization.ZERO}

    def forward_step(self, w, inputs, state):
        raise NotImplementedError

    def details(self):
        return ", ".join(f"{param}: {getattr(self, param)}" for param in self.PARAM_DEFS)
