"""
Voltage-gated channel with a diffusing ion – generative model.

Import as:
    from chansim.core    import run_simulation, open_probability
    from chansim.params  import DEFAULT_PARAMS, make_params
    from chansim.runtime import ChannelSimulation
"""
from .params import (DEFAULT_PARAMS, PARAM_RANGES, ParameterError,  # noqa: F401
                     make_params, validate_params, with_potential)
from .core import (                                                # noqa: F401
    open_probability,
    choose_step,
    make_rngs,
    Snapshot,
    SimulationState,
    GateProcess,
    WalkProcess,
    run_simulation,
)
from .runtime import ChannelSimulation, PeriodicTimer              # noqa: F401
