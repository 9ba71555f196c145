"""Default parameters, slider ranges and the validation boundary."""
from __future__ import annotations
import math

# ------------------ base dictionary ------------------
DEFAULT_PARAMS = {
    # Walk process
    "speed": 100,                 # ms between walk ticks
    "p_right": 0.6,
    "p_stay": 0.1,
    "initial_position": -15,

    # Gate process
    "membrane_potential": -70.0,  # mV
    "gate_interval": 1000,        # ms between gate ticks

    # Logistic open probability
    "threshold_potential": -55.0,  # mV, P_open = 0.5
    "k": 0.1,                      # steepness (1/mV)

    # Geometry
    "channel_position": 0,

    # Virtual-clock runs
    "t_max": 60000.0,             # ms
}

# Slider ranges of the parameter interface (inclusive)
PARAM_RANGES = {
    "speed": (10, 200),
    "p_right": (0.1, 0.9),
    "p_stay": (0.0, 0.5),
    "membrane_potential": (-90.0, 40.0),
}

# Parameters a running simulation accepts through update()
RUNTIME_PARAMS = ("speed", "p_right", "p_stay", "membrane_potential")

_TOL = 1e-9


class ParameterError(ValueError):
    """A parameter value was rejected at the parameter boundary."""


def check_value(name: str, value) -> float:
    """Return ``value`` as a float after range and finiteness checks."""
    if name not in DEFAULT_PARAMS:
        raise ParameterError(f"Unknown parameter {name!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ParameterError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(value):
        raise ParameterError(f"{name} must be finite, got {value}")

    if name in PARAM_RANGES:
        lo, hi = PARAM_RANGES[name]
        if not lo - _TOL <= value <= hi + _TOL:
            raise ParameterError(f"{name}={value} outside [{lo}, {hi}]")
    elif name in ("gate_interval", "t_max") and value <= 0:
        raise ParameterError(f"{name} must be positive, got {value}")
    elif name == "k" and value <= 0:
        raise ParameterError(f"k must be positive, got {value}")
    return value


def validate_params(p: dict) -> dict:
    """
    Check every entry of ``p`` and the joint constraints
    ``p_right + p_stay <= 1`` and ``initial_position < channel_position``.
    Returns a *new* dict holding the values as floats.
    """
    p = {name: check_value(name, value) for name, value in p.items()}

    p_right = p.get("p_right", DEFAULT_PARAMS["p_right"])
    p_stay = p.get("p_stay", DEFAULT_PARAMS["p_stay"])
    if p_right + p_stay > 1.0 + _TOL:
        raise ParameterError(
            f"p_right + p_stay must not exceed 1 (got {p_right} + {p_stay})")

    start = p.get("initial_position", DEFAULT_PARAMS["initial_position"])
    channel = p.get("channel_position", DEFAULT_PARAMS["channel_position"])
    if start >= channel:
        raise ParameterError(
            f"initial_position must lie before the channel "
            f"(got {start} >= {channel})")
    return p


# ------------------ convenience helpers ------------------
def make_params(**overrides) -> dict:
    """Return a *new* validated param-dict with ``overrides`` applied."""
    p = dict(DEFAULT_PARAMS)
    p.update(overrides)
    return validate_params(p)


def with_potential(v: float, params: dict = DEFAULT_PARAMS) -> dict:
    """Return a *new* validated param-dict with membrane potential set to `v` mV."""
    p = dict(params)
    p["membrane_potential"] = v
    return validate_params(p)
