import numpy as np
from dataclasses import dataclass

CONTROL_AXES = ["y"] # Controlled axes
STATE_NAMES = ["y"] # Names of state variables, in order

@dataclass
class Params:
    gain: float  # static gain of the plant
    time_constant: float  # plant time constant (s)
    disturbance: float = 0.0  # constant input disturbance, added to u


def sample_x0(rng, dyn_cfg: dict) -> np.ndarray:
    """System default x0 sampler. Used only if config doesn't override.

    Args:
        rng: np.random.Generator instance
        dyn_cfg (dict): dynamics configuration dictionary
    """
    return np.array([rng.uniform(-1.0, 1.0)], dtype=float)

def f(state: np.ndarray, control: dict, params) -> np.ndarray:
    """ First-order lag dynamics, tau * y' = K * (u + d) - y.

    Args:
        state (np.ndarray): state [y]
        control (dict): control input dictionary {'axis': value}
        params (Params): plant parameters

    Returns:
        np.ndarray: state derivative [y_dot]
    """
    y = float(state[0])
    u = float(control["y"]) + params.disturbance
    return np.array([(params.gain * u - y) / params.time_constant], dtype=float)
