import numpy as np
from dataclasses import dataclass

CONTROL_AXES = ["x"] # Controlled axes. Force acts on the mass position.
STATE_NAMES = ["x", "x_dot"] # Names of state variables, in order

@dataclass
class Params:
    m: float  # mass (kg)
    c: float  # damping coefficient (N*s/m)
    k: float  # spring stiffness (N/m)
    disturbance: float = 0.0  # constant external force (N)


def sample_x0(rng, dyn_cfg: dict) -> np.ndarray:
    """System default x0 sampler. Used only if config doesn't override.

    Args:
        rng: np.random.Generator instance
        dyn_cfg (dict): dynamics configuration dictionary
    """
    x0 = rng.uniform(-0.5, 0.5)  # position
    x_dot0 = rng.uniform(-0.1, 0.1)  # velocity
    return np.array([x0, x_dot0], dtype=float)

def f(state: np.ndarray, control: dict, params) -> np.ndarray:
    """ Mass-spring-damper dynamics.

    Args:
        state (np.ndarray): state [x, x_dot]
        control (dict): control input dictionary {'axis': value}
        params (Params): plant parameters

    Returns:
        np.ndarray: state derivative [x_dot, x_ddot]
    """
    x = float(state[0])
    x_dot = float(state[1])

    # m x_ddot = u + d - c x_dot - k x
    x_ddot = (float(control["x"]) + params.disturbance - params.c * x_dot - params.k * x) / params.m

    return np.array([x_dot, x_ddot], dtype=float)
