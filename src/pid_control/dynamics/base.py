import numpy as np
from dataclasses import is_dataclass, fields, MISSING

from ..controller import Controller, ControllerConfig

def euler_step(x, u, f, p, dt=0.01):
    """ Simple Euler integration step.

    Args:
        x (np.ndarray): current state
        u (dict): current control input {'axis': value}
        f (callable): dynamics function f(x,u,p)
        p (Params): plant parameters
        dt (float): time step size

    Returns:
        np.ndarray: next state after one Euler step
    """
    return x + dt * f(x,u,p)

def rk4_step(x, u, f, p, dt=0.01):
    """ Runge-Kutta 4th order integration step.

    Args:
        x (np.ndarray): current state
        u (dict): current control input {'axis': value}
        f (callable): dynamics function f(x,u,p)
        p (Params): plant parameters
        dt (float): time step size

    Returns:
        np.ndarray: next state after one RK4 step
    """
    k1 = f(x, u, p)
    k2 = f(x + 0.5*dt*k1, u, p)
    k3 = f(x + 0.5*dt*k2, u, p)
    k4 = f(x + dt*k3, u, p)
    return x + (dt/6.0)*(k1 + 2*k2 + 2*k3 + k4)

INTEGRATORS = {"euler": euler_step, "rk4": rk4_step}

# per-axis keys that configure the loop around a controller, not the controller itself
LOOP_KEYS = {"setpoint", "feed_forward", "manual", "discharge_while_manual"}

def controller_config_from_dict(p: dict, axis: str = "") -> ControllerConfig:
    """ Build and validate a ControllerConfig from a per-axis config block.

    Either `integral_discharge_time_constant` (s) or `integral_discharge_rate` (1/s) may be given.

    Args:
        p (dict): per-axis block, e.g. {"proportional_gain": 1.0, "max_output": 10.0, "setpoint": 1.0}
        axis (str, optional): axis name, used in error messages

    Raises:
        ValueError: on unknown keys, wrong types or invalid values

    Returns:
        ControllerConfig: validated config
    """
    p = {k: v for k, v in p.items() if k not in LOOP_KEYS}
    rate = p.pop("integral_discharge_rate", None)
    if rate is not None and "integral_discharge_time_constant" in p:
        raise ValueError(f"Axis '{axis}': give either integral_discharge_rate or "
                         f"integral_discharge_time_constant, not both.")

    cfg = validate_params(ControllerConfig, p)
    if rate is not None:
        if not isinstance(rate, (int, float)) or isinstance(rate, bool):
            raise ValueError(f"Axis '{axis}': integral_discharge_rate should be a number. Got {rate!r}")
        kwargs = {f.name: getattr(cfg, f.name) for f in fields(cfg) if f.name != "integral_discharge_time_constant"}
        cfg = ControllerConfig.from_discharge_rate(float(rate), **kwargs)

    try:
        return cfg.validate()
    except ValueError as e:
        raise ValueError(f"Invalid controller config for axis '{axis}': {e}") from e

def build_controllers_from_cfg(ctrl_cfg: dict, axes: list[str]):
    """Build a dict of controllers keyed by axis name from YAML.

       ctrl_cfg looks like:
       { "type": "pid", "pid": { "y": {"proportional_gain": 2.0, "max_output": 1.0, ...}, ... } }
    """
    if ctrl_cfg.get("type", "pid").lower() != "pid":
        raise NotImplementedError("Only 'pid' controller type is implemented right now.")

    pid_block = ctrl_cfg.get("pid", {})

    controllers = {}
    for axis in axes:
        p = pid_block.get(axis)
        if p is None:
            raise KeyError(f"Missing PID block for axis '{axis}' in controller.pid")
        controllers[axis] = Controller(controller_config_from_dict(p, axis))

    return controllers

def _matches(value, field_type) -> bool:
    """ isinstance check that accepts ints for float fields and YAML's .inf/.nan floats. """
    if field_type in (float, "float"):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if isinstance(field_type, str): # postponed annotation we cannot resolve, accept as is
        return True
    return isinstance(value, field_type)

def validate_params(dataclass_params, params):
    """ Validate that all required parameters are present at any level of nesting.

    Args:
        dataclass_params (dataclass): dataclass type (e.g. pid_control.dynamics.first_order.Params)
        params (dict): parameters dictionary from config file.
    Raises:
        ValueError: if a required parameter is missing, unknown or has the wrong type
    Returns:
        Param dataclass instance if all required parameters are present
    """

    if not is_dataclass(dataclass_params):
        raise ValueError(f"{dataclass_params} is not a dataclass.")
    if not isinstance(params, dict):
        raise ValueError(f"Parameters for {dataclass_params.__name__} should be a dictionary. Got {params!r}")

    known = {f.name for f in fields(dataclass_params)}
    unknown = sorted(set(params) - known)
    if unknown:
        raise ValueError(f"Unknown parameter(s) for {dataclass_params.__name__}: {unknown}")

    # Create a dictionary to store the processed parameters
    processed_params = {}

    for field in fields(dataclass_params):
        field_name = field.name
        field_type = field.type

        if field_name not in params:
            if field.default is MISSING and field.default_factory is MISSING:
                raise ValueError(f"Missing required parameter: {field_name}")
            else:
                continue  # Optional field with a default value, will use the default

        field_value = params[field_name]
        if is_dataclass(field_type):
            # Recursively create dataclass instance for nested dataclass
            processed_params[field_name] = validate_params(field_type, field_value)
        else:
            if not _matches(field_value, field_type):
                type_name = getattr(field_type, "__name__", str(field_type))
                raise ValueError(f"Parameter {field_name} should be of type {type_name}. "
                                 f"Got {field_value!r} of type {type(field_value).__name__} instead.")
            processed_params[field_name] = float(field_value) if field_type in (float, "float") else field_value

    return dataclass_params(**processed_params)

def control_error(plant, axis: str, x: np.ndarray, setpoint: float) -> float:
    """ Compute error for a given axis.

    Args:
        plant (module): dynamics module (e.g. pid_control.dynamics.first_order)
        axis (str): axis name
        x (np.ndarray): current state vector
        setpoint (float): desired setpoint value

    Returns:
        float: error value
    """
    return setpoint - measured_value(plant, axis, x)

def measured_value(plant, axis: str, x: np.ndarray) -> float:
    """ Value of the state variable controlled on a given axis. """
    if axis not in plant.CONTROL_AXES:
        raise ValueError(f"Axis '{axis}' not in CONTROL_AXES {plant.CONTROL_AXES}")
    try:
        axis_index = plant.STATE_NAMES.index(axis)
    except ValueError:
        raise ValueError(f"Axis '{axis}' not found in the state vector.")
    return float(x[axis_index])
