from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import numpy as np
import pandas as pd
from .dynamics.base import INTEGRATORS, build_controllers_from_cfg, validate_params,\
    control_error, measured_value
from .utils import import_system

@dataclass
class LoopSpec:
    """ Per-axis loop settings that surround a controller. """
    setpoint: float = 0.0
    feed_forward: float = 0.0
    manual_until: Optional[float] = None # actuator is held manually for t < manual_until
    manual_signal: float = 0.0 # actuator command while manual
    discharge_while_manual: bool = False # discharge the integral instead of tracking while manual

    def is_manual(self, t: float) -> bool:
        return self.manual_until is not None and t < self.manual_until

def _resolve_loops(ctrl_cfg: dict, axes: list[str]) -> dict:
    """ Read setpoint, feed-forward and manual override settings per axis.

    Args:
        ctrl_cfg (dict): controller section of the config
        axes (list[str]): control axes of the plant
    Raises:
        ValueError: if a manual block is malformed or discharge_while_manual is not a bool
    Returns:
        dict: {axis: LoopSpec}
    """
    loops = {}
    for axis in axes:
        p = ctrl_cfg.get("pid", {}).get(axis, {})
        manual = p.get("manual")
        discharge = p.get("discharge_while_manual", False)
        if not isinstance(discharge, bool):
            raise ValueError(f"controller.pid.{axis}.discharge_while_manual should be of type bool. "
                             f"Got {discharge!r} of type {type(discharge).__name__} instead.")
        loop = LoopSpec(setpoint=float(p.get("setpoint", 0.0)),
                        feed_forward=float(p.get("feed_forward", 0.0)),
                        discharge_while_manual=discharge)
        if manual is not None:
            if not isinstance(manual, dict) or "until" not in manual:
                raise ValueError(f"controller.pid.{axis}.manual should look like {{until: <s>, signal: <value>}}. Got {manual}")
            loop.manual_until = float(manual["until"])
            loop.manual_signal = float(manual.get("signal", 0.0))
        loops[axis] = loop
    return loops

def _resolve_initial_states(cfg, plant):
    """ Resolve initial states from config or dynamics module.

    Args:
        cfg (dict): config dictionary
        plant (module): dynamics module
    Raises:
        ValueError: if initial states are not properly specified
    Returns:
        list: list of initial states as np.ndarrays
    """
    init_states = cfg["data"].get("initial_state", None)
    n_trajectories = cfg["data"].get("n_trajectories", 1)

    if init_states is None:
        # no initial states provided, use the sampler from the dynamics module
        rng = np.random.default_rng(cfg.get("seed", 42)) # create RNG with optional seed
        init_states = [plant.sample_x0(rng, cfg["dynamics"]) for _ in range(n_trajectories)]
    else:
        # initial states provided in config
        if not isinstance(init_states, list) \
            or len(init_states) != n_trajectories \
            or not all([len(s)==len(plant.STATE_NAMES) for s in init_states]):
            raise ValueError(f"Initial states must be a list of {n_trajectories} states, each of size {len(plant.STATE_NAMES)}. Got: {init_states}")

    # Ensure all initial states are np.ndarrays
    init_states = [np.array(s, dtype=float) for s in init_states]
    return init_states

def _resolve_time_params(cfg):
    """ Resolve time step parameters from config.

    Args:
        cfg (dict): config dictionary
    Raises:
        ValueError: if time parameters are not properly specified
    Returns:
        tuple: (T, dt, control_dt, n_steps, n_ctrl_steps)
    """
    dyn = cfg["dynamics"]
    dt = float(dyn.get("dt", 0.01))          # simulation time step
    control_dt = float(dyn.get("control_dt", dt)) # controller update period (should be >= dt and a multiple of dt)
    if dt <= 0:
        raise ValueError(f"dynamics.dt must be > 0. Got {dt}")
    ratio = control_dt / dt
    if control_dt < dt or abs(ratio - round(ratio)) > 1e-9:
        raise ValueError(f"control_dt must be >= dt and a multiple of dt. Got control_dt={control_dt}, dt={dt}")

    # Get time horizon or total sim time
    T = cfg["data"].get("sim_time", None)  # total sim time in seconds
    H = cfg["data"].get("horizon", None)   # total number of steps

    if T is None and H is None:
        raise ValueError("Either 'sim_time' (seconds) or 'horizon' (steps) must be specified in config data section.")
    if T is not None and H is not None:
        raise ValueError("Only one of 'sim_time' (seconds) or 'horizon' (steps) should be specified in config data section, not both.")
    if T is None:
        T = H * dt

    n_steps = int(round(T / dt))           # total number of steps
    n_ctrl_steps = int(round(ratio))       # number of steps between controller updates

    return float(T), dt, control_dt, n_steps, n_ctrl_steps

def _next_filename(out_dir):
    """ Generate the next available filename in a directory.

    Args:
        out_dir (Path): output directory

    Returns:
        str: next available filename, e.g. "traj_000.csv"
    """
    existing = [f.name for f in out_dir.glob("traj_*.csv")]
    nums = [int(f[5:8]) for f in existing if f[5:8].isdigit()]
    next_num = max(nums) + 1 if nums else 0
    return f"traj_{next_num:03d}.csv"

def trace_columns(plant) -> list[str]:
    """ Column order of a simulation trace: id, t, states..., then per-axis loop signals. """
    cols = ["traj_id", "t"] + list(plant.STATE_NAMES)
    for a in plant.CONTROL_AXES:
        cols += [f"reference_{a}", f"error_{a}", f"u_{a}", f"u_unsat_{a}",
                 f"integral_{a}", f"derivative_{a}", f"manual_{a}"]
    return cols

def simulate(cfg, out_dir="data/raw"):
    """ Simulate the configured plant in closed loop with one PID controller per control axis.

    Args:
        cfg (dict): configuration dictionary
        out_dir (str, optional): output directory to save the trace. Defaults to "data/raw".

    Returns:
        str: path to the saved trace CSV file
    """
    sys_name = cfg["system"]
    out = Path(out_dir) / sys_name
    out.mkdir(parents=True, exist_ok=True) # ensure output directory exists

    # Load system module from config
    plant = import_system(sys_name)

    # Plant params (dict) validated by the system params class
    params = validate_params(plant.Params, cfg["dynamics"]["params"])

    # Build controllers and loop settings per axis from config
    controllers = build_controllers_from_cfg(cfg["controller"], plant.CONTROL_AXES)
    loops = _resolve_loops(cfg["controller"], plant.CONTROL_AXES)

    init_states = _resolve_initial_states(cfg, plant)

    integrator = cfg["dynamics"].get("integrator", "rk4")
    if integrator not in INTEGRATORS:
        raise ValueError(f"Unknown integrator '{integrator}'. Use one of {sorted(INTEGRATORS)}")
    step = INTEGRATORS[integrator]

    T, dt, dt_ctrl, n_steps, n_ctrl_steps = _resolve_time_params(cfg)

    noise_std = float(cfg["data"].get("noise_std", 0.0))
    rng = np.random.default_rng(cfg.get("seed", 42))

    out_path = out / _next_filename(out)
    rows = []

    for traj_id, x0 in enumerate(init_states):
        x = x0.copy()  # current state

        # reset controller state for each trajectory
        for c in controllers.values():
            c.reset()

        u_dict, manual_dict = {}, {}

        # --- main simulation loop ---
        for k in range(n_steps):
            t = k * dt

            if k % n_ctrl_steps == 0:
                # Time to compute new control inputs
                for axis, ctrl in controllers.items():
                    loop = loops[axis]
                    y = measured_value(plant, axis, x)
                    if noise_std > 0:
                        y += rng.normal(0.0, noise_std)

                    manual = loop.is_manual(t)
                    if manual:
                        u = loop.manual_signal
                        if loop.discharge_while_manual:
                            ctrl.discharge_integral(dt_ctrl)
                        else:
                            ctrl.track(loop.setpoint, y, loop.feed_forward, u, dt_ctrl)
                    else:
                        u = ctrl.update(loop.setpoint, y, loop.feed_forward, dt_ctrl)

                    u_dict[axis] = float(u)
                    manual_dict[axis] = manual

            # Step the dynamics with current control inputs
            x = step(x, u_dict, plant.f, params, dt)

            # --- record a row aligned as (state_t, error_t, u_t) ---
            row = {"traj_id": traj_id, "t": (k + 1) * dt}
            for i, name in enumerate(plant.STATE_NAMES):
                row[name] = float(x[i])
            for axis, ctrl in controllers.items():
                s = ctrl.state
                row[f"reference_{axis}"] = loops[axis].setpoint
                row[f"error_{axis}"] = control_error(plant, axis, x, loops[axis].setpoint)
                row[f"u_{axis}"] = u_dict[axis]
                row[f"u_unsat_{axis}"] = s.unsaturated_control_signal
                row[f"integral_{axis}"] = s.control_error_integral
                row[f"derivative_{axis}"] = s.control_error_derivative
                row[f"manual_{axis}"] = manual_dict[axis]
            rows.append(row)

    df = pd.DataFrame(rows, columns=trace_columns(plant))
    df.to_csv(out_path, index=False)
    print(f"[INFO] Saved trace ({len(init_states)} trajectories, {T:.2f} s each) to {out_path}")
    return str(out_path)
