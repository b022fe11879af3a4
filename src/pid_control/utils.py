import argparse, json, random, yaml
import numpy as np
import importlib

def import_system(system_name: str):
    """ Import a plant dynamics module by system name.

    Args:
        system_name (str): system name, e.g. "first_order"

    Raises:
        ModuleNotFoundError: if the module cannot be found

    Returns:
        module: the imported dynamics module
    """
    # e.g. "first_order" -> "pid_control.dynamics.first_order"
    try:
        mod = importlib.import_module(f"pid_control.dynamics.{system_name}")
    except ModuleNotFoundError as e:
        raise ModuleNotFoundError(f"Could not find dynamics module for system '{system_name}'. "
                                  f"Ensure 'src/pid_control/dynamics/{system_name}.py' exists.") from e
    return mod

def seed_all(seed:int=42):
    """ Set random seed for reproducibility.

    Args:
        seed (int, optional): Random seed value. Defaults to 42.
    """
    random.seed(seed)
    np.random.seed(seed)

def load_cfg(path:str):
    """ Load configuration from a YAML or JSON file.

    Args:
        path (str): Path to the configuration file.

    Returns:
        dict: Configuration dictionary.
    """
    path = str(path)
    if not (path.endswith(".yaml") or path.endswith(".yml") or path.endswith(".json")):
        raise ValueError("Unsupported config file format. Use .yaml, .yml, or .json")

    with open(path) as f:
        text = f.read()
    cfg = json.loads(text) if path.endswith(".json") else yaml.safe_load(text)

    if not isinstance(cfg, dict):
        raise ValueError(f"Config file {path} should contain a mapping at the top level.")
    return cfg

def _coerce(v: str):
    """ Convert an override value string to bool, int, float or leave it as a string. """
    if v.lower() in {"true","false"}:
        return v.lower() == "true"
    for cast in (int, float):
        try:
            return cast(v)
        except ValueError:
            pass
    return v

def apply_overrides(cfg:dict, pairs:list[str]|None):
    """ Apply command-line overrides to a configuration dictionary.

    Args:
        cfg (dict): Base configuration dictionary.
        pairs (list[str] | None): List of key-value pairs in the format "key=value" to override.

    Returns:
        dict: Updated configuration dictionary with overrides applied.
    """

    for kv in (pairs or []): # if pairs is None, do nothing (empty list)

        if "=" not in kv:
            raise ValueError(f"Override '{kv}' should have the form key=value, e.g. controller.pid.y.proportional_gain=2")

        k, v = kv.split("=", 1) # split only on the first '='

        d = cfg

        *ks, last = k.split(".") # e.g. data.sim_time -> ks=["data"], last="sim_time"

        for kk in ks:
            # iterate through intermediate keys, creating nested dicts as needed
            d = d.setdefault(kk, {})
            if not isinstance(d, dict):
                raise ValueError(f"Cannot override '{k}': '{kk}' is not a section.")

        d[last] = _coerce(v) # set the final key to the value

    return cfg

def parse_with_config(argv=None):
    """ Parse command-line arguments and load configuration.
    e.g. python scripts/simulate.py --config configs/first_order.yaml --set controller.pid.y.integral_gain=4 --exp my_run

    Returns:
        tuple: Configuration dictionary and parsed arguments.
    """
    p = argparse.ArgumentParser()
    p.add_argument("--config", default="configs/first_order.yaml")
    p.add_argument("--set", nargs="*")           # e.g. data.sim_time=20 controller.pid.y.max_output=2
    p.add_argument("--exp", default=None)
    p.add_argument("--out", default="data/raw", help="Output directory for simulation traces.")

    args = p.parse_args(argv) # parse command-line arguments

    # apply command-line overrides
    cfg = apply_overrides(load_cfg(args.config), args.set)

    if args.exp: cfg["exp"] = args.exp # set experiment name if provided

    import_system(cfg["system"]) # fail early on an unknown system

    seed_all(cfg.get("seed", 0))

    return cfg, args
