from pid_control.utils import parse_with_config
from pid_control.simulate import simulate
from pathlib import Path
import yaml


if __name__ == "__main__":
    """ Run a closed-loop simulation based on configuration and save the trace. """

    cfg, args = parse_with_config() # get config from command-line args

    out_dir = Path(args.out)
    if cfg.get("exp"):
        out_dir = out_dir / cfg["exp"]

    # simulate and save the trace
    trace_path = simulate(cfg, out_dir=out_dir)

    # save config used for this trace to <out>/<system>/configs/<trace name>.yaml
    config_dir = out_dir / cfg["system"] / "configs"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / (Path(trace_path).stem + ".yaml")
    with open(config_path, "w") as f:
        yaml.dump(cfg, f)
    print(f"[INFO] Config used for this trace saved to: {config_path}")
