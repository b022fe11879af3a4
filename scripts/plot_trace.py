import argparse
from pathlib import Path
import pandas as pd, matplotlib.pyplot as plt

if __name__ == "__main__":

    p=argparse.ArgumentParser()
    p.add_argument("--trace", required=True, help="Trace CSV written by scripts/simulate.py")
    p.add_argument("--axis", default=None, help="Control axis to plot. Defaults to the first one in the trace.")
    p.add_argument("--traj", type=int, default=0, help="Trajectory id to plot.")
    p.add_argument("--out", default=None, help="Output PNG. Defaults to <trace>.png")

    args = p.parse_args()

    df = pd.read_csv(args.trace)
    axes = [c[len("reference_"):] for c in df.columns if c.startswith("reference_")]
    if not axes:
        raise SystemExit(f"No control axes found in {args.trace}.")
    axis = args.axis or axes[0]
    if axis not in axes:
        raise SystemExit(f"Axis '{axis}' not in trace. Available: {axes}")

    df = df[df["traj_id"] == args.traj]
    if df.empty:
        raise SystemExit(f"Trajectory {args.traj} not found in {args.trace}.")

    fig, (ax_y, ax_u, ax_i) = plt.subplots(3, 1, sharex=True, figsize=(8, 8))

    # reference vs. actual
    ax_y.plot(df["t"], df[f"reference_{axis}"], "--", label="Reference")
    ax_y.plot(df["t"], df[axis], label="Actual")
    ax_y.set_ylabel(axis)
    ax_y.legend()

    # saturated vs. unsaturated control signal, manual windows shaded
    ax_u.plot(df["t"], df[f"u_unsat_{axis}"], label="Unsaturated")
    ax_u.plot(df["t"], df[f"u_{axis}"], label="Applied")
    manual = df[f"manual_{axis}"].astype(bool)
    if manual.any():
        ax_u.fill_between(df["t"], 0, 1, where=manual, transform=ax_u.get_xaxis_transform(),
                          alpha=0.15, color="grey", label="Manual")
    ax_u.set_ylabel("u")
    ax_u.legend()

    # integrator state
    ax_i.plot(df["t"], df[f"integral_{axis}"])
    ax_i.set_ylabel("Integral")
    ax_i.set_xlabel("Time [s]")

    fig.suptitle(f"PID trace, axis {axis}")
    fig.tight_layout()

    out = Path(args.out) if args.out else Path(args.trace).with_suffix(".png")
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=200)
    print(f"[INFO] Plot saved to {out}")
