import numpy as np

MAX_FLOAT = float(np.finfo(float).max) # largest finite float, state values never leave [-MAX_FLOAT, MAX_FLOAT]


def clamp(value: float, lower: float, upper: float) -> float:
    """ Clamp a value to [lower, upper]. """
    return max(lower, min(upper, value))

def finite(value: float) -> float:
    """ Map a value into [-MAX_FLOAT, MAX_FLOAT].

    +inf and -inf saturate to the largest finite magnitude, NaN becomes 0.0.

    Args:
        value (float): value to sanitise

    Returns:
        float: finite value
    """
    return float(np.nan_to_num(value, nan=0.0, posinf=MAX_FLOAT, neginf=-MAX_FLOAT))

def is_finite(*values: float) -> bool:
    """ True if every value is a finite real number (not NaN, not +/-inf). """
    try:
        return bool(np.all(np.isfinite(np.asarray(values, dtype=float))))
    except (TypeError, ValueError):
        return False

def backward_euler(integrand: float, integral: float, dt: float) -> float:
    """ One backward-Euler integration step.

    Args:
        integrand (float): integrand from the previous step
        integral (float): integral from the previous step
        dt (float): elapsed time (s)

    Returns:
        float: integral after this step (may overflow to +/-inf)
    """
    return integrand * dt + integral

def low_pass_derivative(error: float, previous_error: float, previous_derivative: float,
                        dt: float, time_constant: float) -> float:
    """ First-order low-pass filtered discrete derivative.

    Discretisation of a low-pass filter with cut-off frequency 1/time_constant applied to
    the raw derivative (error - previous_error)/dt:

        ((1/tau) * (e - e_prev) + d_prev) / (dt/tau + 1)

    evaluated as ((e - e_prev) + tau * d_prev) / (dt + tau). For tau > 0 both forms agree as
    long as no intermediate overflows. When tau * d_prev or e - e_prev exceeds the float
    range the partial term is clamped to +/-MAX_FLOAT first, so the result stays finite but
    is smaller in magnitude than the exact value. For tau = 0 it reduces to the unfiltered
    backward difference.

    Args:
        error (float): current error
        previous_error (float): error at the previous step
        previous_derivative (float): filtered derivative at the previous step
        dt (float): elapsed time (s)
        time_constant (float): filter time constant tau (s)

    Returns:
        float: filtered derivative (may be +/-inf or NaN for a degenerate dt + tau = 0)
    """
    # each partial term is kept finite so the sum can overflow but never become NaN
    delta = finite(error - previous_error)
    memory = finite(time_constant * previous_derivative)
    with np.errstate(all="ignore"):
        return float(np.divide(np.float64(delta + memory), np.float64(dt + time_constant)))

def discharge_factor(dt: float, time_constant: float) -> float:
    """ Exponential-decay factor clamp(1 - dt/time_constant, 0, 1).

    dt >= time_constant gives 0 (full discharge), dt <= 0 gives 1 (no change).

    Args:
        dt (float): elapsed time (s)
        time_constant (float): discharge time constant (s)

    Returns:
        float: factor in [0, 1]
    """
    with np.errstate(all="ignore"):
        ratio = np.divide(np.float64(dt), np.float64(time_constant))
    if np.isnan(ratio): # 0/0 or inf/inf -> nothing sensible to decay by
        return 1.0
    return clamp(1.0 - float(ratio), 0.0, 1.0)
