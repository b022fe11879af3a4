from dataclasses import dataclass, asdict, fields
from datetime import datetime
from typing import Optional, Union
import math

from .numeric import (MAX_FLOAT, clamp, finite, is_finite, backward_euler,
                      low_pass_derivative, discharge_factor)

DEFAULT_SAMPLING_INTERVAL = 0.01 # seconds


@dataclass(frozen=True)
class ControllerConfig:
    """ Gains, limits and time constants of a PID controller.

    The derivative part is low-pass filtered with cut-off frequency 1/low_pass_time_constant
    (0 disables the filter). The integrator is corrected by anti_windup_gain times the gap
    between the feedback signal and the unsaturated output; 0 disables anti-windup.
    """
    proportional_gain: float = 0.0 # P part gain
    integral_gain: float = 0.0 # I part gain
    derivative_gain: float = 0.0 # D part gain
    anti_windup_gain: float = 0.0 # anti-windup tracking gain
    low_pass_time_constant: float = 0.0 # D part low-pass filter time constant (s)
    integral_discharge_time_constant: float = math.inf # time constant to discharge the integral (s)
    min_output: float = -MAX_FLOAT
    max_output: float = MAX_FLOAT

    @property
    def cutoff_frequency(self) -> float:
        """ Cut-off frequency of the derivative filter (1/s). """
        if self.low_pass_time_constant == 0:
            return math.inf
        return 1.0 / self.low_pass_time_constant

    @property
    def integral_discharge_rate(self) -> float:
        """ Inverse of the integral discharge time constant (1/s). """
        if self.integral_discharge_time_constant == 0:
            return math.inf
        return 1.0 / self.integral_discharge_time_constant

    @classmethod
    def from_discharge_rate(cls, integral_discharge_rate: float, **kwargs) -> "ControllerConfig":
        """ Build a config from the integral decay rate (1/s) instead of its time constant.

        A rate of 0 means the integral is never discharged.
        """
        if integral_discharge_rate == 0:
            time_constant = math.inf
        else:
            time_constant = 1.0 / integral_discharge_rate
        return cls(integral_discharge_time_constant=time_constant, **kwargs)

    def validate(self) -> "ControllerConfig":
        """ Check the configuration once, before it is used in a control loop.

        The controller itself never validates its config on the control tick; a degenerate
        config only produces degenerate (but finite) output.

        Raises:
            ValueError: if a gain is not finite, a time constant is out of range or the
                output limits are NaN, inverted or admit no finite output

        Returns:
            ControllerConfig: self, for chaining
        """
        for name in ("proportional_gain", "integral_gain", "derivative_gain", "anti_windup_gain"):
            if not is_finite(getattr(self, name)):
                raise ValueError(f"{name} must be finite. Got {getattr(self, name)}")
        if not is_finite(self.low_pass_time_constant) or self.low_pass_time_constant < 0:
            raise ValueError(f"low_pass_time_constant must be finite and >= 0. Got {self.low_pass_time_constant}")
        if math.isnan(self.integral_discharge_time_constant) or self.integral_discharge_time_constant <= 0:
            raise ValueError(f"integral_discharge_time_constant must be > 0. "
                             f"Got {self.integral_discharge_time_constant}")
        if math.isnan(self.min_output) or math.isnan(self.max_output):
            raise ValueError("min_output and max_output must not be NaN.")
        if self.min_output == math.inf or self.max_output == -math.inf:
            raise ValueError(f"Output limits must leave a finite output range. "
                             f"Got min_output={self.min_output}, max_output={self.max_output}")
        if self.min_output > self.max_output:
            raise ValueError(f"min_output ({self.min_output}) must be <= max_output ({self.max_output})")
        return self


@dataclass
class ControllerState:
    """ Mutable state of a controller, identical for every feedback mode. """
    control_error: float = 0.0 # reference minus actual
    control_error_integrand: float = 0.0 # error including the anti-windup correction
    control_error_integral: float = 0.0 # integrand integrated over time
    control_error_derivative: float = 0.0 # low-pass filtered time-derivative of the error
    unsaturated_control_signal: float = 0.0 # P + I + D + feed-forward, before saturation
    control_signal: float = 0.0 # saturated output


@dataclass(frozen=True)
class StateSnapshot:
    """ Read-only copy of a controller state, optionally stamped with a caller-supplied time. """
    control_error: float
    control_error_integrand: float
    control_error_integral: float
    control_error_derivative: float
    unsaturated_control_signal: float
    control_signal: float
    time: Optional[datetime] = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SelfFeedback:
    """ Anti-windup feedback from the controller's own saturated output. """


@dataclass(frozen=True)
class AppliedSignal:
    """ Anti-windup feedback from the signal the actuator actually applies.

    Used for bumpless transfer: an idle controller tracks the live command so it can take
    over without a step in its output.
    """
    value: float


Feedback = Union[SelfFeedback, AppliedSignal]

SELF_FEEDBACK = SelfFeedback()


class Controller:
    """ PID controller with low-pass filtered derivative, feed-forward, saturated output
    and anti-windup / bumpless transfer.

    The anti-windup mechanism is the actuator saturation tracking model of Åström and Murray,
    Feedback Systems, ch. 6: the integrator integrates

        error + anti_windup_gain * (feedback - unsaturated output)

    where the feedback is either the saturated output of the same update call (SelfFeedback)
    or an externally applied signal (AppliedSignal, tracking mode).

    Every stored state value is kept within [-MAX_FLOAT, MAX_FLOAT].
    """

    def __init__(self, config: Optional[ControllerConfig] = None):
        self.config = config if config is not None else ControllerConfig()
        self.state = ControllerState()

    def __repr__(self):
        return f"Controller(config={self.config!r}, state={self.state!r})"

    def reset(self):
        """ Zero all state. The config is left untouched. """
        for f in fields(self.state):
            setattr(self.state, f.name, 0.0)

    def update(self, reference: float, actual: float, feed_forward: float = 0.0,
               sampling_interval: float = DEFAULT_SAMPLING_INTERVAL,
               feedback: Feedback = SELF_FEEDBACK) -> float:
        """ Advance the controller by one sampling interval.

        A NaN or infinite reference or measurement (or feed-forward, applied signal or
        sampling interval) leaves the state untouched and the last output is held.

        Args:
            reference (float): reference value of the controlled signal
            actual (float): measured value of the controlled signal
            feed_forward (float, optional): feed-forward contribution to the output. Defaults to 0.0.
            sampling_interval (float, optional): time since the previous update (s). Defaults to 0.01.
            feedback (Feedback, optional): source of the anti-windup feedback. Defaults to SELF_FEEDBACK.

        Returns:
            float: saturated control signal
        """
        applied = feedback.value if isinstance(feedback, AppliedSignal) else None
        if not is_finite(reference, actual, feed_forward, sampling_interval) or \
                (applied is not None and not is_finite(applied)):
            return self.state.control_signal

        cfg, s = self.config, self.state
        dt = sampling_interval

        error = finite(reference - actual)
        integral = finite(backward_euler(s.control_error_integrand, s.control_error_integral, dt))
        derivative = finite(low_pass_derivative(error, s.control_error, s.control_error_derivative,
                                                dt, cfg.low_pass_time_constant))

        unsaturated = finite(
            finite(cfg.proportional_gain * error)
            + finite(cfg.integral_gain * integral)
            + finite(cfg.derivative_gain * derivative)
            + feed_forward
        )
        control_signal = clamp(unsaturated, cfg.min_output, cfg.max_output)

        if applied is None:
            applied = control_signal
        integrand = finite(error + cfg.anti_windup_gain * finite(applied - unsaturated))

        s.control_error = error
        s.control_error_integrand = integrand
        s.control_error_integral = integral
        s.control_error_derivative = derivative
        s.unsaturated_control_signal = unsaturated
        s.control_signal = control_signal
        return control_signal

    def track(self, reference: float, actual: float, feed_forward: float, applied_signal: float,
              sampling_interval: float = DEFAULT_SAMPLING_INTERVAL) -> float:
        """ Update in tracking mode, correcting the integrator toward the applied signal. """
        return self.update(reference, actual, feed_forward, sampling_interval,
                           feedback=AppliedSignal(applied_signal))

    def discharge_integral(self, dt: float):
        """ Discharge the integral state over the configured time constant.

        Zeroes the integrand and decays the integral by clamp(1 - dt/tau, 0, 1). Used while a
        controller is disabled so its integral action fades out instead of jumping to zero.

        Args:
            dt (float): time since the previous call (s)
        """
        factor = discharge_factor(dt, self.config.integral_discharge_time_constant)
        self.state.control_error_integrand = 0.0
        self.state.control_error_integral = finite(factor * self.state.control_error_integral)

    def snapshot(self, time: Optional[datetime] = None) -> StateSnapshot:
        """ Read-only copy of the current state.

        Args:
            time (Optional[datetime], optional): timestamp to attach. Defaults to None.

        Returns:
            StateSnapshot: copy of every state field
        """
        return StateSnapshot(**asdict(self.state), time=time)

