"""Discrete PID controller."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class PID:
    """PID controller with proportional, integral and derivative parts.

    With ``outside_sum`` set, the integral is recomputed as ``sum / ti``
    over all past errors, so a change of ``ti`` rescales the whole history.
    Otherwise each error is scaled by the ``ti`` in force when it arrived.
    """

    kp: float = 1.0
    ti: float = 1.0
    td: float = 1.0
    outside_sum: bool = True

    integral_part: float = field(default=0.0, init=False)
    derivative_part: float = field(default=0.0, init=False)
    proportional_part: float = field(default=0.0, init=False)
    _sum: float = field(default=0.0, init=False, repr=False)
    _previous: float = field(default=0.0, init=False, repr=False)
    _errors: list[float] = field(default_factory=list, init=False, repr=False)

    def run_integral(self, error: float) -> float:
        """Update and return the integral part."""
        if self.ti == 0:
            self._errors.clear()
            self._sum = 0.0
            self.integral_part = 0.0
            return self.integral_part

        self._errors.append(error)
        coefficient = 1.0 / self.ti
        self._sum += error * coefficient

        if self.outside_sum:
            self.integral_part = coefficient * sum(self._errors)
        else:
            self.integral_part = self._sum
        return self.integral_part

    def run_derivative(self, error: float) -> float:
        """Update and return the derivative part."""
        derivative = error - self._previous
        self._previous = error
        self.derivative_part = derivative * self.td
        return self.derivative_part

    def run_proportional(self, error: float) -> float:
        """Update and return the proportional part."""
        self.proportional_part = error * self.kp
        return self.proportional_part

    def run(self, error: float) -> float:
        """Advance the controller by one step and return its output."""
        self.run_integral(error)
        self.run_derivative(error)
        self.run_proportional(error)
        return self.integral_part + self.derivative_part + self.proportional_part

    def reset(self) -> None:
        """Forget all accumulated state."""
        self._errors.clear()
        self.integral_part = 0.0
        self.derivative_part = 0.0
        self.proportional_part = 0.0
        self._previous = 0.0
        self._sum = 0.0