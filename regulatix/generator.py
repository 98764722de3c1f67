"""Set-point signal generator."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum


class GeneratorType(IntEnum):
    """Waveform produced by the generator."""

    SINE = 0
    SQUARE = 1
    TRIANGLE = 2
    SAWTOOTH = 3
    SINGLE_JUMP = 4


@dataclass
class Generator:
    """Waveform source; ``frequency`` is the period in time units.

    ``infill`` is the duty cycle of the square wave in percent.
    """

    kind: GeneratorType = GeneratorType.SINE
    frequency: float = 100.0
    amplitude: float = 1.0
    infill: float = 50.0

    def run(self, time: float) -> float:
        """Return the generator output at ``time``."""
        kind = GeneratorType(self.kind)
        if kind is GeneratorType.SINGLE_JUMP:
            return self.amplitude * (1.0 if time < 1 else 0.0)

        if self.frequency == 0:
            raise ValueError("frequency must be non-zero for periodic waveforms")

        if kind is GeneratorType.SINE:
            return self.amplitude * math.sin(2 * math.pi * time / self.frequency)
        if kind is GeneratorType.SQUARE:
            period = self.frequency * 2
            high_time = period * self.infill / 100
            phase = math.fmod(time, period)
            return self.amplitude * (1.0 if phase < high_time else 0.0)
        if kind is GeneratorType.TRIANGLE:
            return self.amplitude * math.asin(
                math.sin(2 * math.pi * time / self.frequency)
            )
        return self.amplitude * math.atan(math.tan(math.pi * time / self.frequency))