"""Discrete ARX plant model with configurable additive noise."""

from __future__ import annotations

import math
import random
from enum import IntEnum
from typing import Iterable

_WORD = 2**64
_POISSON_CHUNK = 30.0


class NoiseType(IntEnum):
    """Distribution used for the additive output noise."""

    NORMAL = 0
    UNIFORM = 1
    TRIANGULAR = 2
    EXPONENTIAL = 3
    LAPLACE = 4
    POISSON = 5
    GAMMA = 6
    BETA = 7


def _resized(values: list[float], size: int) -> list[float]:
    """Return ``values`` truncated or zero-padded to ``size`` items."""
    return values[:size] + [0.0] * (size - len(values))


def _poisson(rng: random.Random, mean: float) -> int:
    """Draw a Poisson-distributed integer with the given mean."""
    if mean < 0:
        raise ValueError("Poisson mean must not be negative")
    count = 0
    # Split large means into chunks; a sum of Poisson draws is Poisson.
    while mean > _POISSON_CHUNK:
        count += _poisson(rng, _POISSON_CHUNK)
        mean -= _POISSON_CHUNK
    limit = math.exp(-mean)
    product = rng.random()
    while product > limit:
        count += 1
        product *= rng.random()
    return count


class ARX:
    """Autoregressive model with exogenous input.

    The output at a tick is ``sum(b[i] * u[t - i]) - sum(a[i] * y[t - i])``
    over a circular history of ``delay`` samples, plus a noise term.
    """

    def __init__(
        self,
        a: Iterable[float] = (0.1,),
        b: Iterable[float] = (0.1,),
        noise: float = 0.01,
        delay: int = 2,
        noise_type: NoiseType = NoiseType.NORMAL,
        rng: random.Random | None = None,
    ) -> None:
        self._a = [float(v) for v in a]
        self._b = [float(v) for v in b]
        if delay < 1:
            raise ValueError("delay must be a positive number of ticks")
        self._delay = int(delay)
        self._u = [0.0] * len(self._a)
        self._y = [0.0] * len(self._b)
        self.noise = float(noise)
        self.noise_type = NoiseType(noise_type)
        self.noise_part = 0.0
        self._rng = rng if rng is not None else random.Random()

    @property
    def a(self) -> list[float]:
        """Output (autoregressive) coefficients."""
        return list(self._a)

    @a.setter
    def a(self, values: Iterable[float]) -> None:
        self._a = [float(v) for v in values]
        self._y = _resized(self._y, len(self._a))

    @property
    def b(self) -> list[float]:
        """Input (exogenous) coefficients."""
        return list(self._b)

    @b.setter
    def b(self, values: Iterable[float]) -> None:
        self._b = [float(v) for v in values]
        self._y = _resized(self._y, len(self._b))

    @property
    def delay(self) -> int:
        """Length of the circular input/output history."""
        return self._delay

    @delay.setter
    def delay(self, value: int) -> None:
        if value < 1:
            raise ValueError("delay must be a positive number of ticks")
        self._delay = int(value)
        self._u = _resized(self._u, self._delay)
        self._y = _resized(self._y, self._delay)

    def run_noise(self) -> float:
        """Draw a fresh noise sample into ``noise_part`` and return it."""
        if self.noise == 0:
            self.noise_part = 0.0
            return self.noise_part

        rng = self._rng
        kind = self.noise_type
        if kind is NoiseType.NORMAL:
            sample = rng.gauss(0.0, self.noise)
        elif kind in (NoiseType.UNIFORM, NoiseType.TRIANGULAR):
            sample = rng.uniform(-self.noise, self.noise)
        elif kind is NoiseType.EXPONENTIAL:
            sample = rng.expovariate(self.noise)
        elif kind is NoiseType.POISSON:
            sample = float(_poisson(rng, self.noise))
        elif kind is NoiseType.GAMMA:
            sample = rng.gammavariate(self.noise, self.noise)
        else:
            sample = 0.0
        self.noise_part = sample
        return sample

    def reset(self) -> None:
        """Clear the input/output history and the last noise sample."""
        self._u = [0.0] * len(self._u)
        self._y = [0.0] * len(self._y)
        self.noise_part = 0.0

    def run(self, value: float, tick: int) -> float:
        """Feed ``value`` at ``tick`` and return the noisy model output."""
        if tick < 0:
            raise ValueError("tick must not be negative")

        size = max(len(self._a), len(self._b))
        self._a = _resized(self._a, size)
        self._b = _resized(self._b, size)
        delay = self._delay

        result = 0.0
        for i, coefficient in enumerate(self._b):
            lag = (tick - i) % _WORD
            if lag > delay:
                index = lag % delay
                if index < len(self._u):
                    result += coefficient * self._u[index]

        for i, coefficient in enumerate(self._a):
            lag = (tick - i) % _WORD
            if lag > delay:
                index = lag % delay
                if index < len(self._y):
                    result -= coefficient * self._y[index]

        if len(self._u) < delay or len(self._y) < delay:
            self._u = _resized(self._u, delay)
            self._y = _resized(self._y, delay)

        slot = tick % delay
        self._u[slot] = float(value)
        self._y[slot] = result

        return result + self.run_noise()