"""Closed-loop simulation of a generator, a PID controller and an ARX plant."""

from __future__ import annotations

import struct
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Optional

from regulatix.arx import ARX, NoiseType
from regulatix.connection import Connection, ConnectionRole
from regulatix.generator import Generator, GeneratorType
from regulatix.pid import PID

EVENTS = frozenset(
    {"simulation_start", "simulation_stop", "reset_chart", "update_chart", "add_series"}
)

_HEADER = struct.Struct("<iffffffifiQ")
_COUNT = struct.Struct("<Q")
_COEFFICIENT = struct.Struct("<f")
_MIN_PERIOD_MS = 30


class ChartPosition(IntEnum):
    """Chart a series is drawn on."""

    TOP = 0
    MIDDLE = 1
    BOTTOM = 2


@dataclass
class SimulationFrame:
    """Signals recorded at one simulation tick."""

    tick: int = 0
    generator_output: float = 0.0
    p: float = 0.0
    i: float = 0.0
    d: float = 0.0
    pid_output: float = 0.0
    error: float = 0.0
    arx_output: float = 0.0
    noise: float = 0.0


class Simulation:
    """Runs the control loop locally or split across a network connection.

    Observers subscribe with :meth:`on` to the events named in ``EVENTS``;
    ``add_series`` callbacks receive ``(name, y, position)``.
    """

    def __init__(
        self,
        pid: Optional[PID] = None,
        generator: Optional[Generator] = None,
        arx: Optional[ARX] = None,
    ) -> None:
        self.pid = pid if pid is not None else PID()
        self.generator = generator if generator is not None else Generator()
        self.arx = arx if arx is not None else ARX()
        self.connection = Connection(on_message=self.received_online)

        self.duration = 0.0
        self.interval = 100
        self.ticks_per_second = 60.0
        self.tick = 0
        self.current_time = 0.0
        self.is_running = False
        self.frames: list[SimulationFrame] = []

        self._outside_sum = True
        self._error_output = 0.0
        self._arx_output = 0.0
        self._pid_output = 0.0
        self._generator_out = 0.0

        self._listeners: dict[str, list[Callable[..., Any]]] = {
            name: [] for name in EVENTS
        }
        self._lock = threading.RLock()
        self._timer_stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def outside_sum(self) -> bool:
        return self._outside_sum

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        """Register ``callback`` for ``event``."""
        if event not in self._listeners:
            raise ValueError(f"unknown event: {event!r}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            callback(*args)

    def start(self) -> None:
        """Run :meth:`step` periodically, every ``interval`` ms (at least 30)."""
        self._halt_timer()
        period = max(self.interval, _MIN_PERIOD_MS) / 1000.0
        stop = threading.Event()
        thread = threading.Thread(
            target=self._tick_loop, args=(stop, period), daemon=True
        )
        self._timer_stop = stop
        self._thread = thread
        self.is_running = True
        thread.start()
        self._emit("simulation_start")

    def stop(self) -> None:
        """Stop the periodic stepping."""
        self._halt_timer()
        self.is_running = False
        self._emit("simulation_stop")

    def _halt_timer(self) -> None:
        stop, thread = self._timer_stop, self._thread
        self._timer_stop = None
        self._thread = None
        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _tick_loop(self, stop: threading.Event, period: float) -> None:
        while not stop.wait(period):
            self.step()

    def reset(self) -> None:
        """Stop and clear time, recorded frames and controller/plant state."""
        self.stop()
        with self._lock:
            self.tick = 0
            self.current_time = 0.0
            self.is_running = False
            self._emit("reset_chart")
            self.pid.reset()
            self.arx.reset()
            self.frames.clear()

    def step(self) -> None:
        """Advance one tick, over the network when connected."""
        if self.connection.is_connected:
            self.simulate_online()
        else:
            self.simulate_local()

    def simulate_local(self) -> SimulationFrame:
        """Run generator, controller and plant for one tick and record it."""
        with self._lock:
            self.tick += 1
            self.current_time += self.interval / 1000.0
            self._generator_out = self.generator.run(self.current_time)
            self._error_output = self._generator_out - self._arx_output
            self._pid_output = self.pid.run(self._error_output)
            self._arx_output = self.arx.run(self._pid_output, self.tick)
            frame = SimulationFrame(
                tick=self.tick,
                generator_output=self._generator_out,
                p=self.pid.proportional_part,
                i=self.pid.integral_part,
                d=self.pid.derivative_part,
                pid_output=self._pid_output,
                error=self._error_output,
                arx_output=self._arx_output,
                noise=self.arx.noise_part,
            )
            self.frames.append(frame)
            self._draw()
            return frame

    def simulate_online(self) -> bool:
        """Controller side: send the next control value unless replies are pending."""
        with self._lock:
            if self.connection.values_available():
                return False
            self.current_time += self.interval / 1000.0
            self._generator_out = self.generator.run(self.current_time)
            self._error_output = self._generator_out - self._arx_output
            self._pid_output = self.pid.run(self._error_output)
            self.connection.send(self.tick, self._pid_output)
            self.tick += 1
            return True

    def received_online(self) -> None:
        """Handle a sample that arrived through the connection."""
        with self._lock:
            role = self.connection.role
            if role is ConnectionRole.SERVER:
                self._receive_as_controller()
            elif role is ConnectionRole.CLIENT:
                self._receive_as_plant()

    def _receive_as_controller(self) -> None:
        if not self.connection.values_available():
            return
        tick, value = self.connection.pop_values()
        self._arx_output = value
        self.frames.append(
            SimulationFrame(
                tick=tick,
                generator_output=self._generator_out,
                p=self.pid.proportional_part,
                i=self.pid.integral_part,
                d=self.pid.derivative_part,
                pid_output=self._pid_output,
                error=self._error_output,
                arx_output=self._arx_output,
                noise=self.arx.noise_part,
            )
        )
        self._draw()

    def _receive_as_plant(self) -> None:
        if not self.connection.values_available():
            return
        online_tick, control = self.connection.pop_values()
        value = self.arx.run(control, online_tick)
        self.tick = online_tick
        frame = SimulationFrame(
            tick=self.tick,
            pid_output=control,
            arx_output=value,
            noise=self.arx.noise_part,
        )
        self.current_time += self.interval / 1000.0
        self.frames.append(frame)
        self._draw()
        self.connection.send(online_tick, value)

    def _draw(self) -> None:
        last = self.frames[-1]
        self._emit("add_series", "I", last.i, ChartPosition.TOP)
        self._emit("add_series", "D", last.d, ChartPosition.TOP)
        self._emit("add_series", "P", last.p, ChartPosition.TOP)
        self._emit("add_series", "PID", last.pid_output, ChartPosition.TOP)
        self._emit("add_series", "Error", last.error, ChartPosition.MIDDLE)
        self._emit("add_series", "Noise", last.noise, ChartPosition.MIDDLE)
        self._emit("add_series", "ARX", last.arx_output, ChartPosition.BOTTOM)
        self._emit(
            "add_series", "Generator", last.generator_output, ChartPosition.BOTTOM
        )
        self._emit("update_chart")

    def set_outside_sum(self, outside_sum: bool) -> None:
        """Choose how the PID integral part is summed."""
        self.pid.outside_sum = bool(outside_sum)
        self._outside_sum = bool(outside_sum)

    def serialize(self) -> bytes:
        """Encode the simulation settings as a little-endian binary record."""
        a = self.arx.a
        b = self.arx.b
        parts = [
            _HEADER.pack(
                int(self.interval),
                self.duration,
                self.pid.kp,
                self.pid.ti,
                self.pid.td,
                self.generator.amplitude,
                self.generator.frequency,
                int(self.generator.kind),
                self.arx.noise,
                int(self.arx.noise_type),
                self.arx.delay,
            ),
            _COUNT.pack(len(a)),
            struct.pack(f"<{len(a)}f", *a),
            _COUNT.pack(len(b)),
            struct.pack(f"<{len(b)}f", *b),
        ]
        return b"".join(parts)

    def deserialize(self, data: bytes) -> None:
        """Apply settings produced by :meth:`serialize`."""
        view = memoryview(bytes(data))
        header = _HEADER.unpack_from(self._take(view, 0, _HEADER.size))
        offset = _HEADER.size
        a, offset = self._read_coefficients(view, offset)
        b, offset = self._read_coefficients(view, offset)

        (
            interval,
            duration,
            kp,
            ti,
            td,
            amplitude,
            frequency,
            generator_type,
            noise,
            noise_type,
            delay,
        ) = header
        kind = GeneratorType(generator_type)
        noise_kind = NoiseType(noise_type)
        if delay < 1:
            raise ValueError("delay must be a positive number of ticks")

        with self._lock:
            self.interval = interval
            self.duration = duration
            self.pid.kp = kp
            self.pid.ti = ti
            self.pid.td = td
            self.generator.amplitude = amplitude
            self.generator.frequency = frequency
            self.generator.kind = kind
            self.arx.a = a
            self.arx.b = b
            self.arx.noise = noise
            self.arx.noise_type = noise_kind
            self.arx.delay = delay

    @staticmethod
    def _take(view: memoryview, offset: int, size: int) -> memoryview:
        if offset + size > len(view):
            raise ValueError(
                f"truncated simulation data: need {offset + size} bytes, got {len(view)}"
            )
        return view[offset : offset + size]

    @classmethod
    def _read_coefficients(
        cls, view: memoryview, offset: int
    ) -> tuple[list[float], int]:
        (count,) = _COUNT.unpack_from(cls._take(view, offset, _COUNT.size))
        offset += _COUNT.size
        size = count * _COEFFICIENT.size
        values = struct.unpack(f"<{count}f", cls._take(view, offset, size))
        return list(values), offset + size