"""Chart data model fed by simulation events."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from regulatix.simulation import ChartPosition, Simulation


@dataclass(frozen=True)
class Range:
    """Closed interval shown on an axis."""

    min: float
    max: float


class ChartModel:
    """Named line series for one chart position, with automatic axis ranges."""

    def __init__(self, simulation: Simulation, position: ChartPosition) -> None:
        self._simulation = simulation
        self.position = ChartPosition(position)
        self._series: dict[str, list[tuple[float, float]]] = {}
        self._lock = threading.Lock()
        self.axis_x = Range(0.0, 0.0)
        self.axis_y = Range(0.0, 0.0)
        simulation.on("add_series", self.add_series)
        simulation.on("update_chart", self.update)
        simulation.on("reset_chart", self.reset)

    @property
    def series(self) -> dict[str, list[tuple[float, float]]]:
        """Copy of every series' points, keyed by name in creation order."""
        with self._lock:
            return {name: list(points) for name, points in self._series.items()}

    def add_series(self, name: str, y: float, position: ChartPosition) -> None:
        """Add a point at the current time; the first call only creates the series."""
        if position != self.position:
            return
        with self._lock:
            points = self._series.get(name)
            if points is None:
                self._series[name] = []
                return
            max_points = self._simulation.ticks_per_second * 4
            if len(points) > max_points:
                del points[0]
            points.append((float(self._simulation.current_time), float(y)))

    def reset(self) -> None:
        """Remove all points, keeping the series themselves."""
        with self._lock:
            for points in self._series.values():
                points.clear()
        self.update()
        self.axis_y = Range(-1.0, 1.0)

    def update(self) -> None:
        """Recompute both axis ranges from the current data."""
        y_range = self.y_range()
        self.axis_x = self.x_range()
        self.axis_y = Range(y_range.min - 1, y_range.max + 1)

    def x_range(self) -> Range:
        """Sliding window ending at the current simulation time."""
        now = self._simulation.current_time
        offset = self._simulation.interval / 1000.0 * 100
        return Range(max(now - offset, 0.0), max(now, offset))

    def y_range(self) -> Range:
        """Span of all y values, always including zero."""
        low = 0.0
        high = 0.0
        with self._lock:
            for points in self._series.values():
                for _, y in points:
                    low = min(low, y)
                    high = max(high, y)
        return Range(low, high)