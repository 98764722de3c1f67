"""CSV export and import of recorded simulation frames."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import IO, Iterable, Union

from regulatix.simulation import SimulationFrame

SEPARATOR = ","

# (selection flag, header label, frame attribute) in column order.
_COLUMNS = (
    ("pid_i", "PID I", "i"),
    ("pid_p", "PID P", "p"),
    ("pid_d", "PID D", "d"),
    ("pid_output", "PID Output", "pid_output"),
    ("generator_output", "Generator Output", "generator_output"),
    ("error", "Error", "error"),
    ("arx_output", "ARX Output", "arx_output"),
    ("arx_noise", "ARX Noise", "noise"),
)
_IMPORT_FIELDS = tuple(attribute for _, _, attribute in _COLUMNS)

PathOrStream = Union[str, "os.PathLike[str]", IO[str]]


@dataclass(frozen=True)
class ExportSelection:
    """Which signals are written to an exported CSV file."""

    pid_i: bool = True
    pid_p: bool = True
    pid_d: bool = True
    pid_output: bool = True
    generator_output: bool = True
    error: bool = True
    arx_output: bool = True
    arx_noise: bool = True


def _selected(selection: ExportSelection) -> list[tuple[str, str]]:
    return [
        (label, attribute)
        for flag, label, attribute in _COLUMNS
        if getattr(selection, flag)
    ]


def _format_number(value: float) -> str:
    return f"{value:g}"


def export_csv(
    frames: Iterable[SimulationFrame],
    selection: ExportSelection,
    path: PathOrStream,
) -> int:
    """Write ``frames`` as CSV to a path or text stream; returns the row count."""
    columns = _selected(selection)
    lines = [SEPARATOR.join(["Time", *(label for label, _ in columns)])]
    for frame in frames:
        cells = [str(frame.tick)]
        cells.extend(_format_number(getattr(frame, attribute)) for _, attribute in columns)
        lines.append(SEPARATOR.join(cells))
    text = "".join(line + "\n" for line in lines)

    if hasattr(path, "write"):
        path.write(text)
    else:
        with open(path, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
    return len(lines) - 1


def import_csv(path: Union[str, "os.PathLike[str]"]) -> list[SimulationFrame]:
    """Read frames from a CSV file that holds every exported column."""
    expected = len(_IMPORT_FIELDS) + 1
    frames: list[SimulationFrame] = []
    with open(path, encoding="utf-8", newline="") as handle:
        header = handle.readline()
        if len(header.rstrip("\r\n").split(SEPARATOR)) != expected:
            raise ValueError(f"invalid header: expected {expected} columns")
        for number, line in enumerate(handle, start=2):
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            parts = line.split(SEPARATOR)
            if len(parts) < expected:
                raise ValueError(
                    f"line {number}: expected {expected} columns, got {len(parts)}"
                )
            try:
                tick = int(parts[0])
                values = [float(part) for part in parts[1:expected]]
            except ValueError as exc:
                raise ValueError(f"line {number}: {exc}") from None
            frames.append(SimulationFrame(tick=tick, **dict(zip(_IMPORT_FIELDS, values))))
    return frames


def parse_coefficients(text: str) -> list[float]:
    """Parse a comma separated list of numbers, ignoring empty entries."""
    values = []
    for part in text.split(SEPARATOR):
        part = part.strip()
        if not part:
            continue
        try:
            values.append(float(part))
        except ValueError:
            raise ValueError(f"invalid coefficient: {part!r}") from None
    return values


def format_coefficients(values: Iterable[float]) -> str:
    """Format numbers as a comma separated list."""
    return SEPARATOR.join(_format_number(value) for value in values)