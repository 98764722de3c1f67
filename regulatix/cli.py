"""Command line front end for running and inspecting simulations."""

from __future__ import annotations

import argparse
import random
import sys
import threading
import time
from dataclasses import fields
from pathlib import Path
from typing import Optional, Sequence

from regulatix.arx import ARX, NoiseType
from regulatix.export import (
    ExportSelection,
    export_csv,
    format_coefficients,
    import_csv,
    parse_coefficients,
)
from regulatix.generator import GeneratorType
from regulatix.simulation import Simulation, SimulationFrame

_DEFAULT_TICKS = 100
_MIN_PERIOD_MS = 30
_POLL = 0.05
_COLUMN_NAMES = tuple(field.name for field in fields(ExportSelection))


def _columns(text: str) -> ExportSelection:
    names = {part.strip() for part in text.split(",") if part.strip()}
    unknown = names.difference(_COLUMN_NAMES)
    if unknown:
        raise argparse.ArgumentTypeError(
            f"unknown column(s): {', '.join(sorted(unknown))}; "
            f"choose from {', '.join(_COLUMN_NAMES)}"
        )
    return ExportSelection(**{name: name in names for name in _COLUMN_NAMES})


def _settings_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("simulation settings")
    group.add_argument("--load", metavar="FILE", help="read settings from a .dat file")
    group.add_argument("--save", metavar="FILE", help="write settings to a .dat file")
    group.add_argument("--seed", type=int, help="seed for the noise generator")
    group.add_argument("--interval", type=int, help="tick interval in milliseconds")
    group.add_argument("--duration", type=float, help="duration in seconds")
    group.add_argument("--kp", type=float, help="proportional gain")
    group.add_argument("--ti", type=float, help="integral time")
    group.add_argument("--td", type=float, help="derivative time")
    group.add_argument(
        "--inside-sum",
        action="store_true",
        help="scale each error by the integral time in force when it arrived",
    )
    group.add_argument(
        "--generator",
        choices=[name.lower() for name in GeneratorType.__members__],
        help="generator waveform",
    )
    group.add_argument("--amplitude", type=float, help="generator amplitude")
    group.add_argument("--frequency", type=float, help="generator period")
    group.add_argument("--infill", type=float, help="square wave duty cycle in percent")
    group.add_argument("--noise", type=float, help="plant noise parameter")
    group.add_argument(
        "--noise-type",
        choices=[name.lower() for name in NoiseType.__members__],
        help="plant noise distribution",
    )
    group.add_argument("--delay", type=int, help="plant history length in ticks")
    group.add_argument("--a", metavar="LIST", help="comma separated output coefficients")
    group.add_argument("--b", metavar="LIST", help="comma separated input coefficients")

    output = parent.add_argument_group("output")
    output.add_argument("--output", "-o", metavar="FILE", help="CSV file (default: stdout)")
    output.add_argument(
        "--columns",
        type=_columns,
        default=ExportSelection(),
        help=f"comma separated columns to export from: {', '.join(_COLUMN_NAMES)}",
    )
    return parent


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="regulatix", description="Simulate a PID-controlled ARX plant."
    )
    commands = parser.add_subparsers(dest="command", required=True)
    parent = _settings_parent()

    run = commands.add_parser("run", parents=[parent], help="run a local simulation")
    run.add_argument("--ticks", type=int, help="number of ticks to simulate")
    run.set_defaults(handler=_run)

    serve = commands.add_parser(
        "serve", parents=[parent], help="act as the controller and wait for a plant"
    )
    serve.add_argument("--port", type=int, default=12345)
    serve.add_argument("--ticks", type=int, help="number of replies to collect")
    serve.set_defaults(handler=_serve)

    connect = commands.add_parser(
        "connect", parents=[parent], help="act as the plant and connect to a controller"
    )
    connect.add_argument("--address", default="127.0.0.1")
    connect.add_argument("--port", type=int, default=12345)
    connect.set_defaults(handler=_connect)

    inspect = commands.add_parser("inspect", help="print settings from a .dat file")
    inspect.add_argument("file")
    inspect.set_defaults(handler=_inspect)

    summary = commands.add_parser("summary", help="summarise an exported CSV file")
    summary.add_argument("file")
    summary.set_defaults(handler=_summary)
    return parser


def _build_simulation(args: argparse.Namespace) -> Simulation:
    simulation = Simulation(arx=ARX(rng=random.Random(args.seed)))
    if args.load:
        simulation.deserialize(Path(args.load).read_bytes())

    if args.interval is not None:
        simulation.interval = args.interval
    if args.duration is not None:
        simulation.duration = args.duration
    if args.kp is not None:
        simulation.pid.kp = args.kp
    if args.ti is not None:
        simulation.pid.ti = args.ti
    if args.td is not None:
        simulation.pid.td = args.td
    if args.inside_sum:
        simulation.set_outside_sum(False)

    generator = simulation.generator
    if args.generator is not None:
        generator.kind = GeneratorType[args.generator.upper()]
    if args.amplitude is not None:
        generator.amplitude = args.amplitude
    if args.frequency is not None:
        generator.frequency = args.frequency
    if args.infill is not None:
        generator.infill = args.infill

    arx = simulation.arx
    if args.a is not None:
        arx.a = parse_coefficients(args.a)
    if args.b is not None:
        arx.b = parse_coefficients(args.b)
    if args.noise is not None:
        arx.noise = args.noise
    if args.noise_type is not None:
        arx.noise_type = NoiseType[args.noise_type.upper()]
    if args.delay is not None:
        arx.delay = args.delay

    if simulation.interval <= 0:
        raise ValueError("interval must be a positive number of milliseconds")
    if args.save:
        Path(args.save).write_bytes(simulation.serialize())
    return simulation


def _tick_count(simulation: Simulation, ticks: Optional[int]) -> int:
    if ticks is not None:
        if ticks < 0:
            raise ValueError("ticks must not be negative")
        return ticks
    if simulation.duration > 0:
        period = max(simulation.interval, _MIN_PERIOD_MS)
        return round(simulation.duration * 1000 / period)
    return _DEFAULT_TICKS


def _write_frames(frames: list[SimulationFrame], args: argparse.Namespace) -> None:
    target = args.output if args.output else sys.stdout
    export_csv(frames, args.columns, target)


def _run(args: argparse.Namespace) -> int:
    simulation = _build_simulation(args)
    for _ in range(_tick_count(simulation, args.ticks)):
        simulation.simulate_local()
    _write_frames(simulation.frames, args)
    return 0


def _serve(args: argparse.Namespace) -> int:
    simulation = _build_simulation(args)
    ticks = _tick_count(simulation, args.ticks)
    connection = simulation.connection
    peer_connected = threading.Event()
    connection.on_connected = lambda address, port: peer_connected.set()
    if not connection.listen(args.port):
        raise OSError(f"cannot listen on port {args.port}")
    print(f"listening on port {connection.local_port}", file=sys.stderr, flush=True)
    try:
        while not peer_connected.wait(_POLL):
            pass
        simulation.start()
        while len(simulation.frames) < ticks and connection.is_connected:
            time.sleep(_POLL)
    except KeyboardInterrupt:
        pass
    finally:
        simulation.stop()
        connection.disconnect()
    _write_frames(simulation.frames, args)
    return 0


def _connect(args: argparse.Namespace) -> int:
    simulation = _build_simulation(args)
    connection = simulation.connection
    connection.connect_to(args.address, args.port)
    print(f"connected to {args.address}:{args.port}", file=sys.stderr, flush=True)
    try:
        while connection.is_connected:
            time.sleep(_POLL)
    except KeyboardInterrupt:
        pass
    finally:
        connection.disconnect()
    _write_frames(simulation.frames, args)
    return 0


def _inspect(args: argparse.Namespace) -> int:
    simulation = Simulation()
    simulation.deserialize(Path(args.file).read_bytes())
    settings = {
        "interval": str(simulation.interval),
        "duration": f"{simulation.duration:g}",
        "kp": f"{simulation.pid.kp:g}",
        "ti": f"{simulation.pid.ti:g}",
        "td": f"{simulation.pid.td:g}",
        "generator": simulation.generator.kind.name.lower(),
        "amplitude": f"{simulation.generator.amplitude:g}",
        "frequency": f"{simulation.generator.frequency:g}",
        "noise": f"{simulation.arx.noise:g}",
        "noise_type": simulation.arx.noise_type.name.lower(),
        "delay": str(simulation.arx.delay),
        "a": format_coefficients(simulation.arx.a),
        "b": format_coefficients(simulation.arx.b),
    }
    for key, value in settings.items():
        print(f"{key}: {value}")
    return 0


def _summary(args: argparse.Namespace) -> int:
    frames = import_csv(args.file)
    print(f"frames: {len(frames)}")
    if frames:
        print(f"first_tick: {frames[0].tick}")
        print(f"last_tick: {frames[-1].tick}")
        outputs = [frame.arx_output for frame in frames]
        print(f"arx_output: {min(outputs):g} .. {max(outputs):g}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line interface; returns the exit status."""
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except (OSError, ValueError) as exc:
        print(f"regulatix: error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())