# regulatix

regulatix simulates a closed control loop. A signal generator produces a
setpoint. A PID controller acts on the error between the setpoint and the
plant output. An ARX model stands in for the plant and can add noise.

The loop can run in one process, or it can be split across two processes over
TCP. In the split setup, one side runs the controller and the other side runs
the plant.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

The package needs only the Python standard library, on Python 3.10 or later.

## Command line

```
regulatix --help
```

The `regulatix` command has five subcommands.

### Simulation commands

`run`, `serve` and `connect` accept the same settings options:

- `--load FILE` reads settings from a `.dat` file.
- `--save FILE` writes the final settings to a `.dat` file.
- `--seed N` seeds the noise generator.
- `--interval MS` sets the tick interval, in milliseconds.
- `--duration S` sets the duration, in seconds.
- `--kp`, `--ti` and `--td` set the PID gains.
- `--inside-sum` scales each error by the integral time in force when that
  error arrived. Without this option, the integral is recomputed from all past
  errors using the current integral time.
- `--generator` chooses the waveform: `sine`, `square`, `triangle`,
  `sawtooth` or `single_jump`.
- `--amplitude` sets the generator amplitude.
- `--frequency` sets the generator period.
- `--infill` sets the square-wave duty cycle, in percent.
- `--noise` sets the noise parameter.
- `--noise-type` chooses the noise distribution: `normal`, `uniform`,
  `triangular`, `exponential`, `laplace`, `poisson`, `gamma` or `beta`.
- `--delay` sets the length of the plant history, in ticks.
- `--a LIST` and `--b LIST` set the plant coefficients as comma-separated
  numbers.

Options given on the command line override settings read with `--load`.

The recorded frames are written as CSV to standard output, or to the file
given with `--output`/`-o`. `--columns` picks which columns are written from
`pid_i`, `pid_p`, `pid_d`, `pid_output`, `generator_output`, `error`,
`arx_output` and `arx_noise`. By default all columns are written. The first
column is always the tick, under the header `Time`.

- `regulatix run [--ticks N]` runs the loop locally. When `--ticks` is not
  given, the number of ticks is taken from the duration. The ticks are spaced
  at the interval, with a minimum of 30 ms. With no duration, 100 ticks are
  run.
- `regulatix serve [--port 12345] [--ticks N]` plays the controller side. It
  prints `listening on port N` to standard error and waits for a plant to
  connect. It then steps the loop until it has recorded the requested number
  of replies, or until the peer disconnects.
- `regulatix connect [--address 127.0.0.1] [--port 12345]` plays the plant
  side. It answers each control value it receives, until the connection
  closes or the process is interrupted.

Example with both sides on one machine:

```
regulatix serve --port 12345 --ticks 50 -o controller.csv
regulatix connect --address 127.0.0.1 --port 12345 -o plant.csv
```

### Inspection commands

- `regulatix inspect FILE` prints the settings stored in a `.dat` file.
- `regulatix summary FILE` reads a CSV file that holds all columns. It prints
  the frame count, the first and last tick, and the range of the ARX output.

Errors such as unreadable files, bad values or failed connections are printed
to standard error, and the command then exits with status 1.

## Library use

| Module | Contents |
| --- | --- |
| `regulatix.generator` | `Generator` and `GeneratorType` (sine, square, triangle, sawtooth, single jump) |
| `regulatix.pid` | `PID`, with proportional, integral and derivative parts |
| `regulatix.arx` | `ARX` and `NoiseType`, the plant model with optional noise |
| `regulatix.simulation` | `Simulation`, `SimulationFrame` and `ChartPosition`, which tie the loop together and record each tick |
| `regulatix.chart` | `ChartModel` and `Range`, which hold named series and axis ranges for one chart position |
| `regulatix.connection` | `Connection`, `ConnectionRole`, `ConnectionSettings`, `encode_message` and `decode_message`, for the networked loop |
| `regulatix.transport` | `TcpClient` and `TcpServer`, a single-peer TCP transport driven by callbacks |
| `regulatix.export` | `ExportSelection`, `export_csv`, `import_csv`, `parse_coefficients` and `format_coefficients` |
| `regulatix.cli` | `build_parser` and `main`, the command line front end |

A minimal local run:

```python
from regulatix.simulation import Simulation

sim = Simulation()
for _ in range(100):
    sim.step()

last = sim.frames[-1]
print(last.tick, last.generator_output, last.arx_output)
```

`Simulation.start()` steps the loop on a background thread every `interval`
milliseconds, with a minimum of 30 ms. `Simulation.stop()` ends it. To
observe the loop, register callbacks with `Simulation.on(event, callback)`.
The events are `simulation_start`, `simulation_stop`, `reset_chart`,
`update_chart` and `add_series`. An `add_series` callback receives
`(name, y, position)`. A `ChartModel` subscribes itself to a simulation in
this way.

`Simulation.serialize()` returns the settings as a little-endian binary
record, and `Simulation.deserialize(data)` restores them.

`export_csv(frames, selection, path)` writes frames to a path or to a text
stream. `import_csv(path)` reads a file that holds all columns.

On the network, each sample is 16 bytes: a big-endian unsigned 64-bit tick
followed by a big-endian double. `encode_message` and `decode_message`
convert samples to and from this form.

## Notes on behaviour

- `Generator.frequency` is used as the waveform's period, not as a frequency
  in hertz.
- The `triangular` noise type draws from the same uniform distribution as
  `uniform`. The `laplace` and `beta` noise types always add zero.

## What the package does not do

The package has no graphical interface. `ChartModel` keeps the points and the
axis ranges, but it draws nothing. Results are available as CSV files, as
`SimulationFrame` objects, or through event callbacks.

## Running the tests

```
pytest
```