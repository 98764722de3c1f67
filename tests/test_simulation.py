import struct
import threading
import time

import pytest

from regulatix.arx import ARX, NoiseType
from regulatix.connection import ConnectionRole
from regulatix.generator import GeneratorType
from regulatix.simulation import ChartPosition, Simulation, SimulationFrame


def _quiet_simulation() -> Simulation:
    return Simulation(arx=ARX(noise=0))


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_simulate_local_records_frame():
    sim = _quiet_simulation()
    frame = sim.simulate_local()
    assert sim.frames == [frame]
    assert frame.tick == 1
    assert sim.tick == 1
    assert sim.current_time == pytest.approx(sim.interval / 1000)
    assert frame.generator_output == pytest.approx(sim.generator.run(sim.current_time))
    assert frame.error == pytest.approx(frame.generator_output)
    assert frame.pid_output == pytest.approx(frame.p + frame.i + frame.d)


def test_error_uses_previous_plant_output():
    sim = _quiet_simulation()
    sim.generator.kind = GeneratorType.SQUARE
    first = sim.simulate_local()
    second = sim.simulate_local()
    assert second.error == pytest.approx(second.generator_output - first.arx_output)
    assert [f.tick for f in sim.frames] == [1, 2]


def test_step_runs_locally_when_unconnected():
    sim = _quiet_simulation()
    sim.step()
    sim.step()
    assert sim.connection.is_connected is False
    assert len(sim.frames) == 2


def test_draw_emits_series_and_update():
    sim = _quiet_simulation()
    added = []
    updates = []
    sim.on("add_series", lambda name, y, pos: added.append((name, pos)))
    sim.on("update_chart", lambda: updates.append(True))
    sim.simulate_local()
    assert added == [
        ("I", ChartPosition.TOP),
        ("D", ChartPosition.TOP),
        ("P", ChartPosition.TOP),
        ("PID", ChartPosition.TOP),
        ("Error", ChartPosition.MIDDLE),
        ("Noise", ChartPosition.MIDDLE),
        ("ARX", ChartPosition.BOTTOM),
        ("Generator", ChartPosition.BOTTOM),
    ]
    assert updates == [True]


def test_unknown_event_rejected():
    sim = _quiet_simulation()
    with pytest.raises(ValueError):
        sim.on("no_such_event", lambda: None)


def test_reset_clears_state():
    sim = _quiet_simulation()
    events = []
    sim.on("reset_chart", lambda: events.append("reset"))
    sim.on("simulation_stop", lambda: events.append("stop"))
    sim.simulate_local()
    sim.simulate_local()
    sim.reset()
    assert sim.frames == []
    assert sim.tick == 0
    assert sim.current_time == 0
    assert sim.pid.integral_part == 0
    assert events == ["stop", "reset"]


def test_set_outside_sum_propagates_to_pid():
    sim = _quiet_simulation()
    sim.set_outside_sum(False)
    assert sim.outside_sum is False
    assert sim.pid.outside_sum is False
    sim.set_outside_sum(True)
    assert sim.pid.outside_sum is True


def test_start_and_stop_run_timer():
    sim = _quiet_simulation()
    sim.interval = 30
    events = []
    sim.on("simulation_start", lambda: events.append("start"))
    sim.on("simulation_stop", lambda: events.append("stop"))
    sim.start()
    try:
        assert sim.is_running is True
        assert _wait_for(lambda: len(sim.frames) >= 2)
    finally:
        sim.stop()
    assert sim.is_running is False
    assert events == ["start", "stop"]
    ticks = [frame.tick for frame in sim.frames]
    assert ticks == list(range(1, len(ticks) + 1))


def test_serialize_default_layout():
    sim = _quiet_simulation()
    data = sim.serialize()
    assert len(data) == 72
    assert data[:4] == sim.interval.to_bytes(4, "little")


def test_serialize_round_trip():
    sim = _quiet_simulation()
    sim.interval = 200
    sim.duration = 7.5
    sim.pid.kp = 2.5
    sim.pid.ti = 0.5
    sim.pid.td = 0.25
    sim.generator.amplitude = 3.0
    sim.generator.frequency = 50.0
    sim.generator.kind = GeneratorType.SQUARE
    sim.arx.a = [0.5, -0.25]
    sim.arx.b = [1.0, 0.5]
    sim.arx.noise = 0.125
    sim.arx.noise_type = NoiseType.UNIFORM
    sim.arx.delay = 3

    other = _quiet_simulation()
    other.deserialize(sim.serialize())

    assert other.interval == sim.interval
    assert other.duration == sim.duration
    assert (other.pid.kp, other.pid.ti, other.pid.td) == (
        sim.pid.kp,
        sim.pid.ti,
        sim.pid.td,
    )
    assert other.generator.amplitude == sim.generator.amplitude
    assert other.generator.frequency == sim.generator.frequency
    assert other.generator.kind is GeneratorType.SQUARE
    assert other.arx.a == sim.arx.a
    assert other.arx.b == sim.arx.b
    assert other.arx.noise == sim.arx.noise
    assert other.arx.noise_type is NoiseType.UNIFORM
    assert other.arx.delay == sim.arx.delay


def test_deserialize_truncated_raises():
    sim = _quiet_simulation()
    data = sim.serialize()
    with pytest.raises(ValueError):
        _quiet_simulation().deserialize(data[:-1])
    with pytest.raises(ValueError):
        _quiet_simulation().deserialize(data[:10])


def test_deserialize_invalid_generator_type_raises():
    sim = _quiet_simulation()
    data = bytearray(sim.serialize())
    data[28:32] = struct.pack("<i", 99)
    target = _quiet_simulation()
    with pytest.raises(ValueError):
        target.deserialize(bytes(data))
    assert target.generator.kind is GeneratorType.SINE


def test_received_online_without_role_does_nothing():
    sim = _quiet_simulation()
    sim.received_online()
    assert sim.frames == []
    assert sim.connection.role is ConnectionRole.NONE


def test_frame_defaults():
    frame = SimulationFrame(tick=3)
    assert frame.tick == 3
    assert frame.pid_output == 0.0
    assert frame.arx_output == 0.0


def test_online_exchange_between_controller_and_plant():
    controller = _quiet_simulation()
    plant = _quiet_simulation()
    peer_joined = threading.Event()
    controller.connection.on_connected = lambda address, port: peer_joined.set()

    controller.connection.listen(0)
    try:
        port = controller.connection.local_port
        plant.connection.connect_to("127.0.0.1", port)
        assert peer_joined.wait(5)
        assert controller.connection.role is ConnectionRole.SERVER
        assert plant.connection.role is ConnectionRole.CLIENT

        assert controller.simulate_online() is True
        assert controller.tick == 1
        assert _wait_for(lambda: len(controller.frames) == 1)

        assert len(plant.frames) == 1
        plant_frame = plant.frames[0]
        controller_frame = controller.frames[0]
        assert plant_frame.tick == 0
        assert controller_frame.tick == 0
        assert plant_frame.pid_output == controller_frame.pid_output
        assert controller_frame.arx_output == plant_frame.arx_output
        assert plant.current_time == pytest.approx(plant.interval / 1000)
    finally:
        plant.connection.disconnect()
        controller.connection.disconnect()
    assert plant.connection.is_connected is False