import math

import pytest

from regulatix.generator import Generator, GeneratorType


def test_sine_starts_at_zero():
    gen = Generator(kind=GeneratorType.SINE, amplitude=3.0)
    assert gen.run(0.0) == pytest.approx(0.0)


def test_sine_peaks_at_quarter_period():
    gen = Generator(kind=GeneratorType.SINE, frequency=100.0, amplitude=3.0)
    assert gen.run(25.0) == pytest.approx(3.0)


def test_sine_is_periodic():
    gen = Generator(kind=GeneratorType.SINE, frequency=40.0, amplitude=2.0)
    for t in [0.3, 7.0, 13.5]:
        assert gen.run(t + 40.0) == pytest.approx(gen.run(t), abs=1e-9)


def test_square_follows_duty_cycle():
    gen = Generator(kind=GeneratorType.SQUARE, frequency=100.0, amplitude=2.0, infill=50.0)
    assert gen.run(50.0) == 2.0
    assert gen.run(150.0) == 0.0
    assert gen.run(250.0) == 2.0


def test_square_full_infill_is_always_high():
    gen = Generator(kind=GeneratorType.SQUARE, frequency=10.0, amplitude=1.5, infill=100.0)
    assert all(gen.run(t) == 1.5 for t in [0.0, 5.0, 19.9, 33.3])


def test_square_zero_infill_is_always_low():
    gen = Generator(kind=GeneratorType.SQUARE, frequency=10.0, amplitude=1.5, infill=0.0)
    assert all(gen.run(t) == 0.0 for t in [0.0, 5.0, 19.9, 33.3])


@pytest.mark.parametrize("kind", [GeneratorType.TRIANGLE, GeneratorType.SAWTOOTH])
def test_triangle_and_sawtooth_are_bounded(kind):
    gen = Generator(kind=kind, frequency=20.0, amplitude=2.0)
    bound = 2.0 * math.pi / 2 + 1e-9
    assert all(abs(gen.run(t / 10)) <= bound for t in range(0, 500))


def test_triangle_is_odd():
    gen = Generator(kind=GeneratorType.TRIANGLE, frequency=30.0, amplitude=1.0)
    for t in [1.0, 4.5, 11.0]:
        assert gen.run(-t) == pytest.approx(-gen.run(t))


def test_single_jump_only_before_one():
    gen = Generator(kind=GeneratorType.SINGLE_JUMP, amplitude=4.0)
    assert gen.run(0.5) == 4.0
    assert gen.run(1.0) == 0.0
    assert gen.run(10.0) == 0.0


def test_amplitude_scales_output():
    unit = Generator(kind=GeneratorType.SINE, frequency=50.0, amplitude=1.0)
    scaled = Generator(kind=GeneratorType.SINE, frequency=50.0, amplitude=5.0)
    for t in [1.0, 12.0, 33.0]:
        assert scaled.run(t) == pytest.approx(5.0 * unit.run(t))


def test_zero_frequency_is_rejected_for_periodic_waves():
    gen = Generator(kind=GeneratorType.SINE, frequency=0.0)
    with pytest.raises(ValueError):
        gen.run(1.0)


def test_kind_accepts_serialized_index():
    gen = Generator(kind=4, amplitude=2.0)
    assert gen.run(0.0) == 2.0
    assert gen.run(2.0) == 0.0