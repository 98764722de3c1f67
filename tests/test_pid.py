import pytest

from regulatix.pid import PID


def test_output_is_sum_of_parts():
    pid = PID(kp=2.0, ti=3.0, td=0.5)
    for error in [1.0, -0.5, 2.0, 0.25]:
        output = pid.run(error)
        assert output == pytest.approx(
            pid.integral_part + pid.derivative_part + pid.proportional_part
        )


def test_proportional_part_scales_with_kp():
    low = PID(kp=1.0)
    high = PID(kp=4.0)
    assert high.run_proportional(0.75) == pytest.approx(4 * low.run_proportional(0.75))


def test_zero_ti_disables_integral():
    pid = PID(ti=0.0)
    for error in [1.0, 2.0, 3.0]:
        pid.run(error)
        assert pid.integral_part == 0.0


def test_zero_ti_clears_accumulated_integral():
    pid = PID(ti=1.0)
    pid.run(1.0)
    pid.ti = 0.0
    pid.run(1.0)
    pid.ti = 1.0
    pid.run_integral(0.0)
    assert pid.integral_part == 0.0


def test_constant_error_has_zero_derivative_after_first_step():
    pid = PID(td=3.0)
    pid.run(2.0)
    pid.run(2.0)
    assert pid.derivative_part == 0.0


def test_zero_td_disables_derivative():
    pid = PID(td=0.0)
    for error in [1.0, -3.0, 5.0]:
        pid.run(error)
        assert pid.derivative_part == 0.0


@pytest.mark.parametrize("outside", [True, False])
def test_integral_modes_agree_with_constant_ti(outside):
    reference = PID(ti=2.0, outside_sum=True)
    pid = PID(ti=2.0, outside_sum=outside)
    for error in [1.0, 0.5, -0.25, 2.0]:
        assert pid.run_integral(error) == pytest.approx(reference.run_integral(error))


def test_modes_differ_when_ti_changes():
    outside = PID(ti=1.0, outside_sum=True)
    inside = PID(ti=1.0, outside_sum=False)
    for pid in (outside, inside):
        pid.run_integral(1.0)
        pid.run_integral(1.0)
        pid.ti = 2.0
        pid.run_integral(1.0)
    assert outside.integral_part == pytest.approx(1.5)
    assert inside.integral_part == pytest.approx(2.5)


def test_reset_restores_fresh_behaviour():
    errors = [1.0, -2.0, 0.5, 3.0]
    pid = PID(kp=1.5, ti=2.0, td=0.3)
    first = [pid.run(e) for e in errors]
    pid.reset()
    assert (pid.integral_part, pid.derivative_part, pid.proportional_part) == (0.0, 0.0, 0.0)
    second = [pid.run(e) for e in errors]
    assert second == first


def test_outside_sum_integral_is_linear():
    one = PID(ti=4.0)
    two = PID(ti=4.0)
    for error in [1.0, 2.0, -0.5]:
        one.run_integral(error)
        two.run_integral(3 * error)
    assert two.integral_part == pytest.approx(3 * one.integral_part)