import numpy as np
import pytest

from coilshield.errors import ConfigurationError, IntegrationFailure
from coilshield.geom import build_coil_array, racetrack_cross_section
from coilshield.solvers.types import IvpOptions
from coilshield.trajectory import (
    InitialState,
    classify_hit,
    larmor_radius,
    momentum_from_energy,
    phase_span,
    run_trajectory,
    segment_intersects_sphere,
    speed_from_energy,
)
from coilshield.types import FieldContext


def _ctx(current: float) -> FieldContext:
    arr = build_coil_array(racetrack_cross_section(1.85, 1.5, 17), 4, 5.6)
    return FieldContext.from_coil_array(arr, current)


def test_segment_sphere_cases() -> None:
    assert segment_intersects_sphere([-2.0, 0.0, 0.0], [2.0, 0.0, 0.0], 1.0)
    assert not segment_intersects_sphere([2.0, 2.0, 0.0], [2.0, -2.0, 0.0], 1.0)
    # tangent counts
    assert segment_intersects_sphere([1.0, 1.0, 0.0], [1.0, -1.0, 0.0], 1.0)
    # wholly inside
    assert segment_intersects_sphere([0.1, 0.0, 0.0], [0.2, 0.0, 0.0], 1.0)
    # pointing away, closest point is the start
    assert not segment_intersects_sphere([3.0, 0.0, 0.0], [5.0, 0.0, 0.0], 1.0)
    # degenerate segment
    assert segment_intersects_sphere([0.5, 0.0, 0.0], [0.5, 0.0, 0.0], 1.0)


def test_classify_hit_catches_dip_between_samples() -> None:
    coarse = np.array([[-10.0, 0.5, 0.0], [10.0, 0.5, 0.0]])
    assert classify_hit(coarse, 1.0)
    miss = np.array([[-10.0, 2.0, 0.0], [0.0, 2.0, 0.0], [10.0, 2.0, 0.0]])
    assert not classify_hit(miss, 1.0)


def test_classify_hit_uses_nearer_neighbour() -> None:
    pts = np.array(
        [
            [1.0, -3.2, 0.0],
            [-1.0, 1.0, 0.0],
            [3.0, 1.0, 0.0],
            [10.0, 10.0, 0.0],
        ]
    )
    # segment 0-1 passes within 0.5 of the origin, but sample 2 is the nearer neighbour
    assert not classify_hit(pts, 0.9)
    assert classify_hit(pts, 1.05)


def test_classify_hit_end_samples() -> None:
    ends_at_origin = np.array([[5.0, 5.0, 0.0], [2.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
    assert classify_hit(ends_at_origin, 0.1)
    starts_near = np.array([[0.5, 0.0, 0.0], [5.0, 0.0, 0.0]])
    assert classify_hit(starts_near, 1.0)
    with pytest.raises(ValueError):
        classify_hit(np.zeros((0, 3)), 1.0)


def test_kinematics_helpers() -> None:
    ke = 1e8
    v = float(speed_from_energy(ke))
    p = float(momentum_from_energy(ke))
    beta = v / 299_792_458.0
    gamma = 1.0 / np.sqrt(1.0 - beta * beta)
    np.testing.assert_allclose(p, gamma * beta, rtol=1e-10)
    assert 0.4 < beta < 0.45
    assert 3.0 < larmor_radius() < 3.2


@pytest.mark.parametrize("relativistic", [True, False])
def test_straight_line_without_field(relativistic: bool) -> None:
    ctx = _ctx(0.0)
    initial = InitialState(
        position=np.array([-50.0, 0.0, 0.0]),
        direction=np.array([2.0, 0.0, 0.0]),
        kinetic_energy_ev=1e8,
    )
    opts = IvpOptions(max_step=phase_span(1e8, 1.5)[1])
    traj = run_trajectory(
        initial, ctx, relativistic=relativistic, span=phase_span(1e8, 100.0), options=opts
    )
    np.testing.assert_allclose(traj.positions[0], [-50.0, 0.0, 0.0], atol=1e-9)
    np.testing.assert_allclose(traj.positions[-1], [50.0, 0.0, 0.0], atol=1e-6)
    assert traj.phase.shape[0] == traj.positions.shape[0]
    assert classify_hit(traj, 1.5)


def test_field_deflects_particle() -> None:
    initial = InitialState(
        position=np.array([-50.0, 0.3, 0.2]),
        direction=np.array([1.0, 0.0, 0.0]),
        kinetic_energy_ev=1e7,
    )
    span = phase_span(1e7, 100.0)
    opts = IvpOptions(max_step=phase_span(1e7, 0.5)[1])
    on = run_trajectory(initial, _ctx(4e6), span=span, options=opts)
    off = run_trajectory(initial, _ctx(0.0), span=span, options=opts)
    assert np.linalg.norm(on.positions[-1] - off.positions[-1]) > 1.0


def test_budget_exhaustion_raises_integration_failure() -> None:
    initial = InitialState(
        position=np.array([-50.0, 0.0, 0.0]),
        direction=np.array([1.0, 0.0, 0.0]),
        kinetic_energy_ev=1e8,
    )
    opts = IvpOptions(max_nfev=5)
    with pytest.raises(IntegrationFailure) as info:
        run_trajectory(initial, _ctx(4e6), span=phase_span(1e8, 100.0), options=opts)
    assert info.value.nfev > 5
    assert isinstance(info.value, RuntimeError)


def test_invalid_initial_state_is_rejected() -> None:
    bad = InitialState(
        position=np.array([-50.0, 0.0, 0.0]),
        direction=np.zeros(3),
        kinetic_energy_ev=1e8,
    )
    with pytest.raises(ConfigurationError):
        run_trajectory(bad, _ctx(0.0), span=(0.0, 1.0))
    with pytest.raises(ConfigurationError):
        phase_span(0.0, 100.0)
