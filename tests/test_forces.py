import numpy as np
import pytest

from coilshield.forces import compute_hoop_forces, compute_panel_forces
from coilshield.geom import build_coil_array, circle_cross_section, racetrack_cross_section
from coilshield.types import FieldContext


def test_single_loop_hoop_forces_point_outward_and_cancel() -> None:
    arr = build_coil_array(circle_cross_section(1.0, 65), 1, 0.0)
    ctx = FieldContext.from_coil_array(arr, 1e4)
    F = compute_panel_forces(ctx)

    outward = np.sum(F * arr.midpoints, axis=1)
    assert np.all(outward > 0.0)

    coil_F, hoop_mp = compute_hoop_forces(F, arr.points)
    assert coil_F.shape == (1, 3)
    scale = np.max(np.linalg.norm(F, axis=1))
    np.testing.assert_allclose(coil_F[0], 0.0, atol=1e-10 * scale * F.shape[0])
    np.testing.assert_allclose(hoop_mp[0], 0.0, atol=1e-12)


def test_single_coil_input_without_coil_axis() -> None:
    arr = build_coil_array(circle_cross_section(1.0, 17), 1, 0.0)
    F = compute_panel_forces(FieldContext.from_coil_array(arr, 1.0))
    coil_F, hoop_mp = compute_hoop_forces(F, arr.points[0])
    coil_F3, hoop_mp3 = compute_hoop_forces(F, arr.points)
    np.testing.assert_allclose(coil_F, coil_F3)
    np.testing.assert_allclose(hoop_mp, hoop_mp3)


def test_self_coil_exclusion_on_single_coil_gives_zero() -> None:
    arr = build_coil_array(circle_cross_section(1.0, 17), 1, 0.0)
    F = compute_panel_forces(FieldContext.from_coil_array(arr, 1e3), exclude_self_coil=True)
    np.testing.assert_array_equal(F, 0.0)


def test_ring_of_racetracks_has_symmetric_net_forces() -> None:
    arr = build_coil_array(racetrack_cross_section(1.85, 1.5, 33), 8, 5.6)
    ctx = FieldContext.from_coil_array(arr, 4e6)
    F = compute_panel_forces(ctx)
    coil_F, hoop_mp = compute_hoop_forces(F, arr.points)

    norms = np.linalg.norm(coil_F, axis=1)
    assert norms[0] > 0.0
    np.testing.assert_allclose(norms, norms[0], rtol=1e-8)
    np.testing.assert_allclose(coil_F[:, 2], 0.0, atol=1e-8 * norms[0])

    # net force of coil k is coil 0's rotated by 2*pi*k/8
    theta = 2.0 * np.pi / 8 * 3
    c, s = np.cos(theta), np.sin(theta)
    rot = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
    np.testing.assert_allclose(coil_F[3], rot @ coil_F[0], atol=1e-8 * norms[0])
    np.testing.assert_allclose(
        np.linalg.norm(hoop_mp[:, :2], axis=1), 5.6, rtol=0.0, atol=1e-9
    )


def test_self_coil_exclusion_keeps_intercoil_forces() -> None:
    arr = build_coil_array(racetrack_cross_section(1.0, 1.5, 17), 4, 3.0)
    ctx = FieldContext.from_coil_array(arr, 1e5)
    F_all = compute_panel_forces(ctx)
    F_other = compute_panel_forces(ctx, exclude_self_coil=True)
    assert not np.allclose(F_all, F_other)
    # a closed coil exerts no net force on itself
    net_all, _ = compute_hoop_forces(F_all, arr.points)
    net_other, _ = compute_hoop_forces(F_other, arr.points)
    np.testing.assert_allclose(net_all, net_other, rtol=1e-6, atol=1e-6 * np.abs(net_all).max())


def test_panel_count_mismatch_is_rejected() -> None:
    arr = build_coil_array(circle_cross_section(1.0, 9), 4, 3.0)
    F = np.zeros((arr.n_panels - 1, 3))
    with pytest.raises(ValueError):
        compute_hoop_forces(F, arr.points)


@pytest.mark.parametrize("alternating", [False, True])
def test_symmetric_ring_net_forces_sum_to_zero(alternating: bool) -> None:
    arr = build_coil_array(
        racetrack_cross_section(1.85, 1.5, 33), 8, 5.6, alternating=alternating
    )
    F = compute_panel_forces(FieldContext.from_coil_array(arr, 4e6))
    coil_F, _ = compute_hoop_forces(F, arr.points)

    scale = np.abs(coil_F).max()
    assert scale > 0.0
    np.testing.assert_allclose(coil_F.sum(axis=0), 0.0, atol=1e-9 * scale * len(coil_F))
