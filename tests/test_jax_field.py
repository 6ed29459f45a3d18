import numpy as np
import pytest

from coilshield.field import evaluate_field_points
from coilshield.geom import build_coil_array, racetrack_cross_section
from coilshield.types import FieldContext


def _ctx() -> FieldContext:
    arr = build_coil_array(racetrack_cross_section(1.85, 1.5, 17), 4, 5.6)
    return FieldContext.from_coil_array(arr, 4e6)


def test_jax_field_matches_numba() -> None:
    pytest.importorskip("jax")
    from coilshield.autodiff import evaluate_field_points_jax

    ctx = _ctx()
    rng = np.random.default_rng(0)
    pts = rng.uniform(-8.0, 8.0, size=(64, 3))
    ref = evaluate_field_points(pts, ctx)
    out = evaluate_field_points_jax(pts, ctx)
    np.testing.assert_allclose(out, ref, rtol=1e-10, atol=1e-14)


def test_jax_jacobian_matches_finite_difference_and_is_divergence_free() -> None:
    pytest.importorskip("jax")
    from coilshield.autodiff import field_jacobian_jax

    ctx = _ctx()
    x = np.array([1.0, -0.5, 0.7])
    J = field_jacobian_jax(x, ctx)
    assert J.shape == (3, 3)

    h = 1e-5
    J_fd = np.zeros((3, 3))
    for j in range(3):
        e = np.zeros(3)
        e[j] = h
        Bp = evaluate_field_points(x + e, ctx)[0]
        Bm = evaluate_field_points(x - e, ctx)[0]
        J_fd[:, j] = (Bp - Bm) / (2.0 * h)
    scale = np.max(np.abs(J))
    np.testing.assert_allclose(J, J_fd, rtol=1e-5, atol=1e-6 * scale)
    assert abs(np.trace(J)) < 1e-9 * scale
