import numpy as np
import pytest

from coilshield.constants import MU0_SI
from coilshield.errors import ConfigurationError, NumericSingularityError
from coilshield.field import evaluate_field, evaluate_field_points
from coilshield.geom import build_coil_array, circle_cross_section, racetrack_cross_section
from coilshield.types import Exclusion, FieldContext


def _loop_ctx(a: float, n_panels: int, current: float) -> FieldContext:
    # single loop in the xz plane centred on the origin, axis along y
    arr = build_coil_array(circle_cross_section(a, n_panels + 1), 1, 0.0)
    return FieldContext.from_coil_array(arr, current)


def _loop_axis_field(a: float, y: float, current: float) -> float:
    return MU0_SI * current * a * a / (2.0 * (a * a + y * y) ** 1.5)


def test_circular_loop_matches_on_axis_formula() -> None:
    a = 1.0
    current = 1e3
    ctx = _loop_ctx(a, 256, current)
    for y in (0.0, 0.5, 2.0):
        B = evaluate_field([0.0, y, 0.0], ctx)
        expected = _loop_axis_field(a, y, current)
        assert abs(abs(B[1]) - expected) / expected < 1e-3
        np.testing.assert_allclose(B[[0, 2]], 0.0, atol=1e-9 * expected)


def test_circular_loop_error_shrinks_with_discretization() -> None:
    a = 1.0
    expected = _loop_axis_field(a, 0.0, 1.0)
    errs = []
    for n in (16, 64, 256):
        B = evaluate_field([0.0, 0.0, 0.0], _loop_ctx(a, n, 1.0))
        errs.append(abs(abs(B[1]) - expected) / expected)
    assert errs[0] > errs[1] > errs[2]


def test_field_scales_linearly_with_current() -> None:
    arr = build_coil_array(racetrack_cross_section(1.85, 1.5, 33), 8, 5.6)
    ctx = FieldContext.from_coil_array(arr, 1e6)
    x = np.array([1.0, -2.0, 0.5])
    B1 = evaluate_field(x, ctx)
    B4 = evaluate_field(x, ctx.with_current(4e6))
    np.testing.assert_allclose(B4, 4.0 * B1, rtol=1e-12)
    np.testing.assert_allclose(evaluate_field(x, ctx.with_current(0.0)), 0.0)


def test_field_at_panel_midpoint_raises() -> None:
    ctx = _loop_ctx(1.0, 32, 1.0)
    with pytest.raises(NumericSingularityError):
        evaluate_field(ctx.midpoints[5], ctx)
    with pytest.raises(ArithmeticError):
        evaluate_field(ctx.midpoints[5], ctx)


def test_excluding_the_panel_makes_midpoint_finite() -> None:
    ctx = _loop_ctx(1.0, 32, 1.0)
    B = evaluate_field(ctx.midpoints[5], ctx, Exclusion.panel(5))
    assert np.all(np.isfinite(B))
    assert np.linalg.norm(B) > 0.0


def test_coil_exclusion_removes_one_coil() -> None:
    arr = build_coil_array(circle_cross_section(1.0, 17), 4, 3.0)
    ctx = FieldContext.from_coil_array(arr, 1e5)
    x = np.array([0.3, 0.2, -0.4])

    full = evaluate_field(x, ctx)
    without = evaluate_field(x, ctx, Exclusion.coil(2))
    sl = arr.coil_slice(2)
    only = FieldContext(
        midpoints=np.ascontiguousarray(arr.midpoints[sl]),
        directions=np.ascontiguousarray(arr.directions[sl]),
        current=ctx.current,
        panels_per_coil=arr.panels_per_coil,
    )
    B_only = evaluate_field(x, only)
    np.testing.assert_allclose(
        without + B_only, full, rtol=1e-10, atol=1e-12 * np.linalg.norm(B_only)
    )


def test_exclusion_index_out_of_range() -> None:
    ctx = _loop_ctx(1.0, 8, 1.0)
    with pytest.raises(IndexError):
        evaluate_field([0.0, 0.0, 0.0], ctx, Exclusion.panel(8))
    with pytest.raises(IndexError):
        evaluate_field([0.0, 0.0, 0.0], ctx, Exclusion.coil(1))


def test_points_variant_matches_single_point_and_clamps() -> None:
    arr = build_coil_array(racetrack_cross_section(1.0, 1.5, 17), 4, 3.0)
    ctx = FieldContext.from_coil_array(arr, 1e5)
    pts = np.array([[0.0, 0.0, 0.0], [1.0, 2.0, 0.5], [-2.0, 0.3, 1.0]])
    B = evaluate_field_points(pts, ctx)
    for p, b in zip(pts, B, strict=True):
        np.testing.assert_allclose(b, evaluate_field(p, ctx), rtol=1e-12)

    B_mid = evaluate_field_points(arr.midpoints[:1], ctx)
    assert np.all(np.isfinite(B_mid))


def test_invalid_min_distance_is_rejected() -> None:
    arr = build_coil_array(circle_cross_section(1.0, 9), 4, 3.0)
    ctx = FieldContext.from_coil_array(arr, 1.0, min_distance=0.0)
    with pytest.raises(ConfigurationError):
        evaluate_field([0.0, 0.0, 0.0], ctx)
