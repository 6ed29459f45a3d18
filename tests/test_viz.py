from pathlib import Path

import numpy as np
import pytest

from coilshield.geom import build_coil_array, racetrack_cross_section
from coilshield.types import CoilArray, FieldContext
from coilshield.viz2d import coil_footprint, compute_field_map, plot_field_map
from coilshield.viz3d import build_shield_figure, compute_scene_ranges, sphere_wireframe


def _array() -> CoilArray:
    return build_coil_array(racetrack_cross_section(1.85, 1.5, 17), 4, 5.6)


def test_field_map_shape_and_mirror_symmetry() -> None:
    arr = _array()
    ctx = FieldContext.from_coil_array(arr, 4e6)
    fmap = compute_field_map(ctx, plane="xz", extent=9.0, n=21)
    assert fmap.B.shape == (21, 21, 3)
    assert fmap.Bmag.shape == (21, 21)
    assert np.all(np.isfinite(fmap.B))
    # |B| is symmetric under z -> -z
    np.testing.assert_allclose(fmap.Bmag, fmap.Bmag[::-1, :], rtol=1e-9, atol=1e-12)


def test_field_map_rejects_bad_arguments() -> None:
    ctx = FieldContext.from_coil_array(_array(), 1.0)
    with pytest.raises(ValueError):
        compute_field_map(ctx, plane="ab", n=5)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        compute_field_map(ctx, n=1)
    with pytest.raises(ValueError):
        compute_field_map(ctx, n=5, backend="cuda")  # type: ignore[arg-type]


def test_coil_footprint_in_coil_plane() -> None:
    arr = _array()
    fp = coil_footprint(arr, "xz", 0.0, tol=1e-9)
    # coils 0 and 2 lie in the y = 0 plane
    assert fp.shape == (2 * arr.points_per_coil, 2)


def test_plot_field_map_writes_png(tmp_path: Path) -> None:
    pytest.importorskip("matplotlib")
    import matplotlib

    matplotlib.use("Agg")
    arr = _array()
    fmap = compute_field_map(FieldContext.from_coil_array(arr, 4e6), extent=9.0, n=21)
    out = tmp_path / "map.png"
    plot_field_map(fmap, coil_array=arr, path=out)
    assert out.is_file()


def test_scene_ranges() -> None:
    assert compute_scene_ranges([]) == ((-1.0, 1.0), (-1.0, 1.0), (-1.0, 1.0))
    pts = np.array([[0.0, 0.0, 0.0], [10.0, 2.0, 0.0]])
    (x0, x1), (y0, y1), (z0, z1) = compute_scene_ranges([pts], margin=0.1)
    np.testing.assert_allclose([x0, x1], [-1.0, 11.0])
    np.testing.assert_allclose([y0, y1], [-0.2, 2.2])
    np.testing.assert_allclose([z0, z1], [-0.01, 0.01])


def test_sphere_wireframe_on_sphere() -> None:
    for curve in sphere_wireframe(2.0):
        np.testing.assert_allclose(np.linalg.norm(curve, axis=1), 2.0, rtol=1e-12)


def test_build_shield_figure_colors_by_outcome() -> None:
    pytest.importorskip("plotly.graph_objects")
    arr = _array()
    hit_path = np.array([[-50.0, 0.0, 0.0], [0.0, 0.0, 0.0], [50.0, 0.0, 0.0]])
    miss_path = np.array([[-50.0, 9.0, 0.0], [50.0, 9.0, 0.0]])
    fig = build_shield_figure(
        arr, [hit_path, miss_path, None], [True, False, False], sphere_radius=1.5, r_plot=20.0
    )
    names = [trace.name for trace in fig.data]
    assert names == ["coils", "hit", "miss", "protected volume"]
    assert fig.data[1].line.color == "red"
    assert fig.data[2].line.color == "green"
    assert list(fig.layout.scene.xaxis.range) == [-20.0, 20.0]

    with pytest.raises(ValueError):
        build_shield_figure(arr, [hit_path], [True, False])
