from pathlib import Path

import numpy as np
import pytest

from coilshield.errors import ConfigurationError
from coilshield.io import load_cross_section


def test_csv_with_header_is_closed(tmp_path: Path) -> None:
    path = tmp_path / "section.csv"
    path.write_text("x,z\n1.0,0.0\n0.0,1.0\n-1.0,0.0\n0.0,-1.0\n", encoding="utf-8")
    geom = load_cross_section(path)
    assert geom.shape == (5, 2)
    np.testing.assert_array_equal(geom[0], geom[-1])
    np.testing.assert_array_equal(geom[1], [0.0, 1.0])


def test_whitespace_table_extra_columns(tmp_path: Path) -> None:
    path = tmp_path / "section.txt"
    path.write_text("1 0 9\n0 1 9\n-1 0 9\n1 0 9\n", encoding="utf-8")
    geom = load_cross_section(path)
    assert geom.shape == (4, 2)
    np.testing.assert_array_equal(geom[:, 0], [1.0, 0.0, -1.0, 1.0])


def test_single_column_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "bad.txt"
    path.write_text("1\n2\n3\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_cross_section(path)


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_cross_section(tmp_path / "nope.csv")
