from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal, TypeAlias

import numpy as np
from numpy.typing import NDArray

from coilshield.constants import (
    BIOT_SAVART_FACTOR_SI,
    ELEMENTARY_CHARGE_C,
    MIN_DISTANCE_DEFAULT,
    PROTON_MASS_KG,
)

FloatArray: TypeAlias = NDArray[np.float64]
ExclusionKind = Literal["none", "panel", "coil"]


@dataclass(frozen=True)
class Exclusion:
    """Panels left out of a field sum: nothing, one panel, or every panel of one coil."""

    kind: ExclusionKind = "none"
    index: int = -1

    @classmethod
    def none(cls) -> Exclusion:
        return cls("none", -1)

    @classmethod
    def panel(cls, i: int) -> Exclusion:
        return cls("panel", int(i))

    @classmethod
    def coil(cls, k: int) -> Exclusion:
        return cls("coil", int(k))

    def panel_range(self, panels_per_coil: int, n_panels: int) -> tuple[int, int]:
        """Half-open panel index range [lo, hi) to skip."""
        if self.kind == "none":
            return 0, 0
        if self.kind == "panel":
            if not 0 <= self.index < n_panels:
                raise IndexError(f"panel index {self.index} out of range for {n_panels} panels")
            return self.index, self.index + 1
        if self.kind == "coil":
            lo = self.index * panels_per_coil
            hi = lo + panels_per_coil
            if self.index < 0 or hi > n_panels:
                raise IndexError(f"coil index {self.index} out of range")
            return lo, hi
        raise ValueError(f"Unsupported exclusion kind: {self.kind}")


@dataclass(frozen=True)
class CoilArray:
    cross_section: FloatArray
    n_coils: int
    radius: float
    alternating: bool
    points: FloatArray
    midpoints: FloatArray
    directions: FloatArray

    @property
    def points_per_coil(self) -> int:
        return int(self.points.shape[1])

    @property
    def panels_per_coil(self) -> int:
        return self.points_per_coil - 1

    @property
    def n_panels(self) -> int:
        return int(self.midpoints.shape[0])

    def coil_of_panel(self, i: int) -> int:
        return int(i) // self.panels_per_coil

    def coil_slice(self, k: int) -> slice:
        m = self.panels_per_coil
        return slice(k * m, (k + 1) * m)


@dataclass(frozen=True)
class FieldContext:
    """Immutable field source shared by every evaluation of one run."""

    midpoints: FloatArray
    directions: FloatArray
    current: float
    panels_per_coil: int
    min_distance: float = MIN_DISTANCE_DEFAULT

    @classmethod
    def from_coil_array(
        cls,
        coil_array: CoilArray,
        current: float,
        *,
        min_distance: float = MIN_DISTANCE_DEFAULT,
    ) -> FieldContext:
        return cls(
            midpoints=coil_array.midpoints,
            directions=coil_array.directions,
            current=float(current),
            panels_per_coil=coil_array.panels_per_coil,
            min_distance=float(min_distance),
        )

    def with_current(self, current: float) -> FieldContext:
        return replace(self, current=float(current))

    @property
    def factor(self) -> float:
        return BIOT_SAVART_FACTOR_SI * self.current

    @property
    def is_null(self) -> bool:
        return self.current == 0.0

    @property
    def n_panels(self) -> int:
        return int(self.midpoints.shape[0])


@dataclass(frozen=True)
class Species:
    name: str
    mass_kg: float
    charge_c: float


PROTON = Species(name="proton", mass_kg=PROTON_MASS_KG, charge_c=ELEMENTARY_CHARGE_C)


__all__ = [
    "FloatArray",
    "ExclusionKind",
    "Exclusion",
    "CoilArray",
    "FieldContext",
    "Species",
    "PROTON",
]
