from __future__ import annotations

import numpy as np

MU0_SI = 4 * np.pi * 1e-7
BIOT_SAVART_FACTOR_SI = MU0_SI / (4 * np.pi)

PROTON_MASS_KG = 1.67262e-27
ELEMENTARY_CHARGE_C = 1.6022e-19
SPEED_OF_LIGHT = 299792458.0

# reference field used only to normalise the equations of motion
B_REF_T = 1.0

MIN_DISTANCE_DEFAULT = 1e-9
SPHERE_RADIUS_DEFAULT = 50.0
INWARD_CONE_MARGIN = 1e-5
PARASITIC_EPS = 1e-7

__all__ = [
    "MU0_SI",
    "BIOT_SAVART_FACTOR_SI",
    "PROTON_MASS_KG",
    "ELEMENTARY_CHARGE_C",
    "SPEED_OF_LIGHT",
    "B_REF_T",
    "MIN_DISTANCE_DEFAULT",
    "SPHERE_RADIUS_DEFAULT",
    "INWARD_CONE_MARGIN",
    "PARASITIC_EPS",
]
