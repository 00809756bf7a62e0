"""
Coordinate conversion between standard and reduced twisted Edwards forms.

The reduced form (a = -1) used by circuit-friendly backends is related to the
standard BabyJubJub form (a = 168700) by scaling x with -f, where
f = sqrt(-168700) mod p:

    x_rte = x_te * (-f)        x_te = x_rte * (-f)^-1        y unchanged

Ciphertexts and encryption keys are serialized in reduced coordinates
regardless of which BabyJubJub backend produced them.
"""

from typing import Tuple

from .babyjubjub import FIELD_MODULUS
from .curve import Point

SCALING_FACTOR = 6360561867910373094066688120553762416144456282423235903351243436111059670888

NEG_F = (-SCALING_FACTOR) % FIELD_MODULUS
NEG_F_INV = pow(NEG_F, -1, FIELD_MODULUS)


def from_te_to_rte(x: int, y: int) -> Tuple[int, int]:
    return x * NEG_F % FIELD_MODULUS, y


def from_rte_to_te(x: int, y: int) -> Tuple[int, int]:
    return x * NEG_F_INV % FIELD_MODULUS, y


def to_rte(point: Point) -> Tuple[int, int]:
    """Coordinates of point in reduced twisted Edwards form (non-Edwards curves pass through)"""
    x, y = point.point()
    if getattr(point, "coordinates", None) == "te":
        return from_te_to_rte(x, y)
    return x, y


def from_rte(point: Point, x: int, y: int) -> Point:
    """Build a point of the same backend as point from reduced coordinates"""
    if getattr(point, "coordinates", None) == "te":
        x, y = from_rte_to_te(x, y)
    return point.set_point(x, y)
