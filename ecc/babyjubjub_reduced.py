"""
BabyJubJub - reduced twisted Edwards form
=========================================
-x^2 + y^2 = 1 + d'*x^2*y^2, the form used by circuit backends. Curve
parameters and the generator are derived from the standard form through the
documented x scaling in ``ecc.format``, so both BabyJubJub backends describe
the same group.

Arithmetic runs in extended coordinates (X:Y:T:Z). ``point()`` exposes the
reduced coordinates while ``marshal()`` compresses the standard-form point,
which keeps the byte encoding identical across backends.
"""

import logging
from typing import Tuple

from .babyjubjub import (
    FIELD_MODULUS, A, D, SUBGROUP_ORDER, B8, compress, decompress,
)
from .curve import Point, InvalidPointError
from .format import NEG_F, from_te_to_rte, from_rte_to_te

logger = logging.getLogger(__name__)

# ============================================================================
# CURVE CONSTANTS
# ============================================================================

_NEG_F_SQUARED_INV = pow(NEG_F * NEG_F % FIELD_MODULUS, -1, FIELD_MODULUS)

RTE_A = A * _NEG_F_SQUARED_INV % FIELD_MODULUS
RTE_D = D * _NEG_F_SQUARED_INV % FIELD_MODULUS
GENERATOR = from_te_to_rte(*B8)


def is_on_curve(x: int, y: int) -> bool:
    p = FIELD_MODULUS
    x2, y2 = x * x % p, y * y % p
    return (RTE_A * x2 + y2) % p == (1 + RTE_D * x2 % p * y2) % p


# ============================================================================
# EXTENDED ARITHMETIC
# ============================================================================


def _extended(x: int, y: int):
    return x, y, x * y % FIELD_MODULUS, 1


def _extended_add(p1, p2):
    p = FIELD_MODULUS
    x1, y1, t1, z1 = p1
    x2, y2, t2, z2 = p2
    a = x1 * x2 % p
    b = y1 * y2 % p
    c = t1 * RTE_D % p * t2 % p
    d = z1 * z2 % p
    e = ((x1 + y1) * (x2 + y2) - a - b) % p
    f = (d - c) % p
    g = (d + c) % p
    h = (b - RTE_A * a) % p
    return e * f % p, g * h % p, e * h % p, f * g % p


def _to_affine(pt) -> Tuple[int, int]:
    x, y, _, z = pt
    z_inv = pow(z, -1, FIELD_MODULUS)
    return x * z_inv % FIELD_MODULUS, y * z_inv % FIELD_MODULUS


def _scalar_mult(x: int, y: int, k: int) -> Tuple[int, int]:
    result = (0, 1, 0, 1)
    addend = _extended(x, y)
    while k:
        if k & 1:
            result = _extended_add(result, addend)
        addend = _extended_add(addend, addend)
        k >>= 1
    return _to_affine(result)


# ============================================================================
# POINT
# ============================================================================


class BJJReduced(Point):
    """BabyJubJub point in reduced twisted Edwards affine coordinates"""

    curve_type = "bjj_gnark"
    coordinates = "rte"

    def __init__(self, x: int = 0, y: int = 1):
        super().__init__()
        self.x = x
        self.y = y

    def new(self) -> 'BJJReduced':
        return BJJReduced()

    def order(self) -> int:
        return SUBGROUP_ORDER

    def add(self, a: 'BJJReduced', b: 'BJJReduced') -> 'BJJReduced':
        self._check(a)
        self._check(b)
        self.x, self.y = _to_affine(
            _extended_add(_extended(a.x, a.y), _extended(b.x, b.y)))
        return self

    def scalar_mult(self, a: 'BJJReduced', k: int) -> 'BJJReduced':
        self._check(a)
        self.x, self.y = _scalar_mult(a.x, a.y, k % SUBGROUP_ORDER)
        return self

    def neg(self, a: 'BJJReduced') -> 'BJJReduced':
        self._check(a)
        self.x, self.y = (-a.x) % FIELD_MODULUS, a.y
        return self

    def set_zero(self) -> 'BJJReduced':
        self.x, self.y = 0, 1
        return self

    def set(self, a: 'BJJReduced') -> 'BJJReduced':
        self._check(a)
        self.x, self.y = a.x, a.y
        return self

    def set_generator(self) -> 'BJJReduced':
        self.x, self.y = GENERATOR
        return self

    def equal(self, a: 'BJJReduced') -> bool:
        self._check(a)
        return self.x == a.x and self.y == a.y

    def is_zero(self) -> bool:
        return self.x == 0 and self.y == 1

    def marshal(self) -> bytes:
        return compress(*from_rte_to_te(self.x, self.y))

    def unmarshal(self, data: bytes) -> 'BJJReduced':
        point = BJJReduced(*from_te_to_rte(*decompress(bytes(data))))
        if not point.in_subgroup():
            raise InvalidPointError("point is not in the prime-order subgroup")
        return self.set(point)

    def in_subgroup(self) -> bool:
        return _scalar_mult(self.x, self.y, SUBGROUP_ORDER) == (0, 1)

    def point(self) -> Tuple[int, int]:
        return self.x, self.y

    def set_point(self, x: int, y: int) -> 'BJJReduced':
        x, y = x % FIELD_MODULUS, y % FIELD_MODULUS
        if not is_on_curve(x, y):
            raise InvalidPointError(
                f"point ({x}, {y}) is not on reduced BabyJubJub")
        return BJJReduced(x, y)

    def __str__(self) -> str:
        # standard-form coordinates, matching the other BabyJubJub backend
        x, y = from_rte_to_te(self.x, self.y)
        return f"{x},{y}"
