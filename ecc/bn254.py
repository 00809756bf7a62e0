"""
BN254 G1
========
Short Weierstrass curve y^2 = x^3 + 3 over the BN254 base field, generator
(1, 2). The point at infinity is carried as affine (0, 0).
"""

import logging
from typing import Tuple

from .curve import Point, InvalidPointError

logger = logging.getLogger(__name__)

# ============================================================================
# CURVE CONSTANTS
# ============================================================================

FIELD_MODULUS = 21888242871839275222246405745257275088696311157297823662689037894645226208583
CURVE_ORDER = 21888242871839275222246405745257275088548364400416034343698204186575808495617
B = 3
GENERATOR = (1, 2)

COORDINATE_SIZE = 32
MARSHAL_SIZE = 2 * COORDINATE_SIZE

_INFINITY = (0, 1, 0)


def is_on_curve(x: int, y: int) -> bool:
    if x == 0 and y == 0:
        return True
    p = FIELD_MODULUS
    return (y * y - x * x * x - B) % p == 0


# ============================================================================
# JACOBIAN ARITHMETIC
# ============================================================================


def _jacobian_double(pt):
    p = FIELD_MODULUS
    x, y, z = pt
    if z == 0 or y == 0:
        return _INFINITY
    y2 = y * y % p
    s = 4 * x * y2 % p
    m = 3 * x * x % p
    x3 = (m * m - 2 * s) % p
    y3 = (m * (s - x3) - 8 * y2 * y2) % p
    z3 = 2 * y * z % p
    return x3, y3, z3


def _jacobian_add(p1, p2):
    if p1[2] == 0:
        return p2
    if p2[2] == 0:
        return p1
    p = FIELD_MODULUS
    x1, y1, z1 = p1
    x2, y2, z2 = p2
    z1z1 = z1 * z1 % p
    z2z2 = z2 * z2 % p
    u1 = x1 * z2z2 % p
    u2 = x2 * z1z1 % p
    s1 = y1 * z2 % p * z2z2 % p
    s2 = y2 * z1 % p * z1z1 % p
    if u1 == u2:
        if s1 != s2:
            return _INFINITY
        return _jacobian_double(p1)
    h = (u2 - u1) % p
    r = (s2 - s1) % p
    h2 = h * h % p
    h3 = h * h2 % p
    u1h2 = u1 * h2 % p
    x3 = (r * r - h3 - 2 * u1h2) % p
    y3 = (r * (u1h2 - x3) - s1 * h3) % p
    z3 = h * z1 % p * z2 % p
    return x3, y3, z3


def _to_jacobian(x: int, y: int):
    if x == 0 and y == 0:
        return _INFINITY
    return x, y, 1


def _to_affine(pt) -> Tuple[int, int]:
    x, y, z = pt
    if z == 0:
        return 0, 0
    p = FIELD_MODULUS
    z_inv = pow(z, -1, p)
    z_inv2 = z_inv * z_inv % p
    return x * z_inv2 % p, y * z_inv2 % p * z_inv % p


def _scalar_mult(x: int, y: int, k: int) -> Tuple[int, int]:
    result = _INFINITY
    base = _to_jacobian(x, y)
    for bit in bin(k)[2:]:
        result = _jacobian_double(result)
        if bit == "1":
            result = _jacobian_add(result, base)
    return _to_affine(result)


# ============================================================================
# POINT
# ============================================================================


class BN254Point(Point):
    """BN254 G1 point in affine coordinates"""

    curve_type = "bn254"
    coordinates = "weierstrass"

    def __init__(self, x: int = 0, y: int = 0):
        super().__init__()
        self.x = x
        self.y = y

    def new(self) -> 'BN254Point':
        return BN254Point()

    def order(self) -> int:
        return CURVE_ORDER

    def add(self, a: 'BN254Point', b: 'BN254Point') -> 'BN254Point':
        self._check(a)
        self._check(b)
        self.x, self.y = _to_affine(
            _jacobian_add(_to_jacobian(a.x, a.y), _to_jacobian(b.x, b.y)))
        return self

    def scalar_mult(self, a: 'BN254Point', k: int) -> 'BN254Point':
        self._check(a)
        self.x, self.y = _scalar_mult(a.x, a.y, k % CURVE_ORDER)
        return self

    def neg(self, a: 'BN254Point') -> 'BN254Point':
        self._check(a)
        if a.is_zero():
            return self.set_zero()
        self.x, self.y = a.x, (-a.y) % FIELD_MODULUS
        return self

    def set_zero(self) -> 'BN254Point':
        self.x, self.y = 0, 0
        return self

    def set(self, a: 'BN254Point') -> 'BN254Point':
        self._check(a)
        self.x, self.y = a.x, a.y
        return self

    def set_generator(self) -> 'BN254Point':
        self.x, self.y = GENERATOR
        return self

    def equal(self, a: 'BN254Point') -> bool:
        self._check(a)
        return self.x == a.x and self.y == a.y

    def is_zero(self) -> bool:
        return self.x == 0 and self.y == 0

    def marshal(self) -> bytes:
        return (self.x.to_bytes(COORDINATE_SIZE, "big") +
                self.y.to_bytes(COORDINATE_SIZE, "big"))

    def unmarshal(self, data: bytes) -> 'BN254Point':
        if len(data) != MARSHAL_SIZE:
            raise InvalidPointError(
                f"bn254 point must be {MARSHAL_SIZE} bytes, got {len(data)}")
        x = int.from_bytes(data[:COORDINATE_SIZE], "big")
        y = int.from_bytes(data[COORDINATE_SIZE:], "big")
        self.set(self.set_point(x, y))
        return self

    def point(self) -> Tuple[int, int]:
        return self.x, self.y

    def set_point(self, x: int, y: int) -> 'BN254Point':
        if x >= FIELD_MODULUS or y >= FIELD_MODULUS or x < 0 or y < 0:
            raise InvalidPointError("coordinate out of field")
        if not is_on_curve(x, y):
            raise InvalidPointError(f"point ({x}, {y}) is not on bn254 G1")
        return BN254Point(x, y)
