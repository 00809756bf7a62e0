"""
BabyJubJub - standard twisted Edwards form
==========================================
a*x^2 + y^2 = 1 + d*x^2*y^2 over the BN254 scalar field, with a = 168700
and d = 168696. Base point is B8, the generator of the prime-order subgroup.

Group law is computed in projective coordinates (X:Y:Z) and normalized back
to affine after every public operation.
"""

import logging
from typing import Tuple

from .curve import Point, InvalidPointError, mod_sqrt

logger = logging.getLogger(__name__)

# ============================================================================
# CURVE CONSTANTS
# ============================================================================

FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617
A = 168700
D = 168696
SUBGROUP_ORDER = 2736030358979909402780800718157159386076813972158567259200215660948447373041
COFACTOR = 8

B8 = (
    5299619240641551281634865583518297030282874472190772894086521144482721001553,
    16950150798460657717958625567821834550301663161624707787222815936182638968203,
)

COMPRESSED_SIZE = 32
_HALF_FIELD = FIELD_MODULUS >> 1


def is_on_curve(x: int, y: int) -> bool:
    p = FIELD_MODULUS
    x2, y2 = x * x % p, y * y % p
    return (A * x2 + y2) % p == (1 + D * x2 % p * y2) % p


def coord_sign(x: int) -> bool:
    """True when x lies in the upper half of the field"""
    return x > _HALF_FIELD


def compress(x: int, y: int) -> bytes:
    """32-byte little-endian y with the sign of x in the most significant bit"""
    buf = bytearray(y.to_bytes(COMPRESSED_SIZE, "little"))
    if coord_sign(x):
        buf[31] |= 0x80
    return bytes(buf)


def decompress(data: bytes) -> Tuple[int, int]:
    if len(data) != COMPRESSED_SIZE:
        raise InvalidPointError(
            f"compressed point must be {COMPRESSED_SIZE} bytes, got {len(data)}")
    buf = bytearray(data)
    sign = bool(buf[31] & 0x80)
    buf[31] &= 0x7F
    y = int.from_bytes(bytes(buf), "little")
    if y >= FIELD_MODULUS:
        raise InvalidPointError("y coordinate out of field")

    p = FIELD_MODULUS
    y2 = y * y % p
    denominator = (A - D * y2) % p
    if denominator == 0:
        raise InvalidPointError("no x coordinate for given y")
    x2 = (1 - y2) * pow(denominator, -1, p) % p
    try:
        x = mod_sqrt(x2, p)
    except ValueError:
        raise InvalidPointError("compressed point is not on the curve")
    if sign != coord_sign(x):
        x = (-x) % p
    return x, y


# ============================================================================
# PROJECTIVE ARITHMETIC
# ============================================================================


def _projective_add(p1, p2):
    p = FIELD_MODULUS
    x1, y1, z1 = p1
    x2, y2, z2 = p2
    a = z1 * z2 % p
    b = a * a % p
    c = x1 * x2 % p
    d = y1 * y2 % p
    e = D * c % p * d % p
    f = (b - e) % p
    g = (b + e) % p
    x3 = a * f % p * (((x1 + y1) * (x2 + y2) - c - d) % p) % p
    y3 = a * g % p * ((d - A * c) % p) % p
    z3 = f * g % p
    return x3, y3, z3


def _to_affine(pt) -> Tuple[int, int]:
    x, y, z = pt
    z_inv = pow(z, -1, FIELD_MODULUS)
    return x * z_inv % FIELD_MODULUS, y * z_inv % FIELD_MODULUS


def _scalar_mult(x: int, y: int, k: int) -> Tuple[int, int]:
    result = (0, 1, 1)
    addend = (x, y, 1)
    for bit in bin(k)[2:]:
        result = _projective_add(result, result)
        if bit == "1":
            result = _projective_add(result, addend)
    return _to_affine(result)


# ============================================================================
# POINT
# ============================================================================


class BJJStandard(Point):
    """BabyJubJub point in standard twisted Edwards affine coordinates"""

    curve_type = "bjj_iden3"
    coordinates = "te"

    def __init__(self, x: int = 0, y: int = 1):
        super().__init__()
        self.x = x
        self.y = y

    def new(self) -> 'BJJStandard':
        return BJJStandard()

    def order(self) -> int:
        return SUBGROUP_ORDER

    def add(self, a: 'BJJStandard', b: 'BJJStandard') -> 'BJJStandard':
        self._check(a)
        self._check(b)
        self.x, self.y = _to_affine(
            _projective_add((a.x, a.y, 1), (b.x, b.y, 1)))
        return self

    def scalar_mult(self, a: 'BJJStandard', k: int) -> 'BJJStandard':
        self._check(a)
        self.x, self.y = _scalar_mult(a.x, a.y, k % SUBGROUP_ORDER)
        return self

    def neg(self, a: 'BJJStandard') -> 'BJJStandard':
        self._check(a)
        self.x, self.y = (-a.x) % FIELD_MODULUS, a.y
        return self

    def set_zero(self) -> 'BJJStandard':
        self.x, self.y = 0, 1
        return self

    def set(self, a: 'BJJStandard') -> 'BJJStandard':
        self._check(a)
        self.x, self.y = a.x, a.y
        return self

    def set_generator(self) -> 'BJJStandard':
        self.x, self.y = B8
        return self

    def equal(self, a: 'BJJStandard') -> bool:
        self._check(a)
        return self.x == a.x and self.y == a.y

    def is_zero(self) -> bool:
        return self.x == 0 and self.y == 1

    def marshal(self) -> bytes:
        return compress(self.x, self.y)

    def unmarshal(self, data: bytes) -> 'BJJStandard':
        point = BJJStandard(*decompress(bytes(data)))
        if not point.in_subgroup():
            raise InvalidPointError("point is not in the prime-order subgroup")
        return self.set(point)

    def in_subgroup(self) -> bool:
        return _scalar_mult(self.x, self.y, SUBGROUP_ORDER) == (0, 1)

    def point(self) -> Tuple[int, int]:
        return self.x, self.y

    def set_point(self, x: int, y: int) -> 'BJJStandard':
        x, y = x % FIELD_MODULUS, y % FIELD_MODULUS
        if not is_on_curve(x, y):
            raise InvalidPointError(f"point ({x}, {y}) is not on BabyJubJub")
        return BJJStandard(x, y)
