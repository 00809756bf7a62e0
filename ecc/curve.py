"""
Curve Point Abstraction
=======================
Common interface implemented by every elliptic-curve backend.

Points follow a receiver-stores-result convention: ``p.add(a, b)`` writes
``a + b`` into ``p`` and returns ``p``. Operations only accept points of the
same concrete backend.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Tuple

import cbor2

logger = logging.getLogger(__name__)

# ============================================================================
# EXCEPTIONS
# ============================================================================


class ECCError(Exception):
    """Base exception for curve operations"""
    pass


class UnsupportedCurveError(ECCError):
    """Raised when a curve identifier is not registered"""
    pass


class InvalidPointError(ECCError):
    """Raised when decoded coordinates are not a valid group element"""
    pass


# ============================================================================
# HELPERS
# ============================================================================


def mod_sqrt(a: int, p: int) -> int:
    """Square root modulo an odd prime (Tonelli-Shanks). Raises ValueError for non-residues."""
    a %= p
    if a == 0:
        return 0
    if pow(a, (p - 1) // 2, p) != 1:
        raise ValueError("value is not a quadratic residue")
    if p % 4 == 3:
        return pow(a, (p + 1) // 4, p)

    q, s = p - 1, 0
    while q % 2 == 0:
        q //= 2
        s += 1
    z = 2
    while pow(z, (p - 1) // 2, p) != p - 1:
        z += 1

    m = s
    c = pow(z, q, p)
    t = pow(a, q, p)
    r = pow(a, (q + 1) // 2, p)
    while t != 1:
        i, t2 = 0, t
        while t2 != 1:
            t2 = t2 * t2 % p
            i += 1
        b = pow(c, 1 << (m - i - 1), p)
        m = i
        c = b * b % p
        t = t * c % p
        r = r * b % p
    return r


# ============================================================================
# POINT INTERFACE
# ============================================================================


class Point(ABC):
    """Prime-order group element of a fixed curve backend"""

    curve_type: str = ""

    def __init__(self):
        self._lock = threading.Lock()

    @abstractmethod
    def new(self) -> 'Point':
        """Return a fresh identity point of the same backend"""

    @abstractmethod
    def order(self) -> int:
        """Prime order of the subgroup generated by the base point"""

    @abstractmethod
    def add(self, a: 'Point', b: 'Point') -> 'Point':
        pass

    @abstractmethod
    def scalar_mult(self, a: 'Point', k: int) -> 'Point':
        pass

    @abstractmethod
    def neg(self, a: 'Point') -> 'Point':
        pass

    @abstractmethod
    def set_zero(self) -> 'Point':
        pass

    @abstractmethod
    def set(self, a: 'Point') -> 'Point':
        pass

    @abstractmethod
    def set_generator(self) -> 'Point':
        pass

    @abstractmethod
    def equal(self, a: 'Point') -> bool:
        pass

    @abstractmethod
    def is_zero(self) -> bool:
        pass

    @abstractmethod
    def marshal(self) -> bytes:
        """Canonical compressed byte encoding"""

    @abstractmethod
    def unmarshal(self, data: bytes) -> 'Point':
        pass

    @abstractmethod
    def point(self) -> Tuple[int, int]:
        """Backend-native affine coordinates"""

    @abstractmethod
    def set_point(self, x: int, y: int) -> 'Point':
        """Return a new point with the given backend-native coordinates"""

    def safe_add(self, a: 'Point', b: 'Point') -> 'Point':
        """Add under this point's lock so concurrent accumulators serialize"""
        with self._lock:
            return self.add(a, b)

    def in_subgroup(self) -> bool:
        """Membership in the prime-order subgroup; true for every point when the cofactor is 1"""
        return True

    def scalar_base_mult(self, k: int) -> 'Point':
        g = self.new().set_generator()
        return self.scalar_mult(g, k)

    def copy(self) -> 'Point':
        return self.new().set(self)

    def _check(self, other: 'Point'):
        if type(other) is not type(self):
            raise TypeError(
                f"cannot mix {type(self).__name__} with {type(other).__name__}")

    # JSON / CBOR encodings share the ordered pair of coordinates

    def marshal_json(self) -> str:
        x, y = self.point()
        return json.dumps([str(x), str(y)])

    def unmarshal_json(self, data) -> 'Point':
        coords = json.loads(data) if isinstance(data, (str, bytes)) else data
        if len(coords) != 2:
            raise InvalidPointError(
                f"expected 2 coordinates, got {len(coords)}")
        return self.set(self.set_point(int(coords[0]), int(coords[1])))

    def marshal_cbor(self) -> bytes:
        x, y = self.point()
        return cbor2.dumps([x, y])

    def unmarshal_cbor(self, data: bytes) -> 'Point':
        coords = cbor2.loads(data)
        if len(coords) != 2:
            raise InvalidPointError(
                f"expected 2 coordinates, got {len(coords)}")
        return self.set(self.set_point(int(coords[0]), int(coords[1])))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Point) or type(other) is not type(self):
            return NotImplemented
        return self.equal(other)

    __hash__ = None

    def __str__(self) -> str:
        x, y = self.point()
        return f"{x},{y}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self})"
