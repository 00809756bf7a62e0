"""
Ciphertexts and Ballots
=======================
A Ciphertext is the ElGamal pair (C1, C2); a Ballot is a fixed-length vector
of independent ciphertexts, one per vote field.

Canonical bytes: every point is written as two 32-byte big-endian
coordinates, in reduced twisted Edwards form for BabyJubJub curves, so a
ciphertext is 128 bytes and a ballot is ``n_fields * 128`` bytes. JSON and
CBOR carry the backend-native coordinates as ``[x, y]`` pairs.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import cbor2

from ecc import Point, new_point, to_rte, from_rte, ECCError
from .elgamal import (
    encrypt_with_k, random_k, bsgs_discrete_log,
    InvalidCiphertextError, DEFAULT_MAX_MESSAGE,
)

logger = logging.getLogger(__name__)

# ============================================================================
# LAYOUT
# ============================================================================

FIELDS_PER_BALLOT = 8
SERIALIZED_FIELD_SIZE = 32
SIZE_POINT = 2 * SERIALIZED_FIELD_SIZE
SIZE_CIPHERTEXT = 2 * SIZE_POINT
BIG_INTS_PER_CIPHERTEXT = 4


def serialized_ballot_size(n_fields: int = FIELDS_PER_BALLOT) -> int:
    return n_fields * SIZE_CIPHERTEXT


def _require_subgroup(point: Point) -> Point:
    if not point.in_subgroup():
        raise InvalidCiphertextError(f"point {point} is not in the prime-order subgroup")
    return point


def point_to_bytes(point: Point) -> bytes:
    x, y = to_rte(point)
    return (x.to_bytes(SERIALIZED_FIELD_SIZE, "big") +
            y.to_bytes(SERIALIZED_FIELD_SIZE, "big"))


def point_from_bytes(curve: Point, data: bytes) -> Point:
    x = int.from_bytes(data[:SERIALIZED_FIELD_SIZE], "big")
    y = int.from_bytes(data[SERIALIZED_FIELD_SIZE:SIZE_POINT], "big")
    try:
        point = from_rte(curve.new(), x, y)
    except ECCError as e:
        raise InvalidCiphertextError(f"invalid point encoding: {e}") from e
    return _require_subgroup(point)


def _point_to_pair(point: Point) -> List[str]:
    x, y = point.point()
    return [str(x), str(y)]


def _point_from_pair(curve: Point, pair: Sequence[Any]) -> Point:
    if len(pair) != 2:
        raise InvalidCiphertextError(
            f"expected [x, y] coordinate pair, got {len(pair)} values")
    return _require_subgroup(curve.set_point(int(pair[0]), int(pair[1])))


# ============================================================================
# CIPHERTEXT
# ============================================================================


class Ciphertext:
    """ElGamal ciphertext (C1, C2) initialised to the encryption of zero with k = 0"""

    def __init__(self, curve: Point):
        self.c1 = curve.new()
        self.c2 = curve.new()

    @property
    def curve_type(self) -> str:
        return self.c1.curve_type

    def encrypt(self, message: int, public_key: Point, k: Optional[int] = None) -> 'Ciphertext':
        if k is None:
            k = random_k(public_key.order())
        self.c1, self.c2 = encrypt_with_k(public_key, message, k)
        return self

    def add(self, x: 'Ciphertext', y: 'Ciphertext') -> 'Ciphertext':
        self.c1.add(x.c1, y.c1)
        self.c2.add(x.c2, y.c2)
        return self

    def safe_add(self, x: 'Ciphertext', y: 'Ciphertext') -> 'Ciphertext':
        self.c1.safe_add(x.c1, y.c1)
        self.c2.safe_add(x.c2, y.c2)
        return self

    def decrypt(self, private_key: int, max_message: int = DEFAULT_MAX_MESSAGE) -> int:
        s = self.c1.new().scalar_mult(self.c1, private_key)
        m_point = self.c1.new().neg(s)
        m_point.add(self.c2, m_point)
        return bsgs_discrete_log(m_point, max_message)

    def is_zero(self) -> bool:
        return self.c1.is_zero() and self.c2.is_zero()

    def copy(self) -> 'Ciphertext':
        ct = Ciphertext(self.c1)
        ct.c1.set(self.c1)
        ct.c2.set(self.c2)
        return ct

    def equal(self, other: 'Ciphertext') -> bool:
        return self.c1.equal(other.c1) and self.c2.equal(other.c2)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Ciphertext):
            return NotImplemented
        return self.curve_type == other.curve_type and self.equal(other)

    __hash__ = None

    def serialize(self) -> bytes:
        return point_to_bytes(self.c1) + point_to_bytes(self.c2)

    def deserialize(self, data: bytes) -> 'Ciphertext':
        if len(data) != SIZE_CIPHERTEXT:
            raise InvalidCiphertextError(
                f"invalid ciphertext length: got {len(data)} bytes, expected {SIZE_CIPHERTEXT}")
        self.c1 = point_from_bytes(self.c1, data[:SIZE_POINT])
        self.c2 = point_from_bytes(self.c2, data[SIZE_POINT:])
        return self

    def serialize_big_ints(self) -> List[int]:
        """Circuit-form coordinates: c1.x, c1.y, c2.x, c2.y"""
        return [*to_rte(self.c1), *to_rte(self.c2)]

    def to_dict(self) -> Dict[str, List[str]]:
        return {"c1": _point_to_pair(self.c1), "c2": _point_to_pair(self.c2)}

    @classmethod
    def from_dict(cls, curve: Point, data: Dict[str, Any]) -> 'Ciphertext':
        try:
            ct = cls(curve)
            ct.c1 = _point_from_pair(curve, data["c1"])
            ct.c2 = _point_from_pair(curve, data["c2"])
        except (KeyError, TypeError, ValueError, ECCError) as e:
            raise InvalidCiphertextError(f"invalid ciphertext: {e}") from e
        return ct

    def __str__(self) -> str:
        return json.dumps(self.to_dict())


# ============================================================================
# BALLOT
# ============================================================================


class Ballot:
    """Fixed-size vector of ciphertexts, one per vote field"""

    def __init__(self, curve: Point, n_fields: int = FIELDS_PER_BALLOT):
        if n_fields <= 0:
            raise ValueError("a ballot needs at least one field")
        self.curve_type = curve.curve_type
        self.ciphertexts: List[Ciphertext] = [
            Ciphertext(curve) for _ in range(n_fields)]

    @property
    def n_fields(self) -> int:
        return len(self.ciphertexts)

    def _curve(self) -> Point:
        return self.ciphertexts[0].c1

    def encrypt(self, messages: Sequence[int], public_key: Point,
                k: Optional[int] = None) -> 'Ballot':
        """Encrypt one message per field; each field draws its own k unless one is given"""
        if len(messages) != self.n_fields:
            raise ValueError(
                f"expected {self.n_fields} field values, got {len(messages)}")
        for ct, message in zip(self.ciphertexts, messages):
            ct.encrypt(message, public_key, k)
        return self

    def add(self, x: 'Ballot', y: 'Ballot') -> 'Ballot':
        self._require_compatible(x)
        self._require_compatible(y)
        for z_ct, x_ct, y_ct in zip(self.ciphertexts, x.ciphertexts, y.ciphertexts):
            z_ct.add(x_ct, y_ct)
        return self

    def safe_add(self, x: 'Ballot', y: 'Ballot') -> 'Ballot':
        self._require_compatible(x)
        self._require_compatible(y)
        for z_ct, x_ct, y_ct in zip(self.ciphertexts, x.ciphertexts, y.ciphertexts):
            z_ct.safe_add(x_ct, y_ct)
        return self

    def decrypt(self, private_key: int, max_message: int = DEFAULT_MAX_MESSAGE) -> List[int]:
        return [ct.decrypt(private_key, max_message) for ct in self.ciphertexts]

    def is_valid(self) -> bool:
        return all(ct.curve_type == self.curve_type for ct in self.ciphertexts)

    def copy(self) -> 'Ballot':
        ballot = Ballot(self._curve(), self.n_fields)
        ballot.ciphertexts = [ct.copy() for ct in self.ciphertexts]
        return ballot

    def equal(self, other: 'Ballot') -> bool:
        return (self.curve_type == other.curve_type and
                self.n_fields == other.n_fields and
                all(a.equal(b) for a, b in zip(self.ciphertexts, other.ciphertexts)))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Ballot):
            return NotImplemented
        return self.equal(other)

    __hash__ = None

    def _require_compatible(self, other: 'Ballot'):
        if other.curve_type != self.curve_type or other.n_fields != self.n_fields:
            raise ValueError(
                f"incompatible ballots: {other.curve_type}/{other.n_fields} "
                f"vs {self.curve_type}/{self.n_fields}")

    # ------------------------------------------------------------------------
    # Encodings
    # ------------------------------------------------------------------------

    def size(self) -> int:
        return serialized_ballot_size(self.n_fields)

    def serialize(self) -> bytes:
        return b"".join(ct.serialize() for ct in self.ciphertexts)

    def deserialize(self, data: bytes) -> 'Ballot':
        if len(data) != self.size():
            raise InvalidCiphertextError(
                f"invalid ballot length: got {len(data)} bytes, expected {self.size()}")
        for i, ct in enumerate(self.ciphertexts):
            ct.deserialize(data[i * SIZE_CIPHERTEXT:(i + 1) * SIZE_CIPHERTEXT])
        return self

    def serialize_big_ints(self) -> List[int]:
        values: List[int] = []
        for ct in self.ciphertexts:
            values.extend(ct.serialize_big_ints())
        return values

    def to_dict(self) -> Dict[str, Any]:
        return {
            "curveType": self.curve_type,
            "ciphertexts": [ct.to_dict() for ct in self.ciphertexts],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any],
                  n_fields: int = FIELDS_PER_BALLOT) -> 'Ballot':
        try:
            curve = new_point(data["curveType"])
            raw = data["ciphertexts"]
        except (KeyError, TypeError) as e:
            raise InvalidCiphertextError(f"invalid ballot container: {e}") from e
        if len(raw) != n_fields:
            raise InvalidCiphertextError(
                f"expected {n_fields} ciphertexts, got {len(raw)}")
        ballot = cls(curve, n_fields)
        ballot.ciphertexts = [Ciphertext.from_dict(curve, item) for item in raw]
        return ballot

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, data, n_fields: int = FIELDS_PER_BALLOT) -> 'Ballot':
        try:
            decoded = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidCiphertextError(f"invalid ballot JSON: {e}") from e
        return cls.from_dict(decoded, n_fields)

    def to_cbor(self) -> bytes:
        return cbor2.dumps({
            "curveType": self.curve_type,
            "ciphertexts": [
                {"c1": list(ct.c1.point()), "c2": list(ct.c2.point())}
                for ct in self.ciphertexts
            ],
        })

    @classmethod
    def from_cbor(cls, data: bytes, n_fields: int = FIELDS_PER_BALLOT) -> 'Ballot':
        try:
            decoded = cbor2.loads(data)
        except cbor2.CBORDecodeError as e:
            raise InvalidCiphertextError(f"invalid ballot CBOR: {e}") from e
        return cls.from_dict(decoded, n_fields)

    def __str__(self) -> str:
        return self.to_json()
