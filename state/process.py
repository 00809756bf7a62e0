"""
Process metadata stored in the state tree: fixed keys, ballot mode
parameters and the encryption key encoding.
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, List

from ecc import Point
from elgamal import SERIALIZED_FIELD_SIZE, SIZE_POINT, point_to_bytes, point_from_bytes

logger = logging.getLogger(__name__)

# ============================================================================
# TREE KEYS
# ============================================================================

KEY_PROCESS_ID = b"\x00"
KEY_CENSUS_ROOT = b"\x01"
KEY_BALLOT_MODE = b"\x02"
KEY_ENCRYPTION_KEY = b"\x03"
KEY_RESULTS_ADD = b"\x04"
KEY_RESULTS_SUB = b"\x05"

PROCESS_KEYS = (KEY_PROCESS_ID, KEY_CENSUS_ROOT, KEY_BALLOT_MODE, KEY_ENCRYPTION_KEY)

BALLOT_MODE_FIELDS = 8
BALLOT_MODE_SIZE = BALLOT_MODE_FIELDS * SERIALIZED_FIELD_SIZE


# ============================================================================
# BALLOT MODE
# ============================================================================


@dataclass(frozen=True)
class BallotMode:
    """Rules shared by every ballot of a process"""
    max_count: int = 1
    force_uniqueness: bool = False
    max_value: int = 1
    min_value: int = 0
    max_total_cost: int = 0
    min_total_cost: int = 0
    cost_exponent: int = 1
    cost_from_weight: bool = False

    def __post_init__(self):
        for f in fields(self):
            value = int(getattr(self, f.name))
            if value < 0 or value.bit_length() > 8 * SERIALIZED_FIELD_SIZE:
                raise ValueError(f"ballot mode {f.name} out of range: {value}")
        if self.min_value > self.max_value:
            raise ValueError("min_value cannot exceed max_value")
        if self.max_total_cost and self.min_total_cost > self.max_total_cost:
            raise ValueError("min_total_cost cannot exceed max_total_cost")

    def big_ints(self) -> List[int]:
        return [int(getattr(self, f.name)) for f in fields(self)]

    def to_bytes(self) -> bytes:
        """Eight 32-byte big-endian words in declaration order"""
        return b"".join(v.to_bytes(SERIALIZED_FIELD_SIZE, "big") for v in self.big_ints())

    @classmethod
    def from_bytes(cls, data: bytes) -> 'BallotMode':
        if len(data) != BALLOT_MODE_SIZE:
            raise ValueError(
                f"invalid ballot mode length: got {len(data)} bytes, expected {BALLOT_MODE_SIZE}")
        values = [
            int.from_bytes(data[i:i + SERIALIZED_FIELD_SIZE], "big")
            for i in range(0, BALLOT_MODE_SIZE, SERIALIZED_FIELD_SIZE)
        ]
        kwargs = {}
        for f, value in zip(fields(cls), values):
            kwargs[f.name] = bool(value) if f.type in (bool, 'bool') else value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'maxCount': self.max_count,
            'forceUniqueness': self.force_uniqueness,
            'maxValue': str(self.max_value),
            'minValue': str(self.min_value),
            'maxTotalCost': str(self.max_total_cost),
            'minTotalCost': str(self.min_total_cost),
            'costExponent': self.cost_exponent,
            'costFromWeight': self.cost_from_weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BallotMode':
        try:
            return cls(
                max_count=int(data['maxCount']),
                force_uniqueness=bool(data.get('forceUniqueness', False)),
                max_value=int(data['maxValue']),
                min_value=int(data.get('minValue', 0)),
                max_total_cost=int(data.get('maxTotalCost', 0)),
                min_total_cost=int(data.get('minTotalCost', 0)),
                cost_exponent=int(data.get('costExponent', 1)),
                cost_from_weight=bool(data.get('costFromWeight', False)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"invalid ballot mode: {e}") from e


# ============================================================================
# ENCRYPTION KEY
# ============================================================================


def encryption_key_to_bytes(public_key: Point) -> bytes:
    """x || y, 32-byte big-endian each, reduced twisted Edwards for BabyJubJub"""
    return point_to_bytes(public_key)


def encryption_key_from_bytes(curve: Point, data: bytes) -> Point:
    if len(data) != SIZE_POINT:
        raise ValueError(
            f"invalid encryption key length: got {len(data)} bytes, expected {SIZE_POINT}")
    return point_from_bytes(curve, data)
