"""Elliptic-curve group abstraction with interchangeable backends."""

from .curve import (
    # Interface
    Point,
    mod_sqrt,

    # Exceptions
    ECCError,
    UnsupportedCurveError,
    InvalidPointError,
)
from .babyjubjub import BJJStandard
from .babyjubjub_reduced import BJJReduced
from .bn254 import BN254Point
from .curves import (
    new_point,
    curves,
    is_valid_curve,
    CURVE_TYPE_BJJ_GNARK,
    CURVE_TYPE_BJJ_IDEN3,
    CURVE_TYPE_BN254,
    DEFAULT_CURVE,
)
from .format import from_te_to_rte, from_rte_to_te, to_rte, from_rte

__version__ = "1.0.0"

__all__ = [
    # Interface and backends
    'Point',
    'BJJStandard',
    'BJJReduced',
    'BN254Point',

    # Registry
    'new_point',
    'curves',
    'is_valid_curve',
    'CURVE_TYPE_BJJ_GNARK',
    'CURVE_TYPE_BJJ_IDEN3',
    'CURVE_TYPE_BN254',
    'DEFAULT_CURVE',

    # Coordinate conversion
    'from_te_to_rte',
    'from_rte_to_te',
    'to_rte',
    'from_rte',
    'mod_sqrt',

    # Exceptions
    'ECCError',
    'UnsupportedCurveError',
    'InvalidPointError',
]
