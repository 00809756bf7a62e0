"""Curve registry: build points from their family identifier."""

import logging
from typing import Dict, List, Type

from .babyjubjub import BJJStandard
from .babyjubjub_reduced import BJJReduced
from .bn254 import BN254Point
from .curve import Point, UnsupportedCurveError

logger = logging.getLogger(__name__)

CURVE_TYPE_BJJ_GNARK = BJJReduced.curve_type
CURVE_TYPE_BJJ_IDEN3 = BJJStandard.curve_type
CURVE_TYPE_BN254 = BN254Point.curve_type

DEFAULT_CURVE = CURVE_TYPE_BJJ_GNARK

_REGISTRY: Dict[str, Type[Point]] = {
    CURVE_TYPE_BJJ_GNARK: BJJReduced,
    CURVE_TYPE_BJJ_IDEN3: BJJStandard,
    CURVE_TYPE_BN254: BN254Point,
}


def curves() -> List[str]:
    """Registered curve identifiers"""
    return list(_REGISTRY)


def is_valid_curve(curve_type: str) -> bool:
    return curve_type in _REGISTRY


def new_point(curve_type: str) -> Point:
    """Identity point of the named curve. Unknown identifiers are a configuration error."""
    try:
        point_cls = _REGISTRY[curve_type]
    except KeyError:
        logger.critical(f"Unsupported curve type: {curve_type!r}")
        raise UnsupportedCurveError(
            f"unsupported curve type {curve_type!r}, expected one of {curves()}") from None
    return point_cls()
