"""
Additive ElGamal over Curve Points
==================================
Messages are bounded scalars encoded in the exponent: C1 = k*G and
C2 = m*G + k*PK. Ciphertexts add component-wise, so the sum of ciphertexts
decrypts to the sum of messages. Decryption recovers m from m*G with a
baby-step/giant-step search bounded by the caller.
"""

import logging
import secrets
from math import isqrt
from typing import Dict, Tuple

from ecc import Point

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

# Upper bound for the discrete log search when callers do not size it
DEFAULT_MAX_MESSAGE = 1 << 24

# ============================================================================
# EXCEPTIONS
# ============================================================================


class ElGamalError(Exception):
    """Base exception for ElGamal operations"""
    pass


class MessageOutOfBoundError(ElGamalError):
    """Raised when the discrete log is not found within the configured bound"""
    pass


class InvalidCiphertextError(ElGamalError):
    """Raised when serialized ciphertext data is malformed"""
    pass


# ============================================================================
# KEYS AND ENCRYPTION
# ============================================================================


def random_k(order: int) -> int:
    """Uniform ephemeral scalar in [1, order-1]"""
    return secrets.randbelow(order - 1) + 1


def generate_key(curve: Point) -> Tuple[Point, int]:
    """Fresh key pair on the curve of the given point: (public_key, private_key)"""
    private_key = random_k(curve.order())
    public_key = curve.new().scalar_base_mult(private_key)
    return public_key, private_key


def encrypt(public_key: Point, message: int) -> Tuple[Point, Point, int]:
    """Encrypt with a fresh random k. Returns (c1, c2, k)."""
    k = random_k(public_key.order())
    c1, c2 = encrypt_with_k(public_key, message, k)
    return c1, c2, k


def encrypt_with_k(public_key: Point, message: int, k: int) -> Tuple[Point, Point]:
    """Encrypt with a caller-provided k. The message is reduced modulo the group order."""
    order = public_key.order()
    m = message % order

    c1 = public_key.new().scalar_base_mult(k)
    s = public_key.new().scalar_mult(public_key, k)
    m_point = public_key.new().scalar_base_mult(m)
    c2 = public_key.new().add(m_point, s)
    return c1, c2


def check_k(c1: Point, k: int) -> bool:
    """True when c1 was produced with ephemeral scalar k"""
    return c1.new().scalar_base_mult(k).equal(c1)


def decrypt(public_key: Point, private_key: int, c1: Point, c2: Point,
            max_message: int = DEFAULT_MAX_MESSAGE) -> Tuple[Point, int]:
    """Recover (M, m) with M = C2 - sk*C1 = m*G.

    A wrong private key does not raise: it yields an unrelated point whose
    discrete log, if found within the bound, is a meaningless scalar.
    """
    s = c1.new().scalar_mult(c1, private_key)
    s_neg = c1.new().neg(s)
    m_point = c1.new().add(c2, s_neg)
    message = bsgs_discrete_log(m_point, max_message)
    return m_point, message


# ============================================================================
# DISCRETE LOG
# ============================================================================


def bsgs_discrete_log(m_point: Point, max_message: int) -> int:
    """Baby-step giant-step: find m in [0, max_message] with m*G == m_point"""
    if max_message < 0:
        raise ValueError("max_message must be non-negative")

    g = m_point.new().set_generator()
    m = isqrt(max_message) + 1

    # Baby steps: j*G -> j for j in [0, m)
    baby: Dict[Tuple[int, int], int] = {}
    current = m_point.new()
    for j in range(m):
        baby.setdefault(current.point(), j)
        current.add(current, g)

    # Giant step factor: -(m*G)
    factor = m_point.new().scalar_mult(g, m)
    factor.neg(factor)

    gamma = m_point.copy()
    for i in range(m + 1):
        j = baby.get(gamma.point())
        if j is not None:
            message = i * m + j
            if message > max_message:
                break
            return message
        gamma.add(gamma, factor)

    raise MessageOutOfBoundError(
        f"message not found in range [0, {max_message}]")
