"""
Scalar ECIES
============
Encrypts a scalar (a DKG share) to a curve public key:

    R = r*G,  S = r*PK,  s = KDF(marshal(S)) mod order,  c = m + s mod order

The recipient recomputes S = sk*R and returns c - s. There is no integrity
tag: a modified c or R decrypts to an unrelated scalar, or fails to decode
when R is no longer a valid point.
"""

import logging
from typing import Optional, Tuple

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ecc import Point
from elgamal import random_k

logger = logging.getLogger(__name__)

KDF_INFO = b"scalar-ecies-share"

# 64 bytes of key material keeps the reduction modulo a 254-bit order unbiased
KDF_LENGTH = 64


def hash_point_to_scalar(point: Point) -> int:
    kdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KDF_LENGTH,
        salt=None,
        info=KDF_INFO,
        backend=default_backend()
    )
    digest = kdf.derive(point.marshal())
    return int.from_bytes(digest, "big") % point.order()


class ScalarECIES:
    """Key pair that encrypts and decrypts scalars modulo the curve order"""

    def __init__(self, curve: Point, private_key: Optional[int] = None):
        self.curve = curve.new()
        if private_key is None:
            private_key = random_k(curve.order())
        self.private_key = private_key % curve.order()
        self.public_key = curve.new().scalar_base_mult(self.private_key)

    def public_key_bytes(self) -> bytes:
        return self.public_key.marshal()

    def encrypt(self, message: int, recipient_public_key: Point) -> Tuple[int, bytes]:
        """Return (c, marshal(R))"""
        order = self.curve.order()
        r = random_k(order)
        r_point = self.curve.new().scalar_base_mult(r)
        shared = self.curve.new().scalar_mult(recipient_public_key, r)
        c = (message % order + hash_point_to_scalar(shared)) % order
        return c, r_point.marshal()

    def decrypt(self, c: int, r_bytes: bytes) -> int:
        r_point = self.curve.new().unmarshal(r_bytes)
        shared = self.curve.new().scalar_mult(r_point, self.private_key)
        order = self.curve.order()
        return (c - hash_point_to_scalar(shared)) % order
