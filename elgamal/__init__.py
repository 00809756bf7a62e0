"""Additive ElGamal encryption of bounded scalars over curve points."""

from .elgamal import (
    # Core scheme
    generate_key,
    random_k,
    encrypt,
    encrypt_with_k,
    decrypt,
    check_k,
    bsgs_discrete_log,
    DEFAULT_MAX_MESSAGE,

    # Exceptions
    ElGamalError,
    MessageOutOfBoundError,
    InvalidCiphertextError,
)
from .ciphertext import (
    Ciphertext,
    Ballot,
    FIELDS_PER_BALLOT,
    SERIALIZED_FIELD_SIZE,
    SIZE_POINT,
    SIZE_CIPHERTEXT,
    BIG_INTS_PER_CIPHERTEXT,
    serialized_ballot_size,
    point_to_bytes,
    point_from_bytes,
)

__version__ = "1.0.0"

__all__ = [
    # Core scheme
    'generate_key',
    'random_k',
    'encrypt',
    'encrypt_with_k',
    'decrypt',
    'check_k',
    'bsgs_discrete_log',
    'DEFAULT_MAX_MESSAGE',

    # Data structures
    'Ciphertext',
    'Ballot',
    'FIELDS_PER_BALLOT',
    'SERIALIZED_FIELD_SIZE',
    'SIZE_POINT',
    'SIZE_CIPHERTEXT',
    'BIG_INTS_PER_CIPHERTEXT',
    'serialized_ballot_size',
    'point_to_bytes',
    'point_from_bytes',

    # Exceptions
    'ElGamalError',
    'MessageOutOfBoundError',
    'InvalidCiphertextError',
]
