"""Distributed key generation and threshold decryption."""

from .dkg import (
    # Core protocol classes
    Participant,
    DistributedKeyGeneration,
    evaluate_polynomial,

    # Wire messages
    PublicCommitments,
    PrivateShare,
    EncryptedShare,

    # Enums and status
    DKGStatus,

    # Exceptions
    DKGError,
    ShareVerificationError,
    ThresholdViolationError,
    ReconstructionError,
)
from .decrypt import (
    compute_lagrange_coefficients,
    combine_partial_decryptions,
    threshold_decrypt_ballot,
)
from .secies import ScalarECIES, hash_point_to_scalar

__version__ = "1.0.0"

__all__ = [
    # Core classes
    'Participant',
    'DistributedKeyGeneration',
    'ScalarECIES',

    # Threshold decryption
    'compute_lagrange_coefficients',
    'combine_partial_decryptions',
    'threshold_decrypt_ballot',

    # Helpers
    'evaluate_polynomial',
    'hash_point_to_scalar',

    # Wire messages
    'PublicCommitments',
    'PrivateShare',
    'EncryptedShare',

    # Status and exceptions
    'DKGStatus',
    'DKGError',
    'ShareVerificationError',
    'ThresholdViolationError',
    'ReconstructionError',
]
