"""Threshold decryption: Lagrange combination of partial decryptions."""

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from ecc import Point
from elgamal import Ballot, bsgs_discrete_log, DEFAULT_MAX_MESSAGE
from .dkg import Participant, ReconstructionError, ThresholdViolationError

logger = logging.getLogger(__name__)


def compute_lagrange_coefficients(participants: Sequence[int], order: int) -> Dict[int, int]:
    """Lagrange basis values at x = 0 for the given participant IDs, modulo order"""
    coeffs: Dict[int, int] = {}
    for i in participants:
        if i % order == 0:
            raise ReconstructionError(
                f"participant ID {i} is zero modulo the group order")
    for idx_i, i in enumerate(participants):
        numerator = 1
        denominator = 1
        for idx_j, j in enumerate(participants):
            if idx_i == idx_j:
                continue
            numerator = numerator * (-j) % order
            denominator = denominator * (i - j) % order
        try:
            denominator_inv = pow(denominator, -1, order)
        except ValueError:
            raise ReconstructionError(
                f"modular inverse does not exist for participant set {list(participants)}") from None
        coeffs[i] = numerator * denominator_inv % order
    return coeffs


def combine_partial_decryptions(c2: Point, partial_decryptions: Mapping[int, Point],
                                participants: Sequence[int],
                                max_message: int = DEFAULT_MAX_MESSAGE,
                                threshold: Optional[int] = None) -> int:
    """Recover m from C2 and partial decryptions s_i of the listed participants"""
    if threshold is not None and len(participants) < threshold:
        raise ThresholdViolationError(
            f"Need {threshold} partial decryptions, got {len(participants)}")
    missing = [pid for pid in participants if pid not in partial_decryptions]
    if missing:
        raise ThresholdViolationError(
            f"Missing partial decryptions from {missing}")

    lagrange = compute_lagrange_coefficients(participants, c2.order())

    s = c2.new()
    for pid in participants:
        term = c2.new().scalar_mult(partial_decryptions[pid], lagrange[pid])
        s.add(s, term)

    m_point = c2.new().neg(s)
    m_point.add(c2, m_point)
    message = bsgs_discrete_log(m_point, max_message)
    logger.debug(f"Combined {len(participants)} partial decryptions")
    return message


def threshold_decrypt_ballot(ballot: Ballot, participants: List[Participant],
                             max_message: int = DEFAULT_MAX_MESSAGE) -> List[int]:
    """Decrypt every field of a ballot with the given subset of participants"""
    if not participants:
        raise ThresholdViolationError("No participants supplied")
    threshold = participants[0].threshold
    ids = [p.id for p in participants]

    results = []
    for ct in ballot.ciphertexts:
        partials = {p.id: p.compute_partial_decryption(ct.c1) for p in participants}
        results.append(combine_partial_decryptions(
            ct.c2, partials, ids, max_message, threshold))
    return results
