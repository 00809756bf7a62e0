"""
Distributed Key Generation
==========================
Pedersen-style DKG with Feldman verifiable shares over a curve group.

Each participant samples a degree t-1 polynomial, publishes coeff_i*G for
every coefficient and sends f(peer_id) privately to every peer. A received
share is checked in the exponent against the sender's commitments before it
is accepted. The final private share is the sum of the participant's own
evaluation and every verified peer share; the joint public key is the sum of
every participant's constant-term commitment.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ecc import Point, new_point
from elgamal import random_k
from .secies import ScalarECIES

logger = logging.getLogger(__name__)

# ============================================================================
# EXCEPTIONS AND ENUMS
# ============================================================================


class DKGError(Exception):
    """Base exception for DKG operations"""
    pass


class ShareVerificationError(DKGError):
    """Raised when a share does not match its sender's Feldman commitments"""
    pass


class ThresholdViolationError(DKGError):
    """Raised when threshold requirements are not met"""
    pass


class ReconstructionError(DKGError):
    """Raised when Lagrange combination cannot be computed"""
    pass


class DKGStatus(Enum):
    """Participant setup progress"""
    INITIALIZED = "initialized"
    POLYNOMIAL_GENERATED = "polynomial_generated"
    SHARES_COMPUTED = "shares_computed"
    SHARES_AGGREGATED = "shares_aggregated"
    COMPLETE = "complete"


# ============================================================================
# WIRE MESSAGES
# ============================================================================


@dataclass
class PublicCommitments:
    """Broadcast Feldman commitments of one participant"""
    sender_id: int
    commitments: List[Point] = field(default_factory=list)

    def __post_init__(self):
        if self.sender_id <= 0:
            raise ValueError("Participant ID must be positive")


@dataclass
class PrivateShare:
    """Share f_sender(recipient_id) sent point-to-point"""
    sender_id: int
    recipient_id: int
    share: int

    def __post_init__(self):
        if self.sender_id <= 0 or self.recipient_id <= 0:
            raise ValueError("Participant IDs must be positive")


@dataclass
class EncryptedShare:
    """PrivateShare encrypted to the recipient's transport key"""
    sender_id: int
    recipient_id: int
    ciphertext: int
    ephemeral: bytes

    def __post_init__(self):
        if self.sender_id <= 0 or self.recipient_id <= 0:
            raise ValueError("Participant IDs must be positive")


def evaluate_polynomial(coefficients: List[int], x: int, order: int) -> int:
    """Evaluate polynomial at point x using Horner's method"""
    result = 0
    for coeff in reversed(coefficients):
        result = (result * x + coeff) % order
    return result


# ============================================================================
# PARTICIPANT
# ============================================================================


class Participant:
    """One DKG party holding a secret polynomial and, after setup, a private share"""

    def __init__(self, participant_id: int, threshold: int, participants: List[int], curve: Point):
        if participant_id not in participants:
            raise ValueError(
                f"Participant {participant_id} is not in the participant set")
        if len(set(participants)) != len(participants):
            raise ValueError(f"Duplicate participant IDs: {participants}")
        if any(pid <= 0 for pid in participants):
            raise ValueError("Participant IDs must be positive")
        if not 1 <= threshold <= len(participants):
            raise ValueError(
                f"Threshold {threshold} must be between 1 and {len(participants)}")

        self.id = participant_id
        self.threshold = threshold
        self.participants = list(participants)
        self.curve = curve.new()

        self.secret_coeffs: List[int] = []
        self.public_coeffs: List[Point] = []
        self.secret_shares: Dict[int, int] = {}
        self.received_shares: Dict[int, int] = {}
        self.private_share: Optional[int] = None
        self.public_key: Optional[Point] = None
        self.status = DKGStatus.INITIALIZED

        self.transport = ScalarECIES(self.curve)
        self._shares_ready = threading.Condition()

    @property
    def peers(self) -> List[int]:
        return [pid for pid in self.participants if pid != self.id]

    def generate_secret_polynomial(self) -> PublicCommitments:
        """Sample t random coefficients and publish their Feldman commitments"""
        order = self.curve.order()
        self.secret_coeffs = [random_k(order) for _ in range(self.threshold)]
        self.public_coeffs = [
            self.curve.new().scalar_base_mult(coeff) for coeff in self.secret_coeffs]
        self.status = DKGStatus.POLYNOMIAL_GENERATED
        logger.debug(
            f"Participant {self.id}: generated degree {self.threshold - 1} polynomial")
        return self.public_commitments()

    def public_commitments(self) -> PublicCommitments:
        return PublicCommitments(sender_id=self.id, commitments=list(self.public_coeffs))

    def compute_shares(self) -> Dict[int, int]:
        """Evaluate the secret polynomial at every participant ID, self included"""
        if not self.secret_coeffs:
            raise DKGError(
                f"Participant {self.id}: secret polynomial not generated")
        order = self.curve.order()
        self.secret_shares = {
            pid: evaluate_polynomial(self.secret_coeffs, pid, order)
            for pid in self.participants
        }
        self.status = DKGStatus.SHARES_COMPUTED
        return dict(self.secret_shares)

    def private_share_for(self, recipient_id: int) -> PrivateShare:
        if recipient_id not in self.secret_shares:
            raise DKGError(
                f"Participant {self.id}: no share computed for {recipient_id}")
        return PrivateShare(self.id, recipient_id, self.secret_shares[recipient_id])

    def encrypted_share_for(self, recipient_id: int, recipient_key: Point) -> EncryptedShare:
        share = self.private_share_for(recipient_id)
        ciphertext, ephemeral = self.transport.encrypt(share.share, recipient_key)
        return EncryptedShare(self.id, recipient_id, ciphertext, ephemeral)

    def receive_share(self, sender_id: int, share: int, public_coeffs: List[Point]):
        """Verify a peer's share against its commitments and store it"""
        if sender_id == self.id or sender_id not in self.participants:
            raise DKGError(
                f"Participant {self.id}: unexpected share sender {sender_id}")
        if len(public_coeffs) != self.threshold:
            raise ShareVerificationError(
                f"Participant {sender_id} published {len(public_coeffs)} commitments, "
                f"expected {self.threshold}")
        if not self._verify_share(share, public_coeffs):
            logger.warning(
                f"Participant {self.id}: rejected share from {sender_id}")
            raise ShareVerificationError(
                f"invalid share from participant {sender_id}")

        with self._shares_ready:
            self.received_shares[sender_id] = share % self.curve.order()
            self._shares_ready.notify_all()

    def receive_encrypted_share(self, message: EncryptedShare, public_coeffs: List[Point]):
        if message.recipient_id != self.id:
            raise DKGError(
                f"Participant {self.id}: share addressed to {message.recipient_id}")
        share = self.transport.decrypt(message.ciphertext, message.ephemeral)
        self.receive_share(message.sender_id, share, public_coeffs)

    def _verify_share(self, share: int, public_coeffs: List[Point]) -> bool:
        """Check share*G == sum(C_j * id^j)"""
        order = self.curve.order()
        lhs = self.curve.new().scalar_base_mult(share)

        rhs = self.curve.new()
        x_power = 1
        for commitment in public_coeffs:
            term = self.curve.new().scalar_mult(commitment, x_power)
            rhs.add(rhs, term)
            x_power = x_power * self.id % order
        return lhs.equal(rhs)

    def _all_shares_received(self) -> bool:
        return all(pid in self.received_shares for pid in self.peers)

    def aggregate_shares(self, timeout: Optional[float] = None) -> int:
        """Block until every peer's share is verified, then sum them with our own"""
        if self.id not in self.secret_shares:
            raise DKGError(f"Participant {self.id}: shares not computed")
        with self._shares_ready:
            if not self._shares_ready.wait_for(self._all_shares_received, timeout):
                missing = [pid for pid in self.peers if pid not in self.received_shares]
                raise ThresholdViolationError(
                    f"Participant {self.id}: missing shares from {missing}")
            received = dict(self.received_shares)

        order = self.curve.order()
        total = self.secret_shares[self.id]
        for share in received.values():
            total = (total + share) % order
        self.private_share = total
        self.status = DKGStatus.SHARES_AGGREGATED
        logger.debug(f"Participant {self.id}: private share aggregated")
        return total

    def aggregate_public_key(self, all_public_coeffs: Dict[int, List[Point]]) -> Point:
        """Sum of every participant's constant-term commitment"""
        missing = [pid for pid in self.participants if pid not in all_public_coeffs]
        if missing:
            raise ThresholdViolationError(
                f"Participant {self.id}: missing commitments from {missing}")
        public_key = self.curve.new()
        for pid in self.participants:
            public_key.add(public_key, all_public_coeffs[pid][0])
        self.public_key = public_key
        self.status = DKGStatus.COMPLETE
        logger.info(f"Participant {self.id}: public key = {public_key}")
        return public_key

    def compute_partial_decryption(self, c1: Point) -> Point:
        """s_i = private_share * C1"""
        if self.private_share is None:
            raise DKGError(f"Participant {self.id}: setup not completed")
        return c1.new().scalar_mult(c1, self.private_share)


# ============================================================================
# LOCAL COORDINATOR
# ============================================================================


class DistributedKeyGeneration:
    """Runs the full DKG handshake between in-process participants"""

    def __init__(self, threshold: int, num_parties: int, curve_type: str,
                 encrypt_shares: bool = True, max_workers: Optional[int] = None):
        if num_parties <= 0:
            raise ValueError("At least one participant is required")
        if not 1 <= threshold <= num_parties:
            raise ValueError(
                f"Threshold {threshold} must be between 1 and {num_parties}")
        self.threshold = threshold
        self.num_parties = num_parties
        self.curve = new_point(curve_type)
        self.encrypt_shares = encrypt_shares
        self.max_workers = max_workers or num_parties

        ids = list(range(1, num_parties + 1))
        self.participants: Dict[int, Participant] = {
            pid: Participant(pid, threshold, ids, self.curve) for pid in ids
        }

    def _deliver(self, sender: Participant, recipient: Participant,
                 commitments: Dict[int, List[Point]]):
        if self.encrypt_shares:
            message = sender.encrypted_share_for(
                recipient.id, recipient.transport.public_key)
            recipient.receive_encrypted_share(message, commitments[sender.id])
        else:
            message = sender.private_share_for(recipient.id)
            recipient.receive_share(message.sender_id, message.share,
                                    commitments[sender.id])

    def generate_threshold_keys(self) -> Tuple[Point, Dict[int, Participant]]:
        """Generate the joint public key without a trusted dealer"""
        commitments: Dict[int, List[Point]] = {}
        for pid, participant in self.participants.items():
            commitments[pid] = participant.generate_secret_polynomial().commitments
            participant.compute_shares()

        pairs = [
            (sender, recipient)
            for sender in self.participants.values()
            for recipient in self.participants.values()
            if sender.id != recipient.id
        ]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._deliver, s, r, commitments)
                       for s, r in pairs]
            for future in futures:
                future.result()

        public_keys = []
        for participant in self.participants.values():
            participant.aggregate_shares()
            public_keys.append(participant.aggregate_public_key(commitments))

        joint_key = public_keys[0]
        if not all(pk.equal(joint_key) for pk in public_keys[1:]):
            raise DKGError("Participants derived different public keys")

        logger.info(
            f"DKG complete: ({self.threshold},{self.num_parties}) on {self.curve.curve_type}")
        return joint_key, self.participants
