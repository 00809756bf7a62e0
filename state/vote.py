"""Votes accepted by a batch and the fixed-size slots they occupy."""

from dataclasses import dataclass
from typing import List

from elgamal import Ballot

PADDING_NULLIFIER = b"\x00"
PADDING_ADDRESS = b"\x00"


def bytes_to_int(data: bytes) -> int:
    """Little-endian integer value of tree keys and values"""
    return int.from_bytes(data, "little")


def int_to_bytes(value: int, length: int) -> bytes:
    return value.to_bytes(length, "little")


@dataclass(frozen=True)
class Vote:
    """One accepted ballot submission"""
    address: bytes
    commitment: int
    nullifier: bytes
    ballot: Ballot

    def __post_init__(self):
        if not self.nullifier:
            raise ValueError("vote nullifier cannot be empty")
        if not self.address:
            raise ValueError("vote address cannot be empty")
        if self.commitment < 0:
            raise ValueError("vote commitment must be non-negative")

    def serialize_big_ints(self) -> List[int]:
        """address, commitment, nullifier, then the ballot coordinates"""
        return [
            bytes_to_int(self.address),
            self.commitment,
            bytes_to_int(self.nullifier),
            *self.ballot.serialize_big_ints(),
        ]


@dataclass(frozen=True)
class BatchSlot:
    vote: Vote
    is_padding: bool = False


def padding_vote(ballot: Ballot) -> Vote:
    return Vote(
        address=PADDING_ADDRESS,
        commitment=0,
        nullifier=PADDING_NULLIFIER,
        ballot=ballot,
    )
