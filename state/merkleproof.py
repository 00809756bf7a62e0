"""
Merkle Proofs and Transitions
=============================
An ArboProof is one inclusion or exclusion proof against a single root. An
ArboTransition pairs the proof taken before a write with the proof taken
after it, on the same sibling path, and classifies the edit:

    before  after   fnc0 fnc1
    False   False   0    0     no-op
    True    True    0    1     update
    False   True    1    0     insert
    True    False   1    1     delete
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .vote import bytes_to_int

BALLOT_VALUE_THRESHOLD = 32


def transition_function_code(before_exists: bool, after_exists: bool) -> Tuple[int, int]:
    if not before_exists and not after_exists:
        return 0, 0
    if before_exists and after_exists:
        return 0, 1
    if not before_exists and after_exists:
        return 1, 0
    return 1, 1


@dataclass
class ArboProof:
    root: bytes
    siblings: List[bytes] = field(default_factory=list)
    key: bytes = b""
    value: bytes = b""
    existence: bool = False

    @property
    def fnc(self) -> int:
        """0 for inclusion, 1 for non-inclusion"""
        return 0 if self.existence else 1

    def padded_siblings(self, max_levels: int) -> List[int]:
        if len(self.siblings) > max_levels:
            raise ValueError(
                f"proof has {len(self.siblings)} siblings, more than {max_levels} levels")
        values = [bytes_to_int(s) for s in self.siblings]
        return values + [0] * (max_levels - len(values))

    def to_dict(self) -> Dict[str, object]:
        return {
            'root': self.root.hex(),
            'siblings': [s.hex() for s in self.siblings],
            'key': self.key.hex(),
            'value': self.value.hex(),
            'existence': self.existence,
        }


@dataclass
class ArboTransition:
    """Before/after proof pair sharing one sibling path"""
    old_root: bytes
    new_root: bytes
    siblings: List[bytes]
    old_key: bytes
    old_value: bytes
    new_key: bytes
    new_value: bytes
    is_old0: int
    fnc0: int
    fnc1: int

    @classmethod
    def from_proof_pair(cls, before: ArboProof, after: ArboProof) -> 'ArboTransition':
        fnc0, fnc1 = transition_function_code(before.existence, after.existence)
        is_old0 = 1 if before.key == b"" and before.value == b"" else 0
        return cls(
            old_root=before.root,
            new_root=after.root,
            siblings=list(before.siblings),
            old_key=before.key,
            old_value=before.value,
            new_key=after.key,
            new_value=after.value,
            is_old0=is_old0,
            fnc0=fnc0,
            fnc1=fnc1,
        )

    @property
    def is_noop(self) -> bool:
        return self.fnc0 == 0 and self.fnc1 == 0

    @property
    def is_update(self) -> bool:
        return self.fnc0 == 0 and self.fnc1 == 1

    @property
    def is_insert(self) -> bool:
        return self.fnc0 == 1 and self.fnc1 == 0

    @property
    def is_delete(self) -> bool:
        return self.fnc0 == 1 and self.fnc1 == 1

    @property
    def is_old_ballot(self) -> bool:
        return len(self.old_value) > BALLOT_VALUE_THRESHOLD

    @property
    def is_new_ballot(self) -> bool:
        return len(self.new_value) > BALLOT_VALUE_THRESHOLD

    def to_dict(self) -> Dict[str, object]:
        return {
            'oldRoot': self.old_root.hex(),
            'newRoot': self.new_root.hex(),
            'siblings': [s.hex() for s in self.siblings],
            'oldKey': self.old_key.hex(),
            'oldValue': self.old_value.hex(),
            'newKey': self.new_key.hex(),
            'newValue': self.new_value.hex(),
            'isOld0': self.is_old0,
            'fnc0': self.fnc0,
            'fnc1': self.fnc1,
        }


def noop_transition(root: bytes) -> ArboTransition:
    """Transition that leaves root untouched, used for padding slots"""
    proof = ArboProof(root=root)
    return ArboTransition.from_proof_pair(proof, proof)


@dataclass
class ProcessProofs:
    id: Optional[ArboProof] = None
    census_root: Optional[ArboProof] = None
    ballot_mode: Optional[ArboProof] = None
    encryption_key: Optional[ArboProof] = None


@dataclass
class VotesProofs:
    results_add: Optional[ArboTransition] = None
    results_sub: Optional[ArboTransition] = None
    ballot: List[ArboTransition] = field(default_factory=list)
    commitment: List[ArboTransition] = field(default_factory=list)
