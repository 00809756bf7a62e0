"""
Process State
=============
Merkle-authenticated state of one voting process. The tree holds six fixed
keys (process ID, census root, ballot mode, encryption key and the two
running sums) plus one leaf per nullifier (the ballot) and one per address
(the commitment).

Lifecycle::

    UNINITIALIZED --initialize--> INITIALIZED --start_batch--> BATCH_OPEN
          BATCH_OPEN --end_batch--> INITIALIZED

Votes accepted between ``start_batch`` and ``end_batch`` are only written to
the tree when the batch ends, inside one write transaction that records a
before/after transition for every write.
"""

import logging
from enum import Enum
from typing import List, Optional

from ecc import Point, new_point, DEFAULT_CURVE
from elgamal import (
    Ballot, ElGamalError, FIELDS_PER_BALLOT, SERIALIZED_FIELD_SIZE, serialized_ballot_size,
)
from .merkleproof import (
    ArboProof, ArboTransition, ProcessProofs, VotesProofs, noop_transition,
)
from .process import (
    BallotMode, encryption_key_from_bytes, encryption_key_to_bytes,
    KEY_PROCESS_ID, KEY_CENSUS_ROOT, KEY_BALLOT_MODE, KEY_ENCRYPTION_KEY,
    KEY_RESULTS_ADD, KEY_RESULTS_SUB,
)
from .storage import Database, PrefixedDatabase, WriteTx
from .tree import SparseMerkleTree, KeyNotFoundError, TreeError, DEFAULT_MAX_LEVELS
from .vote import BatchSlot, Vote, bytes_to_int, int_to_bytes, padding_vote

logger = logging.getLogger(__name__)

DEFAULT_VOTES_PER_BATCH = 10

RESERVED_KEYS = (
    KEY_PROCESS_ID, KEY_CENSUS_ROOT, KEY_BALLOT_MODE,
    KEY_ENCRYPTION_KEY, KEY_RESULTS_ADD, KEY_RESULTS_SUB,
)

# ============================================================================
# EXCEPTIONS AND ENUMS
# ============================================================================


class StateError(Exception):
    """Base exception for process state operations"""
    pass


class AlreadyInitializedError(StateError):
    """Raised when initialize is called on a state that holds a process"""
    pass


class NotInitializedError(StateError):
    """Raised when the process keys have not been written yet"""
    pass


class BatchNotOpenError(StateError):
    """Raised when adding or ending without start_batch"""
    pass


class BatchAlreadyOpenError(StateError):
    """Raised when start_batch is called twice"""
    pass


class BatchFullError(StateError):
    """Raised when the batch already holds votes_per_batch votes"""
    pass


class StateStatus(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    BATCH_OPEN = "batch_open"


def _same_path(a: bytes, b: bytes) -> bool:
    return a.rstrip(b"\x00") == b.rstrip(b"\x00")


# ============================================================================
# STATE
# ============================================================================


class State:
    """State tree of one process, namespaced by its ID inside database"""

    def __init__(self, database: Database, process_id: bytes,
                 curve_type: str = DEFAULT_CURVE,
                 hash_function: str = "sha256",
                 votes_per_batch: int = DEFAULT_VOTES_PER_BATCH,
                 fields_per_ballot: int = FIELDS_PER_BALLOT,
                 max_levels: int = DEFAULT_MAX_LEVELS):
        if not process_id:
            raise ValueError("process ID cannot be empty")
        if votes_per_batch <= 0:
            raise ValueError("votes_per_batch must be positive")
        if fields_per_ballot <= 0:
            raise ValueError("fields_per_ballot must be positive")

        self.curve = new_point(curve_type)
        self.votes_per_batch = votes_per_batch
        self.fields_per_ballot = fields_per_ballot
        self._process_id = bytes(process_id)
        self._db = PrefixedDatabase(database, self._process_id)
        self.tree = SparseMerkleTree(self._db, max_levels, hash_function)
        self._tx: Optional[WriteTx] = None

        # Batch scratch
        self.old_results_add = self._new_ballot()
        self.old_results_sub = self._new_ballot()
        self.new_results_add = self._new_ballot()
        self.new_results_sub = self._new_ballot()
        self.ballot_sum = self._new_ballot()
        self.overwrite_sum = self._new_ballot()
        self._overwritten_ballots: List[Ballot] = []
        self._ballot_count = 0
        self._overwrite_count = 0
        self._votes: List[Vote] = []

        # Transition witness of the last finished batch
        self.root_hash_before: Optional[int] = None
        self.process_proofs = ProcessProofs()
        self.votes_proofs = VotesProofs()

        if self._has_key(KEY_PROCESS_ID):
            self.status = StateStatus.INITIALIZED
            logger.info(f"Resumed state for process {self._process_id.hex()}")
        else:
            self.status = StateStatus.UNINITIALIZED

    def _new_ballot(self) -> Ballot:
        return Ballot(self.curve, self.fields_per_ballot)

    def _has_key(self, key: bytes) -> bool:
        try:
            self.tree.get(key)
        except KeyNotFoundError:
            return False
        return True

    def _require_initialized(self):
        if self.status == StateStatus.UNINITIALIZED:
            raise NotInitializedError(
                f"process {self._process_id.hex()} is not initialized")

    def _read(self, key: bytes) -> bytes:
        self._require_initialized()
        return self.tree.get(key)

    def _read_ballot(self, key: bytes) -> Ballot:
        try:
            return self._new_ballot().deserialize(self._read(key))
        except ElGamalError as e:
            raise StateError(f"stored ballot at key {key.hex()} is invalid: {e}") from e

    # ------------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------------

    def initialize(self, census_root: bytes, ballot_mode: BallotMode, encryption_key: Point):
        """Seed the six process keys; only valid once per process"""
        if self.status != StateStatus.UNINITIALIZED:
            raise AlreadyInitializedError(
                f"process {self._process_id.hex()} is already initialized")
        if encryption_key.curve_type != self.curve.curve_type:
            raise StateError(
                f"encryption key is on {encryption_key.curve_type}, "
                f"state uses {self.curve.curve_type}")

        zero = self._new_ballot().serialize()
        with self._db.write_tx() as tx:
            self.tree.add(KEY_PROCESS_ID, self._process_id, tx)
            self.tree.add(KEY_CENSUS_ROOT, bytes(census_root), tx)
            self.tree.add(KEY_BALLOT_MODE, ballot_mode.to_bytes(), tx)
            self.tree.add(KEY_ENCRYPTION_KEY, encryption_key_to_bytes(encryption_key), tx)
            self.tree.add(KEY_RESULTS_ADD, zero, tx)
            self.tree.add(KEY_RESULTS_SUB, zero, tx)
            tx.commit()

        self.status = StateStatus.INITIALIZED
        logger.info(
            f"Initialized process {self._process_id.hex()} root={self.root().hex()}")

    def start_batch(self):
        """Open a write transaction and load the running sums as the batch baseline"""
        self._require_initialized()
        if self.status == StateStatus.BATCH_OPEN:
            raise BatchAlreadyOpenError("a batch is already open")

        self.old_results_add = self._read_ballot(KEY_RESULTS_ADD)
        self.old_results_sub = self._read_ballot(KEY_RESULTS_SUB)
        self.ballot_sum = self._new_ballot()
        self.overwrite_sum = self._new_ballot()
        self._overwritten_ballots = []
        self._ballot_count = 0
        self._overwrite_count = 0
        self._votes = []

        self._tx = self._db.write_tx()
        self.status = StateStatus.BATCH_OPEN
        logger.info(f"Batch started for process {self._process_id.hex()}")

    def add_vote(self, vote: Vote):
        """Accept a vote into the open batch.

        A nullifier already present in the tree, or used earlier in this
        batch, makes the vote an overwrite: the replaced ballot is added to
        the overwrite sum. Every accepted ballot is added to the ballot sum.
        Nothing is mutated when the vote is rejected.
        """
        if self.status != StateStatus.BATCH_OPEN:
            raise BatchNotOpenError("start_batch must be called before add_vote")
        if len(self._votes) >= self.votes_per_batch:
            raise BatchFullError(
                f"batch already holds {self.votes_per_batch} votes")
        if (vote.ballot.curve_type != self.curve.curve_type or
                vote.ballot.n_fields != self.fields_per_ballot):
            raise StateError(
                f"ballot {vote.ballot.curve_type}/{vote.ballot.n_fields} does not match "
                f"state {self.curve.curve_type}/{self.fields_per_ballot}")
        if vote.commitment.bit_length() > 8 * SERIALIZED_FIELD_SIZE:
            raise StateError("vote commitment does not fit in 32 bytes")
        for key in (vote.nullifier, vote.address):
            try:
                self.tree.validate_key(key)
            except TreeError as e:
                raise StateError(f"invalid vote key {key.hex()}: {e}") from e
            if any(_same_path(key, reserved) for reserved in RESERVED_KEYS):
                raise StateError(f"vote key {key.hex()} collides with a process key")
        self._check_key_roles(vote)

        previous: Optional[Ballot] = None
        for pending in reversed(self._votes):
            if pending.nullifier == vote.nullifier:
                previous = pending.ballot.copy()
                break
        else:
            try:
                stored = self.tree.get(vote.nullifier)
            except KeyNotFoundError:
                stored = None
            if stored is not None:
                try:
                    previous = self._new_ballot().deserialize(stored)
                except ElGamalError as e:
                    raise StateError(
                        f"stored ballot for nullifier {vote.nullifier.hex()} is invalid: {e}") from e

        if previous is not None:
            self.overwrite_sum.add(self.overwrite_sum, previous)
            self._overwritten_ballots.append(previous)
            self._overwrite_count += 1
            logger.debug(f"Vote overwrite for nullifier {vote.nullifier.hex()}")

        self.ballot_sum.add(self.ballot_sum, vote.ballot)
        self._ballot_count += 1
        self._votes.append(vote)

    def _check_key_roles(self, vote: Vote):
        """Reject keys that would clash with another leaf at end_batch.

        Nullifiers hold ballots and addresses hold commitments in the same
        tree. A key may only reappear with its own role and its exact bytes;
        keys differing only by trailing zeros share a path and cannot coexist.
        """
        if _same_path(vote.nullifier, vote.address):
            raise StateError(
                f"nullifier and address {vote.nullifier.hex()} share a tree path")

        for key, role, other in ((vote.nullifier, "nullifier", "address"),
                                 (vote.address, "address", "nullifier")):
            for pending in self._votes:
                same_role = getattr(pending, role)
                if _same_path(key, same_role) and key != same_role:
                    raise StateError(
                        f"{role} {key.hex()} shares a tree path with pending "
                        f"{role} {same_role.hex()}")
                if _same_path(key, getattr(pending, other)):
                    raise StateError(
                        f"{role} {key.hex()} is already pending as a vote {other}")

            leaf_key, leaf_value, _, existence = self.tree.gen_proof(key)
            if not leaf_key:
                continue
            if not existence and _same_path(key, leaf_key):
                raise StateError(
                    f"{role} {key.hex()} shares a tree path with stored key {leaf_key.hex()}")
            if existence:
                expected = (serialized_ballot_size(self.fields_per_ballot) if role == "nullifier"
                            else SERIALIZED_FIELD_SIZE)
                if len(leaf_value) != expected:
                    raise StateError(
                        f"{role} {key.hex()} is already stored with a "
                        f"{len(leaf_value)}-byte value of another role")

    def end_batch(self):
        """Write the batch to the tree, recording every transition, and commit.

        Proofs are taken in a fixed order: process proofs against the root
        before any write, then one ballot and one commitment transition per
        batch slot, then the two running sums. On failure the transaction is
        discarded and the batch scratch is kept for inspection.
        """
        if self.status != StateStatus.BATCH_OPEN:
            raise BatchNotOpenError("start_batch must be called before end_batch")
        tx = self._tx
        try:
            root_hash_before = self.root_as_int(tx)
            process_proofs = ProcessProofs(
                id=self.gen_proof(KEY_PROCESS_ID, tx),
                census_root=self.gen_proof(KEY_CENSUS_ROOT, tx),
                ballot_mode=self.gen_proof(KEY_BALLOT_MODE, tx),
                encryption_key=self.gen_proof(KEY_ENCRYPTION_KEY, tx),
            )

            votes_proofs = VotesProofs()
            for i in range(self.votes_per_batch):
                if i < len(self._votes):
                    vote = self._votes[i]
                    transition = self._add_or_update(
                        tx, vote.nullifier, vote.ballot.serialize())
                else:
                    transition = noop_transition(self.tree.root(tx))
                votes_proofs.ballot.append(transition)

            for i in range(self.votes_per_batch):
                if i < len(self._votes):
                    vote = self._votes[i]
                    transition = self._add_or_update(
                        tx, vote.address, int_to_bytes(vote.commitment, SERIALIZED_FIELD_SIZE))
                else:
                    transition = noop_transition(self.tree.root(tx))
                votes_proofs.commitment.append(transition)

            new_results_add = self._new_ballot().add(self.old_results_add, self.ballot_sum)
            votes_proofs.results_add = self._add_or_update(
                tx, KEY_RESULTS_ADD, new_results_add.serialize())

            new_results_sub = self._new_ballot().add(self.old_results_sub, self.overwrite_sum)
            votes_proofs.results_sub = self._add_or_update(
                tx, KEY_RESULTS_SUB, new_results_sub.serialize())

            tx.commit()
        except Exception as e:
            logger.error(f"Batch for process {self._process_id.hex()} aborted: {e}")
            tx.discard()
            raise
        finally:
            self._tx = None
            self.status = StateStatus.INITIALIZED

        self.root_hash_before = root_hash_before
        self.process_proofs = process_proofs
        self.votes_proofs = votes_proofs
        self.new_results_add = new_results_add
        self.new_results_sub = new_results_sub
        logger.info(
            f"Batch ended for process {self._process_id.hex()}: "
            f"{self._ballot_count} ballots, {self._overwrite_count} overwrites, "
            f"root={self.root().hex()}")

    def _add_or_update(self, tx: WriteTx, key: bytes, value: bytes) -> ArboTransition:
        before = self.gen_proof(key, tx)
        if before.existence:
            self.tree.update(key, value, tx)
        else:
            self.tree.add(key, value, tx)
        after = self.gen_proof(key, tx)
        return ArboTransition.from_proof_pair(before, after)

    def close(self):
        """Discard any open batch. The shared database stays open for its owner."""
        if self._tx is not None:
            self._tx.discard()
            self._tx = None
            self.status = StateStatus.INITIALIZED

    # ------------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------------

    def root(self, rtx: Optional[WriteTx] = None) -> bytes:
        return self.tree.root(rtx)

    def root_as_int(self, rtx: Optional[WriteTx] = None) -> int:
        return bytes_to_int(self.root(rtx))

    def gen_proof(self, key: bytes, rtx: Optional[WriteTx] = None) -> ArboProof:
        root = self.tree.root(rtx)
        leaf_key, leaf_value, siblings, existence = self.tree.gen_proof(key, rtx)
        return ArboProof(root=root, siblings=siblings, key=leaf_key,
                         value=leaf_value, existence=existence)

    @property
    def ballot_count(self) -> int:
        return self._ballot_count

    @property
    def overwrite_count(self) -> int:
        return self._overwrite_count

    def votes(self) -> List[Vote]:
        return list(self._votes)

    def padded_votes(self) -> List[Vote]:
        """Real votes followed by padding votes up to votes_per_batch"""
        return [slot.vote for slot in self.batch_slots()]

    def batch_slots(self) -> List[BatchSlot]:
        slots = [BatchSlot(vote) for vote in self._votes]
        while len(slots) < self.votes_per_batch:
            slots.append(BatchSlot(padding_vote(self._new_ballot()), is_padding=True))
        return slots

    def overwritten_ballots(self) -> List[Ballot]:
        ballots = [b.copy() for b in self._overwritten_ballots]
        while len(ballots) < self.votes_per_batch:
            ballots.append(self._new_ballot())
        return ballots

    def process_id(self) -> bytes:
        return self._read(KEY_PROCESS_ID)

    def census_root(self) -> bytes:
        return self._read(KEY_CENSUS_ROOT)

    def ballot_mode(self) -> BallotMode:
        return BallotMode.from_bytes(self._read(KEY_BALLOT_MODE))

    def encryption_key(self) -> Point:
        return encryption_key_from_bytes(self.curve, self._read(KEY_ENCRYPTION_KEY))

    def results_add(self) -> Ballot:
        """Committed running sum of every accepted ballot"""
        return self._read_ballot(KEY_RESULTS_ADD)

    def results_sub(self) -> Ballot:
        """Committed running sum of every overwritten ballot"""
        return self._read_ballot(KEY_RESULTS_SUB)

    # ------------------------------------------------------------------------
    # Witness
    # ------------------------------------------------------------------------

    def aggregated_witness_inputs(self) -> List[bytes]:
        """Preimage of the aggregated witness hash.

        process ID, census root, ballot mode, encryption key, then the
        nullifiers, ballots, addresses and commitments of the padded votes.
        """
        hash_len = self.tree.hash_function.length
        inputs = [
            self.process_id(),
            self.census_root(),
            self.ballot_mode().to_bytes(),
            encryption_key_to_bytes(self.encryption_key()),
        ]
        votes = self.padded_votes()
        inputs.extend(v.nullifier for v in votes)
        inputs.extend(v.ballot.serialize() for v in votes)
        inputs.extend(v.address for v in votes)
        inputs.extend(int_to_bytes(v.commitment, hash_len) for v in votes)
        return inputs

    def aggregated_witness_hash(self) -> bytes:
        return self.tree.hash_function.hash(*self.aggregated_witness_inputs())
