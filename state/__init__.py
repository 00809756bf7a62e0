"""Merkle-authenticated process state and batch transitions."""

from .state import (
    # Core class
    State,
    StateStatus,
    DEFAULT_VOTES_PER_BATCH,

    # Exceptions
    StateError,
    AlreadyInitializedError,
    NotInitializedError,
    BatchNotOpenError,
    BatchAlreadyOpenError,
    BatchFullError,
)
from .vote import Vote, BatchSlot
from .process import (
    BallotMode,
    encryption_key_to_bytes,
    encryption_key_from_bytes,
    KEY_PROCESS_ID,
    KEY_CENSUS_ROOT,
    KEY_BALLOT_MODE,
    KEY_ENCRYPTION_KEY,
    KEY_RESULTS_ADD,
    KEY_RESULTS_SUB,
)
from .merkleproof import (
    ArboProof,
    ArboTransition,
    ProcessProofs,
    VotesProofs,
    transition_function_code,
    noop_transition,
)
from .tree import (
    SparseMerkleTree,
    HASH_FUNCTIONS,
    get_hash_function,
    TreeError,
    KeyNotFoundError,
    KeyAlreadyExistsError,
    MaxLevelsReachedError,
    InvalidKeyError,
)
from .storage import (
    Database,
    WriteTx,
    MemoryDatabase,
    SQLiteDatabase,
    PrefixedDatabase,
    StorageError,
    TransactionClosedError,
)

__version__ = "1.0.0"

__all__ = [
    # State engine
    'State',
    'StateStatus',
    'DEFAULT_VOTES_PER_BATCH',
    'Vote',
    'BatchSlot',

    # Process metadata
    'BallotMode',
    'encryption_key_to_bytes',
    'encryption_key_from_bytes',
    'KEY_PROCESS_ID',
    'KEY_CENSUS_ROOT',
    'KEY_BALLOT_MODE',
    'KEY_ENCRYPTION_KEY',
    'KEY_RESULTS_ADD',
    'KEY_RESULTS_SUB',

    # Proofs
    'ArboProof',
    'ArboTransition',
    'ProcessProofs',
    'VotesProofs',
    'transition_function_code',
    'noop_transition',

    # Tree and storage
    'SparseMerkleTree',
    'HASH_FUNCTIONS',
    'get_hash_function',
    'Database',
    'WriteTx',
    'MemoryDatabase',
    'SQLiteDatabase',
    'PrefixedDatabase',

    # Exceptions
    'StateError',
    'AlreadyInitializedError',
    'NotInitializedError',
    'BatchNotOpenError',
    'BatchAlreadyOpenError',
    'BatchFullError',
    'TreeError',
    'KeyNotFoundError',
    'KeyAlreadyExistsError',
    'MaxLevelsReachedError',
    'InvalidKeyError',
    'StorageError',
    'TransactionClosedError',
]
