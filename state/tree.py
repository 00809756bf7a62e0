"""
Sparse Merkle Tree
==================
Key/value Merkle tree with the node layout used by arbo-style circuits:

- the path of a key is its bits read little-endian (bit n of byte n // 8)
- a leaf hashes to H(key, value, 0x01)
- an intermediate node hashes to H(left, right)
- an empty subtree is the all-zero digest

A leaf sits at the first empty position along its path. Inserting a key whose
path collides with an existing leaf pushes both leaves down until their paths
diverge. Nodes are stored by hash in a key/value database and every mutator
can run inside a caller-provided write transaction.
"""

import hashlib
import logging
from contextlib import contextmanager
from math import ceil
from typing import Dict, Iterator, List, Optional, Tuple

from .storage import Database, WriteTx

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_MAX_LEVELS = 160

PREFIX_LEAF = b"\x01"
PREFIX_INTERMEDIATE = b"\x02"
DB_KEY_ROOT = b"root"
LEAF_DOMAIN = b"\x01"

# ============================================================================
# EXCEPTIONS
# ============================================================================


class TreeError(Exception):
    """Base exception for Merkle tree operations"""
    pass


class KeyNotFoundError(TreeError):
    """Raised when a key has no leaf in the tree"""
    pass


class KeyAlreadyExistsError(TreeError):
    """Raised when adding a key that already has a leaf"""
    pass


class MaxLevelsReachedError(TreeError):
    """Raised when two keys share a path deeper than the tree allows"""
    pass


class InvalidKeyError(TreeError):
    """Raised when a key is empty or longer than the tree's key space"""
    pass


# ============================================================================
# HASH FUNCTIONS
# ============================================================================


class HashFunction:
    name = ""
    length = 32

    def hash(self, *inputs: bytes) -> bytes:
        raise NotImplementedError


class HashSha256(HashFunction):
    name = "sha256"

    def hash(self, *inputs: bytes) -> bytes:
        return hashlib.sha256(b"".join(inputs)).digest()


class HashBlake2b(HashFunction):
    name = "blake2b"

    def hash(self, *inputs: bytes) -> bytes:
        return hashlib.blake2b(b"".join(inputs), digest_size=self.length).digest()


HASH_FUNCTIONS: Dict[str, HashFunction] = {
    HashSha256.name: HashSha256(),
    HashBlake2b.name: HashBlake2b(),
}


def get_hash_function(name: str) -> HashFunction:
    try:
        return HASH_FUNCTIONS[name]
    except KeyError:
        raise ValueError(
            f"unknown hash function {name!r}, expected one of {list(HASH_FUNCTIONS)}") from None


# ============================================================================
# TREE
# ============================================================================


class SparseMerkleTree:
    """Database-backed sparse Merkle tree over byte keys"""

    def __init__(self, database: Database, max_levels: int = DEFAULT_MAX_LEVELS,
                 hash_function: str = "sha256"):
        if max_levels <= 0:
            raise ValueError("max_levels must be positive")
        self.database = database
        self.max_levels = max_levels
        self.hash_function = get_hash_function(hash_function)
        self.empty = b"\x00" * self.hash_function.length
        self.max_key_len = ceil(max_levels / 8)

        if database.get(DB_KEY_ROOT) is None:
            with database.write_tx() as tx:
                tx.set(DB_KEY_ROOT, self.empty)
                tx.commit()

    # ------------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------------

    @contextmanager
    def _write(self, wtx: Optional[WriteTx]) -> Iterator[WriteTx]:
        if wtx is not None:
            yield wtx
            return
        with self.database.write_tx() as tx:
            yield tx
            tx.commit()

    def validate_key(self, key: bytes):
        if not key:
            raise InvalidKeyError("empty key")
        if len(key) > self.max_key_len:
            raise InvalidKeyError(
                f"key of {len(key)} bytes exceeds maximum of {self.max_key_len}")

    def _path(self, key: bytes) -> List[bool]:
        padded = bytes(key).ljust(self.max_key_len, b"\x00")
        return [bool(padded[n // 8] & (1 << (n % 8))) for n in range(self.max_levels)]

    def leaf_hash(self, key: bytes, value: bytes) -> bytes:
        return self.hash_function.hash(key, value, LEAF_DOMAIN)

    def _write_leaf(self, tx: WriteTx, key: bytes, value: bytes) -> bytes:
        node_hash = self.leaf_hash(key, value)
        tx.set(node_hash, PREFIX_LEAF + bytes([len(key)]) + key + value)
        return node_hash

    def _write_intermediate(self, tx: WriteTx, left: bytes, right: bytes) -> bytes:
        node_hash = self.hash_function.hash(left, right)
        tx.set(node_hash, PREFIX_INTERMEDIATE + left + right)
        return node_hash

    @staticmethod
    def _decode_leaf(node: bytes) -> Tuple[bytes, bytes]:
        key_len = node[1]
        return node[2:2 + key_len], node[2 + key_len:]

    def _read_node(self, store, node_hash: bytes) -> bytes:
        node = store.get(node_hash)
        if node is None:
            raise TreeError(f"missing tree node {node_hash.hex()}")
        return node

    def _root(self, store) -> bytes:
        root = store.get(DB_KEY_ROOT)
        return self.empty if root is None else root

    def _down(self, store, path: List[bool]):
        """Walk along path until an empty node or a leaf: (siblings, node_hash, leaf_node)"""
        siblings: List[bytes] = []
        current = self._root(store)
        level = 0
        size = self.hash_function.length
        while True:
            if current == self.empty:
                return siblings, current, None
            node = self._read_node(store, current)
            if node[:1] == PREFIX_LEAF:
                return siblings, current, node
            if level >= self.max_levels:
                raise MaxLevelsReachedError(
                    f"path exceeds {self.max_levels} levels")
            left, right = node[1:1 + size], node[1 + size:1 + 2 * size]
            if path[level]:
                siblings.append(left)
                current = right
            else:
                siblings.append(right)
                current = left
            level += 1

    def _up(self, tx: WriteTx, node_hash: bytes, siblings: List[bytes], path: List[bool]) -> bytes:
        current = node_hash
        for level in reversed(range(len(siblings))):
            if path[level]:
                current = self._write_intermediate(tx, siblings[level], current)
            else:
                current = self._write_intermediate(tx, current, siblings[level])
        return current

    # ------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------

    def root(self, rtx: Optional[WriteTx] = None) -> bytes:
        return self._root(rtx or self.database)

    def add(self, key: bytes, value: bytes, wtx: Optional[WriteTx] = None):
        key, value = bytes(key), bytes(value)
        self.validate_key(key)
        with self._write(wtx) as tx:
            path = self._path(key)
            siblings, node_hash, leaf = self._down(tx, path)
            if leaf is not None:
                old_key, _ = self._decode_leaf(leaf)
                if old_key == key:
                    raise KeyAlreadyExistsError(f"key {key.hex()} already exists")
                old_path = self._path(old_key)
                level = len(siblings)
                while True:
                    if level >= self.max_levels:
                        raise MaxLevelsReachedError(
                            f"keys {key.hex()} and {old_key.hex()} share a "
                            f"path longer than {self.max_levels} levels")
                    if path[level] != old_path[level]:
                        break
                    siblings.append(self.empty)
                    level += 1
                siblings.append(node_hash)

            leaf_hash = self._write_leaf(tx, key, value)
            tx.set(DB_KEY_ROOT, self._up(tx, leaf_hash, siblings, path))

    def update(self, key: bytes, value: bytes, wtx: Optional[WriteTx] = None):
        key, value = bytes(key), bytes(value)
        self.validate_key(key)
        with self._write(wtx) as tx:
            path = self._path(key)
            siblings, _, leaf = self._down(tx, path)
            if leaf is None or self._decode_leaf(leaf)[0] != key:
                raise KeyNotFoundError(f"key {key.hex()} not found")
            leaf_hash = self._write_leaf(tx, key, value)
            tx.set(DB_KEY_ROOT, self._up(tx, leaf_hash, siblings, path))

    def get(self, key: bytes, rtx: Optional[WriteTx] = None) -> bytes:
        key = bytes(key)
        self.validate_key(key)
        _, _, leaf = self._down(rtx or self.database, self._path(key))
        if leaf is not None:
            leaf_key, leaf_value = self._decode_leaf(leaf)
            if leaf_key == key:
                return leaf_value
        raise KeyNotFoundError(f"key {key.hex()} not found")

    def gen_proof(self, key: bytes, rtx: Optional[WriteTx] = None
                  ) -> Tuple[bytes, bytes, List[bytes], bool]:
        """Return (leaf_key, leaf_value, siblings, existence) for key.

        When key is absent the leaf found on its path is returned instead,
        or empty key and value if the path ends in an empty subtree.
        """
        key = bytes(key)
        self.validate_key(key)
        siblings, _, leaf = self._down(rtx or self.database, self._path(key))
        if leaf is None:
            return b"", b"", siblings, False
        leaf_key, leaf_value = self._decode_leaf(leaf)
        return leaf_key, leaf_value, siblings, leaf_key == key

    def compute_root(self, leaf_hash: bytes, siblings: List[bytes], path: List[bool]) -> bytes:
        current = leaf_hash
        for level in reversed(range(len(siblings))):
            if path[level]:
                current = self.hash_function.hash(siblings[level], current)
            else:
                current = self.hash_function.hash(current, siblings[level])
        return current

    def check_proof(self, key: bytes, value: bytes, root: bytes, siblings: List[bytes]) -> bool:
        """Verify that (key, value) is included under root"""
        key = bytes(key)
        self.validate_key(key)
        return self.compute_root(
            self.leaf_hash(key, bytes(value)), siblings, self._path(key)) == root

    def check_exclusion(self, key: bytes, leaf_key: bytes, leaf_value: bytes,
                        root: bytes, siblings: List[bytes]) -> bool:
        """Verify that key is absent given the terminal leaf (or empty node) on its path"""
        key = bytes(key)
        self.validate_key(key)
        path = self._path(key)
        if not leaf_key:
            return self.compute_root(self.empty, siblings, path) == root
        if bytes(leaf_key) == key:
            return False
        if self._path(leaf_key)[:len(siblings)] != path[:len(siblings)]:
            return False
        return self.check_proof(leaf_key, leaf_value, root, siblings)
