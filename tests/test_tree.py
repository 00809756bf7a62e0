import hashlib
import random

import pytest

from state import (
    SparseMerkleTree, MemoryDatabase, KeyAlreadyExistsError, KeyNotFoundError,
    MaxLevelsReachedError, InvalidKeyError, get_hash_function,
)

EMPTY = b"\x00" * 32


def sha(*parts):
    return hashlib.sha256(b"".join(parts)).digest()


def leaf(key, value):
    return sha(key, value, b"\x01")


@pytest.fixture
def tree():
    return SparseMerkleTree(MemoryDatabase())


def test_empty_tree_root(tree):
    assert tree.root() == EMPTY
    assert tree.max_key_len == 20


def test_single_leaf_is_root(tree):
    tree.add(b"\x01", b"v1")
    assert tree.root() == leaf(b"\x01", b"v1")
    assert tree.get(b"\x01") == b"v1"


def test_siblings_on_first_bit(tree):
    # bit 0 of 0x01 is 1 and of 0x02 is 0
    tree.add(b"\x01", b"a")
    tree.add(b"\x02", b"b")
    assert tree.root() == sha(leaf(b"\x02", b"b"), leaf(b"\x01", b"a"))


def test_colliding_prefix_pushes_leaves_down(tree):
    # 0x01 and 0x03 share bit 0 and differ at bit 1
    tree.add(b"\x01", b"a")
    tree.add(b"\x03", b"c")
    inner = sha(leaf(b"\x01", b"a"), leaf(b"\x03", b"c"))
    assert tree.root() == sha(EMPTY, inner)


def test_root_is_insertion_order_independent():
    items = [(bytes([i, i * 7 % 256]), bytes([i]) * 4) for i in range(1, 40)]
    roots = set()
    for seed in range(3):
        shuffled = list(items)
        random.Random(seed).shuffle(shuffled)
        tree = SparseMerkleTree(MemoryDatabase())
        for key, value in shuffled:
            tree.add(key, value)
        roots.add(tree.root())
    assert len(roots) == 1


def test_update_changes_root_and_value(tree):
    tree.add(b"\x05", b"old")
    tree.add(b"\x06", b"other")
    before = tree.root()
    tree.update(b"\x05", b"new")
    assert tree.get(b"\x05") == b"new"
    assert tree.root() != before

    fresh = SparseMerkleTree(MemoryDatabase())
    fresh.add(b"\x06", b"other")
    fresh.add(b"\x05", b"new")
    assert fresh.root() == tree.root()


def test_add_existing_key_fails(tree):
    tree.add(b"\x01", b"a")
    with pytest.raises(KeyAlreadyExistsError):
        tree.add(b"\x01", b"b")


def test_update_and_get_missing_key_fail(tree):
    tree.add(b"\x01", b"a")
    with pytest.raises(KeyNotFoundError):
        tree.update(b"\x02", b"b")
    with pytest.raises(KeyNotFoundError):
        tree.get(b"\x03")


def test_invalid_keys(tree):
    with pytest.raises(InvalidKeyError):
        tree.add(b"", b"v")
    with pytest.raises(InvalidKeyError):
        tree.get(b"\x01" * 21)


def test_trailing_zero_variants_exhaust_levels(tree):
    tree.add(b"\x01", b"a")
    with pytest.raises(MaxLevelsReachedError):
        tree.add(b"\x01\x00", b"b")


def test_inclusion_proof(tree):
    for i in range(1, 20):
        tree.add(bytes([i]), bytes([i]) * 3)
    root = tree.root()
    leaf_key, leaf_value, siblings, existence = tree.gen_proof(b"\x07")
    assert existence
    assert (leaf_key, leaf_value) == (b"\x07", b"\x07" * 3)
    assert tree.check_proof(b"\x07", leaf_value, root, siblings)
    assert not tree.check_proof(b"\x07", b"forged", root, siblings)


def test_exclusion_proof_with_leaf_on_path(tree):
    tree.add(b"\x01", b"a")
    root = tree.root()
    leaf_key, leaf_value, siblings, existence = tree.gen_proof(b"\x03")
    assert not existence
    assert leaf_key == b"\x01"
    assert tree.check_exclusion(b"\x03", leaf_key, leaf_value, root, siblings)
    assert not tree.check_exclusion(b"\x01", leaf_key, leaf_value, root, siblings)


def test_exclusion_proof_with_empty_terminus(tree):
    tree.add(b"\x01", b"a")
    tree.add(b"\x03", b"c")
    root = tree.root()
    leaf_key, leaf_value, siblings, existence = tree.gen_proof(b"\x02")
    assert not existence
    assert (leaf_key, leaf_value) == (b"", b"")
    assert siblings == [sha(leaf(b"\x01", b"a"), leaf(b"\x03", b"c"))]
    assert tree.check_exclusion(b"\x02", b"", b"", root, siblings)


def test_write_transaction_isolation():
    db = MemoryDatabase()
    tree = SparseMerkleTree(db)
    tx = db.write_tx()
    tree.add(b"\x01", b"a", tx)
    assert tree.root(tx) == leaf(b"\x01", b"a")
    assert tree.get(b"\x01", tx) == b"a"
    assert tree.root() == EMPTY
    tx.commit()
    assert tree.root() == leaf(b"\x01", b"a")


def test_discarded_transaction_leaves_tree_untouched():
    db = MemoryDatabase()
    tree = SparseMerkleTree(db)
    tree.add(b"\x01", b"a")
    before = tree.root()
    tx = db.write_tx()
    tree.update(b"\x01", b"b", tx)
    tx.discard()
    assert tree.root() == before
    assert tree.get(b"\x01") == b"a"


def test_blake2b_tree():
    tree = SparseMerkleTree(MemoryDatabase(), hash_function="blake2b")
    tree.add(b"\x01", b"v")
    expected = hashlib.blake2b(b"\x01v\x01", digest_size=32).digest()
    assert tree.root() == expected


def test_unknown_hash_function():
    with pytest.raises(ValueError):
        get_hash_function("md5")
    with pytest.raises(ValueError):
        SparseMerkleTree(MemoryDatabase(), max_levels=0)


def test_reopen_keeps_root():
    db = MemoryDatabase()
    SparseMerkleTree(db).add(b"\x09", b"z")
    assert SparseMerkleTree(db).get(b"\x09") == b"z"
