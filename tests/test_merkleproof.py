import pytest

from state import (
    ArboProof, ArboTransition, MemoryDatabase, SparseMerkleTree,
    transition_function_code, noop_transition,
)


def proof_for(tree, key, rtx=None):
    leaf_key, leaf_value, siblings, existence = tree.gen_proof(key, rtx)
    return ArboProof(root=tree.root(rtx), siblings=siblings, key=leaf_key,
                     value=leaf_value, existence=existence)


@pytest.mark.parametrize("before, after, expected", [
    (False, False, (0, 0)),
    (True, True, (0, 1)),
    (False, True, (1, 0)),
    (True, False, (1, 1)),
])
def test_transition_function_codes(before, after, expected):
    assert transition_function_code(before, after) == expected


def test_insert_into_empty_tree_sets_is_old0():
    tree = SparseMerkleTree(MemoryDatabase())
    before = proof_for(tree, b"\x10")
    tree.add(b"\x10", b"value")
    after = proof_for(tree, b"\x10")

    transition = ArboTransition.from_proof_pair(before, after)
    assert transition.is_insert
    assert transition.is_old0 == 1
    assert transition.old_root == b"\x00" * 32
    assert transition.new_root == tree.root()
    assert transition.new_key == b"\x10"
    assert transition.new_value == b"value"


def test_insert_next_to_existing_leaf_is_not_old0():
    tree = SparseMerkleTree(MemoryDatabase())
    tree.add(b"\x01", b"a")
    before = proof_for(tree, b"\x03")
    tree.add(b"\x03", b"c")
    after = proof_for(tree, b"\x03")

    transition = ArboTransition.from_proof_pair(before, after)
    assert transition.is_insert
    assert transition.is_old0 == 0
    assert transition.old_key == b"\x01"


def test_update_transition_keeps_siblings():
    tree = SparseMerkleTree(MemoryDatabase())
    tree.add(b"\x01", b"a")
    tree.add(b"\x02", b"b")
    before = proof_for(tree, b"\x01")
    tree.update(b"\x01", b"z")
    after = proof_for(tree, b"\x01")

    transition = ArboTransition.from_proof_pair(before, after)
    assert transition.is_update
    assert transition.siblings == after.siblings
    assert (transition.old_value, transition.new_value) == (b"a", b"z")
    assert tree.check_proof(b"\x01", b"a", transition.old_root, transition.siblings)
    assert tree.check_proof(b"\x01", b"z", transition.new_root, transition.siblings)


def test_noop_transition():
    root = b"\x42" * 32
    transition = noop_transition(root)
    assert transition.is_noop
    assert transition.old_root == transition.new_root == root
    assert transition.is_old0 == 1
    assert not transition.is_old_ballot and not transition.is_new_ballot


def test_ballot_values_are_flagged_by_length():
    small = ArboProof(root=b"r", key=b"\x01", value=b"\x00" * 32, existence=True)
    large = ArboProof(root=b"s", key=b"\x01", value=b"\x00" * 64, existence=True)
    transition = ArboTransition.from_proof_pair(small, large)
    assert not transition.is_old_ballot
    assert transition.is_new_ballot


def test_padded_siblings():
    proof = ArboProof(root=b"", siblings=[b"\x01" + b"\x00" * 31, b"\x00" * 31 + b"\x01"])
    assert proof.padded_siblings(4) == [1, 1 << 248, 0, 0]
    assert proof.fnc == 1
    with pytest.raises(ValueError):
        proof.padded_siblings(1)


def test_to_dict_is_hex():
    proof = ArboProof(root=b"\xab", siblings=[b"\x01"], key=b"\x02", value=b"\x03", existence=True)
    assert proof.to_dict() == {
        'root': 'ab', 'siblings': ['01'], 'key': '02', 'value': '03', 'existence': True,
    }
    data = ArboTransition.from_proof_pair(proof, proof).to_dict()
    assert data['fnc0'] == 0 and data['fnc1'] == 1
    assert data['oldRoot'] == 'ab'
