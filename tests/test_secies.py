import pytest

from dkg import ScalarECIES, hash_point_to_scalar
from ecc import InvalidPointError


def test_round_trip(any_curve):
    recipient = ScalarECIES(any_curve)
    sender = ScalarECIES(any_curve)
    for message in [0, 1, 123456789, any_curve.order() - 1]:
        c, r_bytes = sender.encrypt(message, recipient.public_key)
        assert recipient.decrypt(c, r_bytes) == message


def test_full_range_boundaries(curve):
    recipient = ScalarECIES(curve)
    order = curve.order()
    c, r_bytes = recipient.encrypt(order, recipient.public_key)
    assert recipient.decrypt(c, r_bytes) == 0
    c, r_bytes = recipient.encrypt(-1, recipient.public_key)
    assert recipient.decrypt(c, r_bytes) == order - 1


def test_tampered_ciphertext_changes_message(curve):
    recipient = ScalarECIES(curve)
    c, r_bytes = recipient.encrypt(42, recipient.public_key)
    assert recipient.decrypt(c ^ 1, r_bytes) != 42


def test_tampered_ephemeral_key_changes_message(curve):
    recipient = ScalarECIES(curve)
    c, r_bytes = recipient.encrypt(42, recipient.public_key)
    tampered = bytearray(r_bytes)
    tampered[0] ^= 0x01
    try:
        assert recipient.decrypt(c, bytes(tampered)) != 42
    except InvalidPointError:
        pass


def test_wrong_recipient_gets_unrelated_scalar(curve):
    recipient = ScalarECIES(curve)
    other = ScalarECIES(curve)
    c, r_bytes = recipient.encrypt(42, recipient.public_key)
    assert other.decrypt(c, r_bytes) != 42


def test_fixed_private_key_and_hash(curve):
    keys = ScalarECIES(curve, private_key=7)
    assert keys.public_key.equal(curve.new().scalar_base_mult(7))
    assert keys.public_key_bytes() == keys.public_key.marshal()
    point = curve.new().scalar_base_mult(3)
    assert hash_point_to_scalar(point) == hash_point_to_scalar(point.copy())
    assert 0 <= hash_point_to_scalar(point) < curve.order()
    assert hash_point_to_scalar(point) != hash_point_to_scalar(curve.new().scalar_base_mult(4))


def test_randomized_encryption(curve):
    recipient = ScalarECIES(curve)
    first = recipient.encrypt(5, recipient.public_key)
    second = recipient.encrypt(5, recipient.public_key)
    assert first != second


def test_unmarshal_failure_propagates(curve):
    recipient = ScalarECIES(curve)
    with pytest.raises(InvalidPointError):
        recipient.decrypt(1, b"\x00" * 3)
