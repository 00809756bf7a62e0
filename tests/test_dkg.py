import itertools

import pytest

from conftest import MAX_MESSAGE
from dkg import (
    DistributedKeyGeneration, Participant, DKGStatus, PrivateShare, PublicCommitments,
    compute_lagrange_coefficients, combine_partial_decryptions, threshold_decrypt_ballot,
    evaluate_polynomial, ShareVerificationError, ThresholdViolationError, ReconstructionError, DKGError,
)
from ecc import new_point, curves
from elgamal import Ballot, Ciphertext


@pytest.fixture
def dkg_run():
    dkg = DistributedKeyGeneration(threshold=3, num_parties=5, curve_type="bjj_gnark")
    public_key, participants = dkg.generate_threshold_keys()
    return public_key, participants


def test_evaluate_polynomial():
    # 3 + 2x + x^2 at x = 4
    assert evaluate_polynomial([3, 2, 1], 4, 1000) == 27
    assert evaluate_polynomial([3, 2, 1], 4, 10) == 7


def test_all_participants_share_joint_key(dkg_run):
    public_key, participants = dkg_run
    for participant in participants.values():
        assert participant.public_key.equal(public_key)
        assert participant.status == DKGStatus.COMPLETE


def test_joint_key_matches_sum_of_constant_terms(dkg_run):
    public_key, participants = dkg_run
    curve = public_key.new()
    secret = sum(p.secret_coeffs[0] for p in participants.values()) % curve.order()
    assert curve.scalar_base_mult(secret).equal(public_key)


@pytest.mark.parametrize("curve_type", curves())
def test_threshold_decryption_any_subset(curve_type):
    dkg = DistributedKeyGeneration(threshold=2, num_parties=3, curve_type=curve_type)
    public_key, participants = dkg.generate_threshold_keys()
    ct = Ciphertext(public_key).encrypt(321, public_key)

    for subset in itertools.combinations(participants.values(), 2):
        ids = [p.id for p in subset]
        partials = {p.id: p.compute_partial_decryption(ct.c1) for p in subset}
        assert combine_partial_decryptions(ct.c2, partials, ids, MAX_MESSAGE, 2) == 321


def test_more_than_threshold_also_decrypts(dkg_run):
    public_key, participants = dkg_run
    ct = Ciphertext(public_key).encrypt(55, public_key)
    subset = list(participants.values())
    ids = [p.id for p in subset]
    partials = {p.id: p.compute_partial_decryption(ct.c1) for p in subset}
    assert combine_partial_decryptions(ct.c2, partials, ids, MAX_MESSAGE) == 55


def test_threshold_decrypt_homomorphic_ballot_sum(dkg_run):
    public_key, participants = dkg_run
    total = Ballot(public_key, 4)
    for votes in ([1, 0, 0, 2], [0, 1, 0, 3], [1, 1, 1, 0]):
        total.add(total, Ballot(public_key, 4).encrypt(votes, public_key))
    trustees = [participants[2], participants[4], participants[5]]
    assert threshold_decrypt_ballot(total, trustees, MAX_MESSAGE) == [2, 2, 1, 5]


def test_below_threshold_is_rejected(dkg_run):
    public_key, participants = dkg_run
    ct = Ciphertext(public_key).encrypt(1, public_key)
    subset = [participants[1], participants[2]]
    partials = {p.id: p.compute_partial_decryption(ct.c1) for p in subset}
    with pytest.raises(ThresholdViolationError):
        combine_partial_decryptions(ct.c2, partials, [1, 2], MAX_MESSAGE, threshold=3)
    with pytest.raises(ThresholdViolationError):
        threshold_decrypt_ballot(Ballot(public_key), [], MAX_MESSAGE)


def test_missing_partial_is_rejected(dkg_run):
    public_key, participants = dkg_run
    ct = Ciphertext(public_key).encrypt(1, public_key)
    partials = {1: participants[1].compute_partial_decryption(ct.c1)}
    with pytest.raises(ThresholdViolationError):
        combine_partial_decryptions(ct.c2, partials, [1, 2, 3], MAX_MESSAGE)


def test_lagrange_coefficients_interpolate_constant_term():
    order = new_point("bjj_gnark").order()
    coeffs = [17, 5, 9]
    shares = {i: evaluate_polynomial(coeffs, i, order) for i in (2, 3, 5)}
    lagrange = compute_lagrange_coefficients([2, 3, 5], order)
    assert sum(lagrange[i] * shares[i] for i in shares) % order == 17


def test_lagrange_rejects_duplicate_ids():
    order = new_point("bjj_gnark").order()
    with pytest.raises(ReconstructionError):
        compute_lagrange_coefficients([1, 2, 2], order)


def test_lagrange_rejects_zero_ids():
    order = new_point("bjj_gnark").order()
    with pytest.raises(ReconstructionError):
        compute_lagrange_coefficients([0, 1, 2], order)
    with pytest.raises(ReconstructionError):
        compute_lagrange_coefficients([1, order], order)


def test_tampered_share_fails_verification():
    curve = new_point("bjj_gnark")
    ids = [1, 2, 3]
    alice = Participant(1, 2, ids, curve)
    bob = Participant(2, 2, ids, curve)
    commitments = alice.generate_secret_polynomial().commitments
    shares = alice.compute_shares()

    with pytest.raises(ShareVerificationError):
        bob.receive_share(1, shares[2] + 1, commitments)
    assert 1 not in bob.received_shares

    bob.receive_share(1, shares[2], commitments)
    assert bob.received_shares[1] == shares[2]


def test_share_with_wrong_commitment_count_is_rejected():
    curve = new_point("bjj_gnark")
    ids = [1, 2]
    alice = Participant(1, 2, ids, curve)
    bob = Participant(2, 2, ids, curve)
    commitments = alice.generate_secret_polynomial().commitments
    share = alice.compute_shares()[2]
    with pytest.raises(ShareVerificationError):
        bob.receive_share(1, share, commitments[:1])


def test_unexpected_sender_is_rejected():
    curve = new_point("bjj_gnark")
    bob = Participant(2, 2, [1, 2], curve)
    with pytest.raises(DKGError):
        bob.receive_share(9, 1, [])
    with pytest.raises(DKGError):
        bob.receive_share(2, 1, [])


def test_aggregate_shares_times_out_without_peers():
    curve = new_point("bjj_gnark")
    alice = Participant(1, 2, [1, 2, 3], curve)
    alice.generate_secret_polynomial()
    alice.compute_shares()
    with pytest.raises(ThresholdViolationError):
        alice.aggregate_shares(timeout=0.05)


def test_aggregate_public_key_requires_every_participant():
    curve = new_point("bjj_gnark")
    alice = Participant(1, 2, [1, 2], curve)
    commitments = alice.generate_secret_polynomial().commitments
    with pytest.raises(ThresholdViolationError):
        alice.aggregate_public_key({1: commitments})


def test_partial_decryption_requires_setup():
    curve = new_point("bjj_gnark")
    alice = Participant(1, 1, [1], curve)
    with pytest.raises(DKGError):
        alice.compute_partial_decryption(curve.new().set_generator())


def test_participant_validation():
    curve = new_point("bjj_gnark")
    with pytest.raises(ValueError):
        Participant(4, 2, [1, 2, 3], curve)
    with pytest.raises(ValueError):
        Participant(1, 4, [1, 2, 3], curve)
    with pytest.raises(ValueError):
        Participant(1, 2, [1, 1, 2], curve)
    with pytest.raises(ValueError):
        DistributedKeyGeneration(threshold=0, num_parties=3, curve_type="bjj_gnark")


def test_wire_messages_validate_ids():
    with pytest.raises(ValueError):
        PrivateShare(sender_id=0, recipient_id=1, share=5)
    with pytest.raises(ValueError):
        PublicCommitments(sender_id=-1)


def test_plain_share_delivery():
    dkg = DistributedKeyGeneration(threshold=2, num_parties=3, curve_type="bjj_iden3",
                                   encrypt_shares=False)
    public_key, participants = dkg.generate_threshold_keys()
    ct = Ciphertext(public_key).encrypt(9, public_key)
    subset = [participants[1], participants[3]]
    partials = {p.id: p.compute_partial_decryption(ct.c1) for p in subset}
    assert combine_partial_decryptions(ct.c2, partials, [1, 3], MAX_MESSAGE) == 9
