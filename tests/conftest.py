import os
import sys

import pytest

# Ensure the repository root is on sys.path for tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from ecc import new_point, curves, CURVE_TYPE_BJJ_GNARK  # noqa: E402
from elgamal import Ballot, generate_key  # noqa: E402
from state import BallotMode, MemoryDatabase, State, Vote  # noqa: E402

# Small search bound keeps baby-step/giant-step fast in tests
MAX_MESSAGE = 1 << 12

PROCESS_ID = bytes(range(1, 21))
CENSUS_ROOT = bytes(range(100, 132))


@pytest.fixture(params=curves())
def any_curve(request):
    return new_point(request.param)


@pytest.fixture
def curve():
    return new_point(CURVE_TYPE_BJJ_GNARK)


@pytest.fixture
def keypair(curve):
    return generate_key(curve)


@pytest.fixture
def ballot_mode():
    return BallotMode(
        max_count=8,
        force_uniqueness=False,
        max_value=15,
        min_value=0,
        max_total_cost=120,
        min_total_cost=0,
        cost_exponent=2,
        cost_from_weight=False,
    )


@pytest.fixture
def make_vote(keypair):
    """Factory for mock votes: every ballot field holds `amount`"""
    public_key, _ = keypair

    def _make_vote(index: int, amount: int, nullifier: bytes = None,
                   address: bytes = None, n_fields: int = 8) -> Vote:
        ballot = Ballot(public_key, n_fields).encrypt([amount] * n_fields, public_key)
        return Vote(
            address=address or (index + 5000).to_bytes(20, "little"),
            commitment=amount + 256,
            nullifier=nullifier or (index + 1000).to_bytes(20, "little"),
            ballot=ballot,
        )

    return _make_vote


@pytest.fixture
def initialized_state(keypair, ballot_mode):
    state = State(MemoryDatabase(), PROCESS_ID)
    state.initialize(CENSUS_ROOT, ballot_mode, keypair[0])
    yield state
    state.close()
