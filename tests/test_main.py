"""
End-to-end tests for the voting process orchestrator:
DKG setup -> parallel ballot encryption -> batched state updates -> threshold tally
"""

import json

import pytest

from config import SystemConfig, CryptoConfig, StateConfig
from conftest import CENSUS_ROOT
from main import VotingProcessOrchestrator, build_submissions, run_demo, voter_keys
from state import BallotMode, StateStatus


@pytest.fixture
def small_config(tmp_path):
    return SystemConfig(
        crypto_config=CryptoConfig(max_message=64, dkg_threshold=2, dkg_participants=3),
        state_config=StateConfig(votes_per_batch=4, fields_per_ballot=3),
        log_dir=tmp_path / "logs",
    )


def test_voter_keys_are_deterministic():
    first = voter_keys(b"\x01" * 20, 7)
    assert first == voter_keys(b"\x01" * 20, 7)
    assert first != voter_keys(b"\x01" * 20, 8)
    assert all(len(k) == 20 for k in first)


def test_build_submissions_counts_last_vote_only():
    submissions, expected = build_submissions(10, 3, 0.3, seed=1)
    assert len(submissions) == 13
    assert sum(expected) == 10
    assert all(sum(choices) == 1 for _, choices in submissions)


def test_orchestrator_end_to_end(small_config):
    orchestrator = VotingProcessOrchestrator(small_config, process_id=b"\x42" * 20)
    orchestrator.setup(CENSUS_ROOT, BallotMode(max_value=1))
    assert orchestrator.state.status == StateStatus.INITIALIZED

    submissions, expected = build_submissions(9, 3, 0.34, seed=5)
    orchestrator.run_batches(submissions)

    batches = orchestrator.results['batches']
    assert len(batches) == 3
    assert sum(b['ballots'] for b in batches) == len(submissions)
    assert sum(b['overwrites'] for b in batches) == len(submissions) - 9

    assert orchestrator.tally() == expected
    checks = orchestrator.check_integrity(expected)
    assert checks['all_checks_passed']
    orchestrator.close()


def test_orchestrator_with_sqlite_state(tmp_path):
    config = SystemConfig(
        crypto_config=CryptoConfig(curve_type="bjj_iden3", max_message=16,
                                   dkg_threshold=1, dkg_participants=2),
        state_config=StateConfig(votes_per_batch=2, fields_per_ballot=2,
                                 db_path=tmp_path / "db" / "state.sqlite"),
        log_dir=tmp_path / "logs",
    )
    orchestrator = VotingProcessOrchestrator(config)
    orchestrator.setup(CENSUS_ROOT, BallotMode())
    orchestrator.run_batches([(0, [1, 0]), (1, [0, 1]), (0, [0, 1])])
    assert orchestrator.tally() == [0, 2]
    orchestrator.close()
    assert (tmp_path / "db" / "state.sqlite").exists()


def test_run_demo_writes_reports(small_config, tmp_path):
    results_dir = tmp_path / "results"
    assert run_demo(small_config, num_voters=6, overwrite_ratio=0.5, results_dir=results_dir)

    report = json.loads((results_dir / "demo_report.json").read_text())
    assert report['data']['integrity_checks']['all_checks_passed'] is True
    assert (results_dir / "demo_report_summary.txt").exists()
    assert "STAGE TIMINGS" in (results_dir / "performance_report.txt").read_text()
    metrics = json.loads((results_dir / "stage_metrics.json").read_text())
    assert {'dkg', 'encrypt_ballots', 'batch', 'threshold_decrypt'} <= set(metrics['summary']['stages'])
