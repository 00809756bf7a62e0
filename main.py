import argparse
import hashlib
import logging
import random
import secrets
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from config.config import SystemConfig, ConfigError, load_config
from dkg import DistributedKeyGeneration, threshold_decrypt_ballot
from ecc import Point
from elgamal import Ballot
from state import BallotMode, Database, MemoryDatabase, SQLiteDatabase, State, Vote
from utils.utils import (
    setup_logging, save_results, PerformanceMonitor, create_performance_report, format_duration,
)

logger = logging.getLogger(__name__)


def voter_keys(process_id: bytes, voter: int) -> Tuple[bytes, bytes]:
    """Deterministic (nullifier, address) for a demo voter"""
    seed = process_id + voter.to_bytes(4, "big")
    nullifier = hashlib.sha256(b"nullifier" + seed).digest()[:20]
    address = hashlib.sha256(b"address" + seed).digest()[:20]
    return nullifier, address


class VotingProcessOrchestrator:
    """Runs one voting process end to end: DKG, batched votes, threshold tally"""

    def __init__(self, config: SystemConfig, process_id: Optional[bytes] = None):
        self.config = config
        self.process_id = process_id or secrets.token_bytes(20)
        self.performance_monitor = PerformanceMonitor()
        self.dkg: Optional[DistributedKeyGeneration] = None
        self.public_key: Optional[Point] = None
        self.database: Optional[Database] = None
        self.state: Optional[State] = None
        self.results: Dict[str, Any] = {
            'process': {},
            'batches': [],
            'tally': [],
            'integrity_checks': {},
        }
        logger.info(f"Initialized orchestrator for process {self.process_id.hex()}")

    def setup(self, census_root: bytes, ballot_mode: BallotMode):
        crypto = self.config.crypto_config
        state_config = self.config.state_config

        with self.performance_monitor.measure("dkg", items=crypto.dkg_participants):
            self.dkg = DistributedKeyGeneration(
                crypto.dkg_threshold, crypto.dkg_participants, crypto.curve_type,
                encrypt_shares=crypto.encrypt_shares)
            self.public_key, _ = self.dkg.generate_threshold_keys()

        if state_config.db_path is not None:
            self.database = SQLiteDatabase(state_config.db_path)
        else:
            self.database = MemoryDatabase()

        self.state = State(
            self.database, self.process_id,
            curve_type=crypto.curve_type,
            hash_function=state_config.hash_function,
            votes_per_batch=state_config.votes_per_batch,
            fields_per_ballot=state_config.fields_per_ballot,
            max_levels=state_config.max_levels,
        )
        self.state.initialize(census_root, ballot_mode, self.public_key)

        self.results['process'] = {
            'process_id': self.process_id.hex(),
            'curve': crypto.curve_type,
            'threshold': f"{crypto.dkg_threshold}/{crypto.dkg_participants}",
            'initial_root': self.state.root().hex(),
        }

    def encrypt_vote(self, voter: int, choices: List[int]) -> Vote:
        nullifier, address = voter_keys(self.process_id, voter)
        ballot = Ballot(self.public_key, self.config.state_config.fields_per_ballot)
        ballot.encrypt(choices, self.public_key)
        return Vote(address=address, commitment=secrets.randbits(248),
                    nullifier=nullifier, ballot=ballot)

    def run_batches(self, submissions: List[Tuple[int, List[int]]]):
        """Encrypt submissions in parallel, then feed them to the state batch by batch"""
        with self.performance_monitor.measure("encrypt_ballots", items=len(submissions)):
            with ThreadPoolExecutor() as executor:
                votes = list(executor.map(lambda s: self.encrypt_vote(*s), submissions))

        size = self.config.state_config.votes_per_batch
        for index in range(0, len(votes), size):
            batch = votes[index:index + size]
            with self.performance_monitor.measure("batch", items=len(batch)):
                self.state.start_batch()
                for vote in batch:
                    self.state.add_vote(vote)
                self.state.end_batch()

            inserts = sum(1 for t in self.state.votes_proofs.ballot if t.is_insert)
            self.results['batches'].append({
                'index': index // size,
                'ballots': self.state.ballot_count,
                'overwrites': self.state.overwrite_count,
                'inserts': inserts,
                'root': self.state.root().hex()[:16],
                'witness_hash': self.state.aggregated_witness_hash().hex(),
            })

    def tally(self) -> List[int]:
        """Threshold-decrypt the running sums with the first t participants"""
        crypto = self.config.crypto_config
        trustees = list(self.dkg.participants.values())[:crypto.dkg_threshold]
        with self.performance_monitor.measure("threshold_decrypt", items=2 * len(trustees)):
            added = threshold_decrypt_ballot(
                self.state.results_add(), trustees, crypto.max_message)
            subtracted = threshold_decrypt_ballot(
                self.state.results_sub(), trustees, crypto.max_message)
        tally = [a - s for a, s in zip(added, subtracted)]
        self.results['tally'] = tally
        return tally

    def check_integrity(self, expected: List[int]) -> Dict[str, bool]:
        checks = {
            'tally_matches_plaintext': self.results['tally'] == expected,
            'joint_key_in_state': self.state.encryption_key().equal(self.public_key),
            'process_proofs_present': self.state.process_proofs.id is not None,
        }
        checks['all_checks_passed'] = all(checks.values())
        self.results['integrity_checks'] = checks
        return checks

    def close(self):
        if self.state is not None:
            self.state.close()
        if self.database is not None:
            self.database.close()


def build_submissions(num_voters: int, num_fields: int, overwrite_ratio: float,
                      seed: int) -> Tuple[List[Tuple[int, List[int]]], List[int]]:
    """Random single-choice ballots; some voters vote again, and only their last vote counts"""
    rng = random.Random(seed)
    submissions = []
    latest: Dict[int, List[int]] = {}
    for voter in range(num_voters):
        choices = [0] * num_fields
        choices[rng.randrange(num_fields)] = 1
        submissions.append((voter, choices))
        latest[voter] = choices
    for voter in rng.sample(range(num_voters), int(num_voters * overwrite_ratio)):
        choices = [0] * num_fields
        choices[rng.randrange(num_fields)] = 1
        submissions.append((voter, choices))
        latest[voter] = choices

    expected = [sum(c[i] for c in latest.values()) for i in range(num_fields)]
    return submissions, expected


def run_demo(config: SystemConfig, num_voters: int = 20, overwrite_ratio: float = 0.2,
             results_dir: Path = Path("results")) -> bool:
    print("=" * 80)
    print("BALLOT CORE DEMONSTRATION")
    print("   DKG + homomorphic ElGamal + Merkle state transitions")
    print("=" * 80)

    orchestrator = VotingProcessOrchestrator(config)
    fields = config.state_config.fields_per_ballot
    ballot_mode = BallotMode(max_count=1, max_value=1, max_total_cost=1, min_total_cost=1)
    census_root = hashlib.sha256(b"demo-census").digest()

    try:
        orchestrator.setup(census_root, ballot_mode)
        print(f"\nJoint public key: {orchestrator.public_key}")

        submissions, expected = build_submissions(num_voters, fields, overwrite_ratio, seed=42)
        print(f"\nSubmitting {len(submissions)} ballots from {num_voters} voters...")
        orchestrator.run_batches(submissions)
        for batch in orchestrator.results['batches']:
            print(f"  batch {batch['index']}: {batch['ballots']} ballots, "
                  f"{batch['overwrites']} overwrites, root {batch['root']}")

        tally = orchestrator.tally()
        print("\nFinal Tally:")
        for i, count in enumerate(tally):
            print(f"  Field {i}: {count}")

        print("\nIntegrity Checks:")
        for check, passed in orchestrator.check_integrity(expected).items():
            print(f"  {check}: {'PASSED' if passed else 'FAILED'}")

        report_path = results_dir / "demo_report.json"
        save_results(orchestrator.results, report_path)
        perf_report = create_performance_report(orchestrator.performance_monitor)
        with open(results_dir / "performance_report.txt", "w") as f:
            f.write(perf_report)
        if config.enable_benchmarking:
            orchestrator.performance_monitor.save_metrics(results_dir / "stage_metrics.json")
        total = orchestrator.performance_monitor.get_summary()["total_seconds"]
        print(f"\nFinished in {format_duration(total)}; report saved to {report_path}")
        return orchestrator.results['integrity_checks']['all_checks_passed']
    finally:
        orchestrator.close()


def main():
    parser = argparse.ArgumentParser(
        description='Verifiable ballot core demo')
    parser.add_argument('--voters', type=int, default=20,
                        help='Number of voters')
    parser.add_argument('--overwrites', type=float, default=0.2,
                        help='Fraction of voters that vote twice')
    parser.add_argument('--config', type=str,
                        default='config.yaml', help='Config file path')
    parser.add_argument('--results-dir', type=str, default='results',
                        help='Directory for reports')

    args = parser.parse_args()

    try:
        config = load_config(Path(args.config))
    except ConfigError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(2)

    setup_logging(config.log_level,
                  config.log_dir / f"ballot_core_{time.strftime('%Y%m%d_%H%M%S')}.log")

    success = run_demo(config, args.voters, args.overwrites, Path(args.results_dir))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
