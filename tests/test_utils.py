import json
import logging

import pytest

from utils import (
    StageMetrics, PerformanceMonitor, create_performance_report, create_results_summary,
    format_duration, get_system_info, save_results, setup_logging, to_jsonable,
)


def test_format_duration():
    assert format_duration(0.25) == "250.0ms"
    assert format_duration(12.5) == "12.50s"
    assert format_duration(75) == "1m 15.0s"
    assert format_duration(3725) == "1h 2m 5.0s"


def test_stage_summary_statistics():
    monitor = PerformanceMonitor()
    assert monitor.get_summary() == {'total_runs': 0, 'total_seconds': 0, 'stages': {}}

    monitor.record(StageMetrics(stage="encrypt_ballots", duration_seconds=1.0, items=10))
    monitor.record(StageMetrics(stage="encrypt_ballots", duration_seconds=3.0, items=10))
    monitor.record(StageMetrics(stage="batch", duration_seconds=0.5, items=4, rss_mb=12.0))

    summary = monitor.get_summary()
    assert summary['total_runs'] == 3
    assert summary['total_seconds'] == 4.5
    assert list(summary['stages']) == ["encrypt_ballots", "batch"]

    encrypt = summary['stages']['encrypt_ballots']
    assert encrypt['runs'] == 2
    assert encrypt['items'] == 20
    assert encrypt['mean_seconds'] == 2.0
    assert encrypt['p50_seconds'] == 2.0
    assert encrypt['std_seconds'] == 1.0
    assert encrypt['items_per_second'] == 5.0
    assert summary['stages']['batch']['peak_rss_mb'] == 12.0

    with pytest.raises(KeyError):
        monitor.stage_summary("tally")


def test_measure_records_failures():
    monitor = PerformanceMonitor()
    with monitor.measure("dkg", items=3):
        pass
    with pytest.raises(RuntimeError):
        with monitor.measure("end_batch"):
            raise RuntimeError("commit failed")

    assert [m.stage for m in monitor.metrics] == ["dkg", "end_batch"]
    assert monitor.metrics[0].items == 3 and not monitor.metrics[0].failed
    assert monitor.metrics[1].failed
    assert monitor.stage_summary("end_batch")['failed_runs'] == 1


def test_performance_report():
    monitor = PerformanceMonitor()
    assert "No stages recorded." in create_performance_report(monitor)
    monitor.record(StageMetrics(stage="threshold_decrypt", duration_seconds=0.2, items=4))
    report = create_performance_report(monitor)
    assert "threshold_decrypt" in report
    assert "20.00" in report
    monitor.reset()
    assert monitor.metrics == []


def test_save_metrics(tmp_path):
    monitor = PerformanceMonitor()
    with monitor.measure("tally"):
        pass
    path = tmp_path / "metrics" / "run.json"
    monitor.save_metrics(path)
    data = json.loads(path.read_text())
    assert data['summary']['stages']['tally']['runs'] == 1
    assert data['runs'][0]['stage'] == "tally"
    assert 'python_version' in data['host']


def test_system_info():
    info = get_system_info()
    assert info['python_version']
    assert info['cpu_count'] >= 1


def test_to_jsonable():
    assert to_jsonable({'id': b"\x01\x02", 'root': 1 << 200, 'count': 7, 'ok': True}) == {
        'id': "0102", 'root': str(1 << 200), 'count': 7, 'ok': True,
    }
    assert to_jsonable(StageMetrics(stage="x", duration_seconds=1.0))['stage'] == "x"


def test_save_results_writes_json_and_summary(tmp_path):
    results = {
        'process': {'process_id': "42" * 20, 'curve': "bjj_gnark"},
        'batches': [{'index': 0, 'ballots': 3, 'overwrites': 1, 'root': "ab" * 8}],
        'tally': [3, 1],
        'integrity_checks': {'tally_matches_plaintext': True, 'joint_key_in_state': False},
    }
    path = tmp_path / "results.json"
    summary_path = save_results(results, path)

    assert summary_path == tmp_path / "results_summary.txt"
    assert json.loads(path.read_text())['data']['tally'] == [3, 1]

    summary = summary_path.read_text()
    assert summary == create_results_summary(results)
    assert "75.0%" in summary
    assert "[  ok] tally_matches_plaintext" in summary
    assert "[FAIL] joint_key_in_state" in summary
    assert "overwrites=1" in summary


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    setup_logging("DEBUG", log_file)
    logging.getLogger("state.state").debug("batch committed")
    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.flush()
        handler.close()
        root.removeHandler(handler)
    assert "batch committed" in log_file.read_text()
