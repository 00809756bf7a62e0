"""
Run Utilities
=============
Root logging setup, timing of protocol stages (DKG, ballot encryption, batch
commits, threshold decryption) and the JSON/text reports written by the demo.
"""

import json
import logging
import platform
import time
from contextlib import contextmanager
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
import psutil

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'

REPORT_WIDTH = 72


# ============================================================================
# LOGGING
# ============================================================================


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """Route every package logger to a log file and the console"""
    if log_file is None:
        log_file = Path("logs") / f"ballot_core_{datetime.now():%Y%m%d_%H%M%S}.log"
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(log_file), logging.StreamHandler()],
    )
    logger.info(f"Logging to {log_file} at {log_level.upper()}")
    return logger


# ============================================================================
# STAGE TIMING
# ============================================================================


@dataclass
class StageMetrics:
    """One timed run of a protocol stage"""
    stage: str
    duration_seconds: float
    items: int = 1
    cpu_percent: float = 0.0
    rss_mb: float = 0.0
    started_at: float = 0.0
    failed: bool = False

    @property
    def items_per_second(self) -> float:
        return self.items / self.duration_seconds if self.duration_seconds > 0 else 0.0


class PerformanceMonitor:
    """Collects StageMetrics; ``measure`` times a block and samples the process"""

    def __init__(self):
        self.metrics: List[StageMetrics] = []
        self._process = psutil.Process()

    def _sample(self):
        try:
            return (self._process.cpu_percent(),
                    self._process.memory_info().rss / (1024 * 1024))
        except psutil.Error as e:
            logger.debug(f"Process sampling failed: {e}")
            return 0.0, 0.0

    @contextmanager
    def measure(self, stage: str, items: int = 1) -> Iterator[None]:
        """Time the enclosed block as one run of stage covering items units of work"""
        self._sample()
        started_at = time.time()
        start = time.perf_counter()
        failed = False
        try:
            yield
        except BaseException:
            failed = True
            raise
        finally:
            duration = time.perf_counter() - start
            cpu, rss = self._sample()
            self.record(StageMetrics(
                stage=stage,
                duration_seconds=duration,
                items=items,
                cpu_percent=cpu,
                rss_mb=rss,
                started_at=started_at,
                failed=failed,
            ))

    def record(self, metric: StageMetrics):
        self.metrics.append(metric)
        logger.debug(f"{metric.stage}: {metric.items} items in {format_duration(metric.duration_seconds)}")

    def stage_summary(self, stage: str) -> Dict[str, Any]:
        runs = [m for m in self.metrics if m.stage == stage]
        if not runs:
            raise KeyError(f"no runs recorded for stage {stage!r}")
        durations = np.array([m.duration_seconds for m in runs])
        items = sum(m.items for m in runs)
        total = float(durations.sum())
        return {
            'runs': len(runs),
            'failed_runs': sum(1 for m in runs if m.failed),
            'items': items,
            'total_seconds': total,
            'mean_seconds': float(durations.mean()),
            'p50_seconds': float(np.percentile(durations, 50)),
            'p95_seconds': float(np.percentile(durations, 95)),
            'std_seconds': float(durations.std()),
            'items_per_second': items / total if total > 0 else 0.0,
            'peak_rss_mb': max(m.rss_mb for m in runs),
        }

    def get_summary(self) -> Dict[str, Any]:
        stages = list(dict.fromkeys(m.stage for m in self.metrics))
        per_stage = {stage: self.stage_summary(stage) for stage in stages}
        return {
            'total_runs': len(self.metrics),
            'total_seconds': sum(s['total_seconds'] for s in per_stage.values()),
            'stages': per_stage,
        }

    def save_metrics(self, filepath: Path):
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            'runs': [asdict(m) for m in self.metrics],
            'summary': self.get_summary(),
            'host': get_system_info(),
        }
        with open(filepath, 'w') as f:
            json.dump(payload, f, indent=2)

    def reset(self):
        self.metrics.clear()


def get_system_info() -> Dict[str, Any]:
    """Host description stored next to every report"""
    info: Dict[str, Any] = {
        'python_version': platform.python_version(),
        'platform': platform.platform(),
        'machine': platform.machine(),
        'numpy_version': np.__version__,
    }
    try:
        memory = psutil.virtual_memory()
        info['cpu_count'] = psutil.cpu_count(logical=True)
        info['memory_total_gb'] = round(memory.total / 1024 ** 3, 2)
    except psutil.Error as e:
        logger.debug(f"Host memory query failed: {e}")
    return info


# ============================================================================
# REPORTS
# ============================================================================


def to_jsonable(obj: Any) -> Any:
    """Convert dataclasses, bytes, paths, numpy scalars and field-sized ints for JSON"""
    if hasattr(obj, '__dataclass_fields__'):
        return to_jsonable(asdict(obj))
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).hex()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, np.generic):
        return obj.item()
    # Field elements do not survive a round trip through JSON doubles
    if isinstance(obj, int) and not isinstance(obj, bool) and obj.bit_length() > 53:
        return str(obj)
    return obj


def save_results(results: Dict[str, Any], filepath: Path) -> Path:
    """Write results as JSON plus a ``<name>_summary.txt`` digest; returns the digest path"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        json.dump({
            'generated_at': datetime.now().isoformat(),
            'host': get_system_info(),
            'data': to_jsonable(results),
        }, f, indent=2)

    summary_path = filepath.with_name(f"{filepath.stem}_summary.txt")
    summary_path.write_text(create_results_summary(results))
    logger.info(f"Results written to {filepath} and {summary_path}")
    return summary_path


def _banner(title: str) -> List[str]:
    return ["=" * REPORT_WIDTH, title, "=" * REPORT_WIDTH]


def create_results_summary(results: Dict[str, Any]) -> str:
    lines = _banner("BALLOT CORE - RUN SUMMARY")

    process = results.get('process')
    if process:
        lines.append("Process")
        lines.extend(f"  {key:<16} {value}" for key, value in process.items())

    batches = results.get('batches')
    if batches:
        lines.append("Batches")
        for batch in batches:
            lines.append(
                f"  #{batch['index']:<3} ballots={batch['ballots']:<4} "
                f"overwrites={batch['overwrites']:<4} root={batch['root']}")

    tally = results.get('tally')
    if tally:
        total = sum(tally)
        lines.append("Tally")
        for i, count in enumerate(tally):
            share = 100.0 * count / total if total else 0.0
            lines.append(f"  field {i:<3} {count:>6}  {share:5.1f}%")
        lines.append(f"  total     {total:>6}")

    checks = results.get('integrity_checks')
    if checks:
        lines.append("Integrity")
        lines.extend(f"  [{'ok' if passed else 'FAIL':>4}] {name}"
                     for name, passed in checks.items())

    lines.append("=" * REPORT_WIDTH)
    return "\n".join(lines)


def create_performance_report(monitor: PerformanceMonitor) -> str:
    summary = monitor.get_summary()
    lines = _banner("BALLOT CORE - STAGE TIMINGS")
    if not summary['stages']:
        lines.append("No stages recorded.")
        return "\n".join(lines)

    lines.append(f"{'stage':<20}{'runs':>6}{'items':>8}{'total':>12}{'p95':>12}{'items/s':>12}")
    lines.append("-" * REPORT_WIDTH)
    for stage, data in summary['stages'].items():
        lines.append(
            f"{stage:<20}{data['runs']:>6}{data['items']:>8}"
            f"{format_duration(data['total_seconds']):>12}"
            f"{format_duration(data['p95_seconds']):>12}"
            f"{data['items_per_second']:>12.2f}")
    lines.append("-" * REPORT_WIDTH)
    lines.append(f"total {format_duration(summary['total_seconds'])} over {summary['total_runs']} runs")
    return "\n".join(lines)


def format_duration(seconds: float) -> str:
    """Human readable duration: 250.0ms, 12.50s, 1m 15.0s, 1h 2m 5.0s"""
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m {secs:.1f}s"
    hours, minutes = divmod(int(minutes), 60)
    return f"{hours}h {minutes}m {secs:.1f}s"
