"""Benchmark: mark-source and verify-trust throughput against an on-disk store.

Each mark-source call is a full write transaction (custody append, policy
resolution, audit event); each verify-trust call is a read transaction.
A handful of policies is loaded first so resolution does real matching.
"""
from __future__ import annotations

import json
import sys
import tempfile
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from agent_provenance.config import ProvenanceConfig
from agent_provenance.service import ProvenanceService

_ITERATIONS: int = 500

_POLICIES: list[tuple[str, str]] = [
    ("internal:*", "trusted"),
    ("moltbook:*", "untrusted"),
    ("api:weather*", "trusted"),
    ("partner:?-*", "unknown"),
]


def _percentile(samples: list[float], pct: float) -> float:
    ordered = sorted(samples)
    index = min(len(ordered) - 1, int(len(ordered) * pct))
    return ordered[index]


def bench_mark_and_verify_throughput() -> dict[str, object]:
    """Benchmark ProvenanceService.mark_source() followed by verify().

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms, p99_latency_ms, memory_peak_mb.
    """
    latencies: list[float] = []
    with tempfile.TemporaryDirectory() as data_dir:
        service = ProvenanceService.from_config(ProvenanceConfig(data_dir=Path(data_dir)))
        try:
            for pattern, level in _POLICIES:
                service.add_policy(pattern, level)

            start = time.perf_counter()
            for index in range(_ITERATIONS):
                op_start = time.perf_counter()
                content_id = f"msg-{index % 50}"
                service.mark_source(content_id, f"internal:agent-{index}")
                service.verify(content_id)
                latencies.append(time.perf_counter() - op_start)
            total = time.perf_counter() - start
        finally:
            service.close()

    result: dict[str, object] = {
        "operation": "mark_and_verify_throughput",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "avg_latency_ms": round(total / _ITERATIONS * 1000, 4),
        "p99_latency_ms": round(_percentile(latencies, 0.99) * 1000, 4),
        "memory_peak_mb": 0.0,
    }
    print(
        f"[bench_mark_throughput] {result['operation']}: "
        f"{result['ops_per_second']:,.0f} ops/sec  "
        f"avg {result['avg_latency_ms']:.4f} ms  "
        f"p99 {result['p99_latency_ms']:.4f} ms"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_mark_and_verify_throughput()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "mark_throughput_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
