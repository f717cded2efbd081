from __future__ import annotations
import json
from pathlib import Path
from typing import Dict, Any
import numpy as np
from ..config import SimConfig
from ..runtime.cache_level import LevelStats
from . import viz

def _calculate_percentiles(histogram: Dict[int, int]) -> Dict[str, float]:
    """Latency distribution summary from a latency -> count histogram."""
    if not histogram:
        return {}
    values = np.fromiter(histogram.keys(), dtype=np.int64, count=len(histogram))
    counts = np.fromiter(histogram.values(), dtype=np.int64, count=len(histogram))
    order = np.argsort(values)
    values, counts = values[order], counts[order]
    cumulative = np.cumsum(counts)
    n = int(cumulative[-1])
    if n == 0:
        return {}

    def at(q: float) -> float:
        # Same rank as sorted_data[int(n * q)]
        rank = min(int(n * q), n - 1)
        return float(values[np.searchsorted(cumulative, rank, side="right")])

    return {
        "min": float(values[counts > 0][0]),
        "max": float(values[counts > 0][-1]),
        "p50": at(0.5),
        "p95": at(0.95),
        "p99": at(0.99),
        "avg": float(np.dot(values, counts) / n)
    }

def _level_entry(level: LevelStats) -> Dict[str, Any]:
    return {
        "level": level.name,
        "enabled": level.enabled,
        "hit_time": level.hit_time,
        "references": level.references,
        "misses": level.misses,
        "penalties": level.penalties,
        "invalidations": level.invalidations,
        "miss_rate": level.miss_rate,
        "avg_miss_penalty": level.avg_miss_penalty,
        "avg_access_time": level.avg_access_time,
    }

def generate_report_json(stats: Dict[str, Any], config: SimConfig) -> Dict[str, Any]:
    """Generates a JSON-compatible dictionary from simulation stats."""
    levels = [_level_entry(lv) for lv in stats.get("levels", {}).values()]

    total_accesses = stats.get("total_accesses", 0)
    total_cycles = stats.get("total_cycles", 0)
    instr = stats.get("instruction_accesses", 0)
    data = stats.get("data_accesses", 0)

    report_data = {
        "total_accesses": total_accesses,
        "total_cycles": total_cycles,
        "amat": total_cycles / total_accesses if total_accesses else 0.0,
        "instruction_accesses": instr,
        "data_accesses": data,
        "instruction_amat": stats.get("instruction_cycles", 0) / instr if instr else 0.0,
        "data_amat": stats.get("data_cycles", 0) / data if data else 0.0,
        "memory_references": stats.get("memory_references", 0),
        "levels": levels,
        "latency_histogram": stats.get("latency_histogram", {}),
        "latency_stats": _calculate_percentiles(stats.get("latency_histogram", {})),
        "config": config.to_dict()
    }
    return report_data

def format_summary(report_data: Dict[str, Any]) -> str:
    """Per-level text summary in the layout of the classic cache simulator output."""
    lines = []
    for lv in report_data["levels"]:
        if not lv["enabled"]:
            continue
        lines.append(f"{lv['level']}:")
        lines.append(f"  Refs:          {lv['references']:>10}")
        lines.append(f"  Misses:        {lv['misses']:>10}")
        lines.append(f"  Penalties:     {lv['penalties']:>10}")
        lines.append(f"  Miss Rate:     {lv['miss_rate']:>10.2%}")
        lines.append(f"  Avg Acc Time:  {lv['avg_access_time']:>10.2f}")
        if lv["invalidations"]:
            lines.append(f"  Invalidations: {lv['invalidations']:>10}")
    lines.append(f"Total Accesses: {report_data['total_accesses']}")
    lines.append(f"Total Cycles:   {report_data['total_cycles']}")
    lines.append(f"AMAT:           {report_data['amat']:.2f}")
    return "\n".join(lines)

def generate_report(stats: Dict[str, Any], config: SimConfig):
    """Generates all report artifacts."""
    report_data = generate_report_json(stats, config)
    output_dir = Path(config.report_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    with open(output_dir / "report.json", "w") as f:
        json.dump(report_data, f, indent=4)

    viz.export_miss_rates(report_data['levels'], str(output_dir / "report.html"))

    print(viz.export_stats_ascii(report_data['levels']))
    print(format_summary(report_data))

    if report_data.get('latency_stats'):
        print("\nAccess Latency Stats (cycles):")
        for key, value in report_data['latency_stats'].items():
            print(f"  {key:<5}: {value:.2f}")

    print(f"\nReports generated in {output_dir.absolute()}")
    return report_data
