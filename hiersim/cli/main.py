from __future__ import annotations
import argparse
import logging
import sys
from ..config import SimConfig, ConfigError
from ..trace.reader import read_trace, TraceFormatError
from ..runtime.simulator import run as run_sim
from ..utils.reporting import generate_report, generate_report_json, format_summary


def _load_config(args) -> SimConfig:
    config = SimConfig.from_args(args)
    if config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    return config


def cmd_run(args):
    """Handles the 'run' command."""
    config = _load_config(args)
    if not config.trace:
        raise ConfigError("No trace file given (positional argument or 'trace' in the config file).")

    print("--- Simulator Configuration ---")
    for name, level in config.levels().items():
        print(f"  {name:<8}: {level if level.enabled else 'disabled'}")
    print(f"  inclusive: {config.inclusive}")
    print(f"  blocksize: {config.block_size}")
    print(f"  memspeed : {config.memory_latency}")
    print("-----------------------------")

    _, stats = run_sim(read_trace(config.trace), config)

    if args.no_report:
        print(format_summary(generate_report_json(stats, config)))
    else:
        generate_report(stats, config)
        print(f"[OK] Simulation finished. Reports are in {config.report_dir}")
    return 0


def cmd_info(args):
    """Handles the 'info' command."""
    config = _load_config(args)
    print(f"Block size: {config.block_size} bytes, memory latency: {config.memory_latency} cycles, "
          f"inclusive: {config.inclusive}")
    for name, geo in config.describe().items():
        if not geo["enabled"]:
            print(f"{name}: disabled")
            continue
        print(f"{name}: {geo['sets']} sets x {geo['associativity']} ways, "
              f"{geo['capacity_bytes']} bytes, hit time {geo['hit_time']} "
              f"(tag/index/offset bits = {geo['tag_bits']}/{geo['index_bits']}/{geo['offset_bits']})")
    return 0


def _add_hierarchy_args(p):
    p.add_argument("-c", "--config", type=str, default=None,
                   help="Path to YAML config file to override defaults")
    p.add_argument("--icache", type=str, default=None, metavar="SETS:ASSOC:HIT",
                   help="I-cache geometry (0 sets disables it)")
    p.add_argument("--dcache", type=str, default=None, metavar="SETS:ASSOC:HIT",
                   help="D-cache geometry (0 sets disables it)")
    p.add_argument("--l2cache", type=str, default=None, metavar="SETS:ASSOC:HIT",
                   help="L2 geometry (0 sets disables it)")
    p.add_argument("--inclusive", action=argparse.BooleanOptionalAction, default=None,
                   help="Make the L2 inclusive of both L1 caches (--no-inclusive overrides the config file)")
    p.add_argument("--blocksize", type=int, default=None, dest="block_size",
                   help="Block size in bytes, shared by all levels")
    p.add_argument("--memspeed", type=int, default=None, dest="memory_latency",
                   help="Main memory latency in cycles")
    p.add_argument("-v", "--verbose", action="store_true", default=None,
                   help="Log evictions and back-invalidations")


def build_parser():
    p = argparse.ArgumentParser(
        prog="hiersim",
        description="Two-level cache hierarchy timing simulator",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # --- Run Command ---
    pr = sub.add_parser("run", help="Replay a trace through the cache hierarchy",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    pr.add_argument("trace", nargs='?', default=None,
                    help="Trace file ('-' for stdin, .gz/.bz2 accepted; optional if set in config)")
    _add_hierarchy_args(pr)
    pr.add_argument("--report", type=str, default=None, dest="report_dir",
                    help="Directory to save simulation reports")
    pr.add_argument("--no-report", action="store_true",
                    help="Only print the summary, do not write report files")
    pr.set_defaults(func=cmd_run)

    # --- Info Command ---
    pi = sub.add_parser("info", help="Validate a configuration and show its geometry",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    _add_hierarchy_args(pi)
    pi.set_defaults(func=cmd_info)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except (ConfigError, TraceFormatError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
