from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_ENGINE_CONFIG, load_engine_config, load_graph
from .engine import compute_scenario
from .flow import blocked_edges
from .result import ScenarioResult
from .seeds import SEEDS
from .validators import validate_graph


def _print_summary(result: ScenarioResult) -> None:
    print(f"{'node':<20} {'ingress':>10} {'egress':>10} {'util':>7} {'p50 ms':>9} {'p95 ms':>9}  limiter")
    for node_id, stats in result.node_stats.items():
        print(
            f"{node_id:<20} {stats.ingress_rps:>10.1f} {stats.egress_rps:>10.1f} {stats.utilization:>7.2f} "
            f"{stats.modeled_p50_ms:>9.2f} {stats.modeled_p95_ms:>9.2f}  {stats.limiter.type} ({stats.limiter.reason})"
        )
        for warning in stats.warnings:
            print(f"  ! {warning}")

    blocked = blocked_edges(result.edge_stats)
    if blocked:
        print("\nBlocked edges:")
        for edge_id in blocked:
            es = result.edge_stats[edge_id]
            print(f"  {edge_id}: delivered {es.delivered_rps:.1f}/s, blocked {es.blocked_rps:.1f}/s")

    if result.global_.bottlenecks:
        print("\nBottlenecks:")
        for b in result.global_.bottlenecks:
            print(f"  {b.node_id}: {b.reason}")
    for warning in result.global_.warnings:
        print(f"warning: {warning}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Compute capacity, latency and backpressure for a service topology.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--graph", help="Path to a graph JSON file (nodes, edges, metadata).")
    source.add_argument("--seed", choices=sorted(SEEDS), help="Evaluate a bundled sample topology instead of a file.")
    parser.add_argument("--out", help="Write the full scenario result as JSON to this path.")
    parser.add_argument(
        "--engine-config",
        help="Optional JSON object overriding engine tunables (queueThreshold, p95Multiplier, ...).",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Print graph validation warnings before the scenario summary.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging of the evaluation pass.",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        graph = SEEDS[args.seed]() if args.seed else load_graph(args.graph)
        config = load_engine_config(args.engine_config) if args.engine_config else DEFAULT_ENGINE_CONFIG
    except (ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.validate:
        for warning in validate_graph(graph):
            print(f"validation: {warning}")

    result = compute_scenario(graph, config)
    _print_summary(result)

    if args.out:
        Path(args.out).write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        print(f"\nWrote scenario result to {args.out}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
