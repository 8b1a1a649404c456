from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .topology import JOIN_ALL, JOIN_K_OF_N, JOIN_NONE, JOIN_WINDOW, JoinSemantics
from .utils import clamp01


@dataclass(frozen=True)
class JoinOutcome:
    """
    Result of combining N inbound streams into one effective ingress.

    - ingress_rps: effective ingress after the join rule and efficiency
    - active:      indexes of the streams that contribute
    - consumption: per-stream rate the join actually draws (for backpressure)
    - reason:      human-readable formula used, for explanations
    """

    ingress_rps: float
    active: Tuple[int, ...]
    consumption: Tuple[float, ...]
    reason: str


def _quorum(rates: Sequence[float], required: int | None) -> Tuple[int, float, float, List[int]]:
    """Return (k, kth largest, sum/k, indexes of the top-k streams)."""
    n = len(rates)
    k = max(1, min(required if required is not None else n, max(1, n)))
    # Stable sort keeps inbound-edge order among equal rates.
    ranked = sorted(range(n), key=lambda i: -rates[i])
    kth = rates[ranked[k - 1]] if n >= k else 0.0
    fair_share = sum(rates) / k
    return k, kth, fair_share, ranked[:k]


def evaluate_join(join: JoinSemantics, rates: Sequence[float]) -> JoinOutcome:
    n = len(rates)
    if join.type == JOIN_NONE or n == 0:
        return JoinOutcome(
            ingress_rps=sum(rates),
            active=tuple(range(n)),
            consumption=tuple(rates),
            reason="merge",
        )

    efficiency = clamp01(join.efficiency, default=1.0)

    if join.type == JOIN_ALL:
        base = min(rates)
        ingress = base * efficiency
        return JoinOutcome(
            ingress_rps=ingress,
            active=tuple(range(n)),
            consumption=tuple(ingress for _ in rates),
            reason=f"all: min={base:g}",
        )

    if join.type in (JOIN_K_OF_N, JOIN_WINDOW):
        k, kth, fair_share, top = _quorum(rates, join.required_streams)
        base = min(kth, fair_share)
        if join.type == JOIN_WINDOW:
            match_rate = clamp01(join.match_rate, default=1.0)
            ingress = base * match_rate * efficiency
            reason = f"window k={k}: min(kth={kth:g}, sum/k={fair_share:.2f}) * match={match_rate:g}"
        else:
            ingress = base * efficiency
            reason = f"kOfN k={k}: min(kth={kth:g}, sum/k={fair_share:.2f})"
        active = set(top)
        return JoinOutcome(
            ingress_rps=ingress,
            active=tuple(sorted(active)),
            consumption=tuple(ingress if i in active else 0.0 for i in range(n)),
            reason=reason,
        )

    raise ValueError(f"unknown join type {join.type!r}")
