from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Any

import numpy as np

from .ingest import PoolRecord, PoolWithHistory
from .utils import format_currency, format_percentage


@dataclass
class ProtocolAggregate:
    name: str
    tvl: float = 0.0
    apy: float = 0.0
    change_24h: float = 0.0
    change_7d: float = 0.0
    pools: List[PoolWithHistory] = field(default_factory=list)


def aggregate(pools: List[PoolWithHistory]) -> List[ProtocolAggregate]:
    """Group pools by project and compute TVL-weighted metrics.

    Groups are keyed by the lower-cased project name and keep the first
    spelling seen. Output is sorted by descending TVL; ties keep discovery order.
    """
    groups: Dict[str, ProtocolAggregate] = {}
    for p in pools:
        key = p.name.lower()
        if key not in groups:
            groups[key] = ProtocolAggregate(name=p.name)
        groups[key].pools.append(p)

    for proto in groups.values():
        tvl = np.array([p.tvl for p in proto.pools], dtype=float)
        proto.tvl = float(tvl.sum())
        if proto.tvl <= 0:
            # weights are undefined without TVL
            continue
        w = tvl / proto.tvl
        proto.apy = float(np.dot(w, [p.apy for p in proto.pools]))
        proto.change_24h = float(np.dot(w, [p.change_24h for p in proto.pools]))
        proto.change_7d = float(np.dot(w, [p.change_7d for p in proto.pools]))

    return sorted(groups.values(), key=lambda p: -p.tvl)


def _normalize_project_name(name: str) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in name.split("-"))


def _apy_trend(rec: PoolRecord) -> Dict[str, Any]:
    change = rec.apy_pct_30d or rec.apy_pct_7d or 0.0
    direction = "up" if change > 0.5 else "down" if change < -0.5 else "stable"
    if abs(change) > 5:
        magnitude = "strong"
    elif abs(change) > 2:
        magnitude = "moderate"
    else:
        magnitude = "slight"
    return {"direction": direction, "magnitude": magnitude, "value": change}


def _risk_level(rec: PoolRecord) -> str:
    sigma = rec.sigma or 0.0
    if sigma > 0.1 or not rec.audits:
        return "high"
    if sigma > 0.05:
        return "medium"
    return "low"


def _tags(rec: PoolRecord) -> List[str]:
    tags = [rec.chain.lower()]

    if rec.tvl_usd > 1_000_000_000:
        tags.append("large-tvl")
    elif rec.tvl_usd > 100_000_000:
        tags.append("medium-tvl")
    else:
        tags.append("small-tvl")

    if rec.apy > 10:
        tags.append("high-yield")
    elif rec.apy > 5:
        tags.append("medium-yield")
    else:
        tags.append("low-yield")

    if rec.sigma:
        if rec.sigma < 0.03:
            tags.append("stable")
        elif rec.sigma > 0.1:
            tags.append("volatile")
    return tags


def profile_pool(rec: PoolRecord) -> Dict[str, Any]:
    """Display-oriented view of one pool: trend, risk bucket and tags."""
    return {
        "pool": rec.pool,
        "project": rec.project,
        "normalized_name": _normalize_project_name(rec.project),
        "formatted_tvl": format_currency(rec.tvl_usd),
        "formatted_apy": format_percentage(rec.apy),
        "apy_trend": _apy_trend(rec),
        "stability": 1 / rec.sigma if rec.sigma else 100.0,
        "risk_level": _risk_level(rec),
        "tags": _tags(rec),
    }


def profile_pools(records: List[PoolRecord]) -> List[Dict[str, Any]]:
    return [profile_pool(r) for r in records]
