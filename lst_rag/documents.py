from __future__ import annotations
from typing import List, Optional

from .config import TOP_N
from .ingest import PoolRecord
from .utils import Doc, format_usd


def _pct(v: Optional[float]) -> str:
    return f"{v:.2f}%" if v is not None else "N/A"


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


def protocol_doc(p: PoolRecord) -> Doc:
    project, symbol, chain = p.project.lower(), p.symbol.lower(), p.chain.lower()
    content = f"""
Protocol: {p.project}
Symbol: {p.symbol}
Chain: {p.chain}
APY: {p.apy:.2f}%
Base APY: {_pct(p.apy_base)}
Reward APY: {_pct(p.apy_reward)}
TVL: {format_usd(p.tvl_usd)}
1-Day APY Change: {_pct(p.apy_pct_1d)}
7-Day APY Change: {_pct(p.apy_pct_7d)}
30-Day APY Change: {_pct(p.apy_pct_30d)}
30-Day Mean APY: {_pct(p.apy_mean_30d)}
Volatility (sigma): {f"{p.sigma:.4f}" if p.sigma is not None else "N/A"}
Audited: {"Yes" if p.audits else "No"}
"""
    return Doc(
        id=f"protocol-{p.project}-{p.chain}",
        content=content,
        metadata={"type": "protocol", "project": p.project, "symbol": p.symbol,
                  "chain": p.chain, "apy": p.apy, "tvl_usd": p.tvl_usd},
        keywords=[project, symbol, chain, f"{project} {chain}", f"{symbol} {chain}",
                  "apy", "yield", "tvl", "liquid staking", "staking"],
    )


def category_docs(pools: List[PoolRecord], n: int = TOP_N) -> List[Doc]:
    top_apy = sorted(pools, key=lambda p: -p.apy)[:n]
    top_tvl = sorted(pools, key=lambda p: -p.tvl_usd)[:n]
    apy_lines = "\n".join(
        f"- {p.project} ({p.symbol}): {p.apy:.2f}% APY, TVL: {format_usd(p.tvl_usd)}, Chain: {p.chain}"
        for p in top_apy
    )
    tvl_lines = "\n".join(
        f"- {p.project} ({p.symbol}): {format_usd(p.tvl_usd)} TVL, APY: {p.apy:.2f}%, Chain: {p.chain}"
        for p in top_tvl
    )
    return [
        Doc(id="category-top-apy",
            content=f"\nTop Performing Protocols by APY:\n{apy_lines}\n",
            metadata={"type": "category", "category": "top-apy"},
            keywords=["top", "best", "highest", "apy", "yield", "performance", "performing"]),
        Doc(id="category-top-tvl",
            content=f"\nLargest Protocols by TVL:\n{tvl_lines}\n",
            metadata={"type": "category", "category": "top-tvl"},
            keywords=["top", "largest", "biggest", "tvl", "value", "locked", "size"]),
    ]


def chain_docs(pools: List[PoolRecord]) -> List[Doc]:
    docs = []
    for chain in _unique([p.chain for p in pools]):
        lines = "\n".join(
            f"- {p.project} ({p.symbol}): {p.apy:.2f}% APY, TVL: {format_usd(p.tvl_usd)}"
            for p in pools if p.chain == chain
        )
        docs.append(Doc(
            id=f"chain-{chain}",
            content=f"\nProtocols on {chain} chain:\n{lines}\n",
            metadata={"type": "chain", "chain": chain},
            keywords=[chain.lower(), "chain", "network", "blockchain"],
        ))
    return docs


def project_docs(pools: List[PoolRecord]) -> List[Doc]:
    docs = []
    for project in _unique([p.project for p in pools]):
        members = [p for p in pools if p.project == project]
        lines = "\n".join(
            f"- {p.symbol} on {p.chain}: {p.apy:.2f}% APY, TVL: {format_usd(p.tvl_usd)}"
            for p in members
        )
        docs.append(Doc(
            id=f"project-{project}",
            content=f"\n{project} protocols:\n{lines}\n",
            metadata={"type": "project", "project": project},
            keywords=[project.lower(), *(p.symbol.lower() for p in members), "project", "protocol"],
        ))
    return docs


def build_docs_from_pools(pools: List[PoolRecord]) -> List[Doc]:
    """Regenerate the full document set: protocol, category, chain and project docs."""
    docs: List[Doc] = [protocol_doc(p) for p in pools]
    docs.extend(category_docs(pools))
    docs.extend(chain_docs(pools))
    docs.extend(project_docs(pools))
    return docs
