import pytest

from lst_rag.ingest import PoolRecord


def make_pool(project="lido", chain="Ethereum", symbol="STETH", tvl=1_000_000.0, apy=3.0, **kw):
    return PoolRecord(chain=chain, project=project, symbol=symbol, tvl_usd=tvl, apy=apy,
                      pool=kw.pop("pool", f"{project}-{chain}-{symbol}".lower()), **kw)


def raw_pool(project="lido", chain="Ethereum", symbol="STETH", tvl=1_000_000.0, apy=3.0, **kw):
    entry = {"project": project, "chain": chain, "symbol": symbol, "tvlUsd": tvl, "apy": apy,
             "pool": f"{project}-{chain}-{symbol}".lower()}
    entry.update(kw)
    return entry


@pytest.fixture
def market():
    return [
        make_pool("lido", "Ethereum", "STETH", 30_000_000_000, 3.1, audits="2", sigma=0.02),
        make_pool("rocket-pool", "Ethereum", "RETH", 4_000_000_000, 2.9, audits="2"),
        make_pool("jito", "Solana", "JITOSOL", 2_000_000_000, 7.4),
        make_pool("bifrost-liquid-staking", "Bifrost", "VDOT", 90_000_000, 14.2,
                  project_name="Bifrost Liquid Staking"),
        make_pool("stride", "Stride", "STATOM", 50_000_000, 16.0),
        make_pool("benqi-staked-avax", "Avalanche", "SAVAX", 120_000_000, 5.5),
    ]
