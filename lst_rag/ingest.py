from __future__ import annotations
import time, logging, threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from . import tools
from .config import CACHE_TTL_SECONDS, HISTORY_WORKERS, LST_PROJECTS

logger = logging.getLogger(__name__)


class UpstreamUnavailable(RuntimeError):
    """Remote pool fetch failed and there is no cached snapshot to fall back on."""

UpstreamError = UpstreamUnavailable


def _opt_float(v: Any) -> Optional[float]:
    if v is None:
        return None
    return float(v)


def _opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(v)


@dataclass(frozen=True)
class PoolRecord:
    chain: str
    project: str
    symbol: str
    tvl_usd: float = 0.0
    apy: float = 0.0
    apy_base: Optional[float] = None
    apy_reward: Optional[float] = None
    apy_pct_1d: Optional[float] = None
    apy_pct_7d: Optional[float] = None
    apy_pct_30d: Optional[float] = None
    apy_mean_30d: Optional[float] = None
    sigma: Optional[float] = None
    audits: Optional[str] = None
    pool: str = ""
    pool_meta: Optional[str] = None
    project_name: Optional[str] = None
    stablecoin: bool = False

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PoolRecord":
        return cls(
            chain=str(raw.get("chain") or ""),
            project=str(raw.get("project") or ""),
            symbol=str(raw.get("symbol") or ""),
            tvl_usd=float(raw.get("tvlUsd") or 0.0),
            apy=float(raw.get("apy") or 0.0),
            apy_base=_opt_float(raw.get("apyBase")),
            apy_reward=_opt_float(raw.get("apyReward")),
            apy_pct_1d=_opt_float(raw.get("apyPct1D")),
            apy_pct_7d=_opt_float(raw.get("apyPct7D")),
            apy_pct_30d=_opt_float(raw.get("apyPct30D")),
            apy_mean_30d=_opt_float(raw.get("apyMean30d")),
            sigma=_opt_float(raw.get("sigma")),
            audits=_opt_str(raw.get("audits")),
            pool=str(raw.get("pool") or ""),
            pool_meta=_opt_str(raw.get("poolMeta")),
            project_name=_opt_str(raw.get("projectName")),
            stablecoin=bool(raw.get("stablecoin", False)),
        )


@dataclass(frozen=True)
class HistoricalPoint:
    timestamp: str
    tvl_usd: float
    apy: float
    apy_base: Optional[float] = None
    apy_reward: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "HistoricalPoint":
        return cls(
            timestamp=str(raw["timestamp"]),
            tvl_usd=float(raw.get("tvlUsd") or 0.0),
            apy=float(raw.get("apy") or 0.0),
            apy_base=_opt_float(raw.get("apyBase")),
            apy_reward=_opt_float(raw.get("apyReward")),
        )


@dataclass
class PoolWithHistory:
    name: str
    chain: str
    symbol: str
    tvl: float
    apy: float
    change_24h: float = 0.0
    change_7d: float = 0.0
    history: List[HistoricalPoint] = field(default_factory=list)
    pool: str = ""
    pool_meta: Optional[str] = None

    @classmethod
    def from_record(cls, rec: PoolRecord, history: List[HistoricalPoint]) -> "PoolWithHistory":
        return cls(
            name=rec.project,
            chain=rec.chain,
            symbol=rec.symbol,
            tvl=rec.tvl_usd,
            apy=rec.apy,
            change_24h=rec.apy_pct_1d or 0.0,
            change_7d=rec.apy_pct_7d or 0.0,
            history=history,
            pool=rec.pool,
            pool_meta=rec.pool_meta,
        )


@dataclass(frozen=True)
class CacheEntry:
    timestamp: float
    data: Tuple[PoolRecord, ...]


def filter_allowed(entries: Iterable[Dict[str, Any]], allow_list: Sequence[str] = LST_PROJECTS) -> List[PoolRecord]:
    # Exact match only: "lidofinance" must not pass because "lido" is listed
    allowed = {p.lower() for p in allow_list}
    records = []
    for e in entries:
        if not isinstance(e, dict) or str(e.get("project", "")).lower() not in allowed:
            continue
        try:
            records.append(PoolRecord.from_dict(e))
        except (TypeError, ValueError) as err:
            logger.warning("Skipping malformed pool %s (%s): %s", e.get("pool"), e.get("project"), err)
    return records


class PoolCache:
    """Single shared snapshot of the last successful /pools fetch.

    Serves the snapshot while it is younger than ``ttl``; on upstream failure
    the snapshot is served regardless of age.
    """

    def __init__(self, fetcher: Optional[Callable[[], List[Dict[str, Any]]]] = None,
                 ttl: float = CACHE_TTL_SECONDS, allow_list: Sequence[str] = LST_PROJECTS,
                 clock: Callable[[], float] = time.time):
        self.fetcher = fetcher or tools.get_pools
        self.ttl = ttl
        self.allow_list = tuple(allow_list)
        self.clock = clock
        self._entry: CacheEntry | None = None
        self._lock = threading.Lock()

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    def is_fresh(self) -> bool:
        entry = self._entry
        return entry is not None and self.clock() - entry.timestamp < self.ttl

    def fetch(self, force_refresh: bool = False, strict: bool = False) -> List[PoolRecord]:
        with self._lock:
            if not force_refresh and self.is_fresh():
                logger.debug("Using cached LST data")
                return list(self._entry.data)

            logger.info("Fetching fresh LST data")
            try:
                entries = self.fetcher()
                records = filter_allowed(entries, self.allow_list)
            except (requests.RequestException, ValueError) as e:
                if self._entry is not None:
                    logger.warning("Pool fetch failed (%s); serving cached data from %.0fs ago",
                                   e, self.clock() - self._entry.timestamp)
                    return list(self._entry.data)
                if strict:
                    raise UpstreamUnavailable(str(e)) from e
                logger.error("Pool fetch failed and no cache exists: %s", e)
                return []

            logger.info("Filtered %d LST pools from %d total", len(records), len(entries))
            self._entry = CacheEntry(timestamp=self.clock(), data=tuple(records))
            return records


HistoryFetcher = Callable[[str], List[Dict[str, Any]]]


def enrich(record: PoolRecord, fetcher: Optional[HistoryFetcher] = None) -> List[HistoricalPoint]:
    if not record.pool:
        return []
    fetcher = fetcher or tools.get_pool_history
    try:
        return [HistoricalPoint.from_dict(p) for p in fetcher(record.pool)]
    except Exception as e:
        logger.warning("History unavailable for %s (%s): %s", record.project, record.pool, e)
        return []


def enrich_many(records: Sequence[PoolRecord], fetcher: Optional[HistoryFetcher] = None,
                max_workers: int = HISTORY_WORKERS) -> List[PoolWithHistory]:
    """Fetch history for every record in parallel; a failed record just gets no history."""
    if not records:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(records)))) as pool:
        histories = list(pool.map(lambda r: enrich(r, fetcher), records))
    return [PoolWithHistory.from_record(r, h) for r, h in zip(records, histories)]
