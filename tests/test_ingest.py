"""Tests for the pool cache, allow-list filter and history enrichment."""
import threading
from unittest.mock import Mock

import pytest
import requests

from conftest import make_pool, raw_pool
from lst_rag.ingest import (
    HistoricalPoint, PoolCache, PoolRecord, UpstreamError, UpstreamUnavailable,
    enrich, enrich_many, filter_allowed,
)
from lst_rag.tools import PoolDecodeError


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestPoolRecord:

    def test_from_dict_maps_provider_fields(self):
        rec = PoolRecord.from_dict(raw_pool(apyBase=2.5, apyReward=None, apyPct1D=0.1,
                                            apyMean30d=3.3, sigma=0.04, audits="2", poolMeta="v2"))
        assert rec.project == "lido"
        assert rec.tvl_usd == 1_000_000.0
        assert rec.apy_base == 2.5
        assert rec.apy_reward is None
        assert rec.apy_pct_1d == 0.1
        assert rec.apy_pct_7d is None
        assert rec.apy_mean_30d == 3.3
        assert rec.pool_meta == "v2"

    def test_missing_apy_defaults_to_zero(self):
        rec = PoolRecord.from_dict({"project": "lido", "chain": "Ethereum", "symbol": "STETH", "apy": None})
        assert rec.apy == 0.0
        assert rec.tvl_usd == 0.0


class TestAllowList:

    def test_exact_case_insensitive_match_kept(self):
        kept = filter_allowed([raw_pool(project="Lido")], allow_list=["lido"])
        assert [r.project for r in kept] == ["Lido"]

    def test_substring_is_not_a_match(self):
        assert filter_allowed([raw_pool(project="lidofinance")], allow_list=["lido"]) == []

    @pytest.mark.parametrize("bad_tvl", ["n/a", [1, 2], {"usd": 1}])
    def test_malformed_entry_is_skipped(self, bad_tvl):
        kept = filter_allowed([raw_pool(), raw_pool(project="jito", tvl=bad_tvl), "junk"])
        assert [r.project for r in kept] == ["lido"]

    def test_optional_text_fields_are_strings(self):
        (rec,) = filter_allowed([raw_pool(projectName=123, audits=2, poolMeta=7)])
        assert (rec.project_name, rec.audits, rec.pool_meta) == ("123", "2", "7")

    def test_default_allow_list(self):
        kept = filter_allowed([raw_pool(project="jito"), raw_pool(project="uniswap-v3")])
        assert [r.project for r in kept] == ["jito"]


class TestPoolCache:

    def setup_method(self):
        self.clock = FakeClock()
        self.fetcher = Mock(return_value=[raw_pool(), raw_pool(project="aave-v3")])
        self.cache = PoolCache(fetcher=self.fetcher, ttl=900, clock=self.clock)

    def test_fetch_filters_and_caches(self):
        records = self.cache.fetch()
        assert [r.project for r in records] == ["lido"]
        assert self.cache.entry.timestamp == 1_000.0

    def test_two_fetches_within_ttl_hit_remote_once(self):
        self.cache.fetch()
        self.clock.now += 899
        self.cache.fetch()
        assert self.fetcher.call_count == 1

    def test_expired_entry_refetches(self):
        self.cache.fetch()
        self.clock.now += 900
        self.cache.fetch()
        assert self.fetcher.call_count == 2

    def test_force_refresh_always_calls_remote(self):
        self.cache.fetch()
        self.cache.fetch(force_refresh=True)
        self.cache.fetch(force_refresh=True)
        assert self.fetcher.call_count == 3

    def test_stale_data_served_on_failure(self):
        first = self.cache.fetch()
        self.clock.now += 10_000
        self.fetcher.side_effect = requests.ConnectionError("down")
        assert self.cache.fetch() == first
        # entry is retained, not cleared
        assert self.cache.entry.timestamp == 1_000.0

    def test_decode_error_served_from_cache(self):
        first = self.cache.fetch()
        self.fetcher.side_effect = PoolDecodeError("bad shape")
        assert self.cache.fetch(force_refresh=True) == first

    def test_failure_without_cache_is_soft(self):
        self.fetcher.side_effect = requests.Timeout("slow")
        assert self.cache.fetch() == []
        assert self.cache.entry is None

    def test_failure_without_cache_strict_raises(self):
        self.fetcher.side_effect = requests.Timeout("slow")
        with pytest.raises(UpstreamUnavailable):
            self.cache.fetch(strict=True)
        assert UpstreamError is UpstreamUnavailable

    @pytest.mark.parametrize("bad_tvl", ["n/a", [1, 2]])
    def test_malformed_entry_keeps_rest_of_refresh(self, bad_tvl):
        self.fetcher.return_value = [raw_pool(), raw_pool(project="jito", tvl=bad_tvl),
                                     raw_pool(project="stride", chain="Stride", symbol="STATOM")]
        records = self.cache.fetch()
        assert [r.project for r in records] == ["lido", "stride"]
        assert self.cache.entry is not None

    def test_concurrent_fetches_share_one_remote_call(self):
        threads = [threading.Thread(target=self.cache.fetch) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert self.fetcher.call_count == 1


class TestEnrich:

    def test_parses_points(self):
        fetcher = Mock(return_value=[{"timestamp": "2024-01-01", "tvlUsd": 5, "apy": 3.0, "apyBase": 2.0}])
        points = enrich(make_pool(pool="p1"), fetcher)
        assert points == [HistoricalPoint("2024-01-01", 5.0, 3.0, 2.0, None)]
        fetcher.assert_called_once_with("p1")

    def test_failure_is_empty(self):
        fetcher = Mock(side_effect=requests.ConnectionError("x"))
        assert enrich(make_pool(), fetcher) == []

    def test_malformed_point_is_empty(self):
        assert enrich(make_pool(), Mock(return_value=[{"tvlUsd": 1}])) == []

    def test_no_pool_id_skips_remote(self):
        fetcher = Mock()
        assert enrich(make_pool(pool=""), fetcher) == []
        fetcher.assert_not_called()

    def test_enrich_many_isolates_failures(self):
        def fetcher(pool_id):
            if pool_id == "bad":
                raise requests.ConnectionError("x")
            return [{"timestamp": "t", "tvlUsd": 1, "apy": 1}]

        records = [make_pool(pool="a", apy_pct_1d=0.5), make_pool(pool="bad"), make_pool(pool="c")]
        rows = enrich_many(records, fetcher, max_workers=3)
        assert [len(r.history) for r in rows] == [1, 0, 1]
        assert [r.pool for r in rows] == ["a", "bad", "c"]
        assert rows[0].change_24h == 0.5
        assert rows[1].change_7d == 0.0

    def test_enrich_many_empty(self):
        assert enrich_many([], Mock()) == []
