from __future__ import annotations
import re, time, logging, threading
from dataclasses import dataclass
from typing import List, Dict, Any, Tuple, Sequence

from openai import OpenAI

from prompts import SYSTEM_PROMPT
from .aggregate import aggregate
from .config import HIGHLIGHTED_PROJECTS, LLM_BASE_URL, LLM_MODEL, SEARCH_K, TOP_N
from .documents import build_docs_from_pools
from .ingest import HistoryFetcher, PoolCache, PoolRecord, enrich_many
from .utils import Doc, KeywordIndex, format_currency, format_percentage

logger = logging.getLogger(__name__)

OVERVIEW_QUERY = re.compile(r"highest apy|top apy|best yield|top lst|top protocol", re.IGNORECASE)

SECTIONS = (
    ("protocol", "### Protocol Details"),
    ("category", "### Market Overview"),
    ("chain", "### Chain-Specific Information"),
    ("project", "### Project Information"),
)


class LLMNotConfigured(RuntimeError):
    """answer_stream was called before set_openai()."""


@dataclass(frozen=True)
class _Snapshot:
    records: Tuple[PoolRecord, ...]
    index: KeywordIndex
    updated_at: float


class KnowledgeStore:
    """Keeps the pool records and their keyword index as one generation.

    ``update`` builds a new index off to the side and swaps it in together with
    the records, so ``get_context`` never mixes documents from one update with
    the overview data of another.
    """

    def __init__(self, highlighted: Sequence[str] = HIGHLIGHTED_PROJECTS):
        self.highlighted = tuple(h.lower() for h in highlighted)
        self._snapshot = _Snapshot(records=(), index=KeywordIndex(), updated_at=0.0)
        self._write_lock = threading.Lock()

    @property
    def records(self) -> Tuple[PoolRecord, ...]:
        return self._snapshot.records

    @property
    def index(self) -> KeywordIndex:
        return self._snapshot.index

    @property
    def last_updated(self) -> float:
        return self._snapshot.updated_at

    def update(self, records: List[PoolRecord]):
        with self._write_lock:
            try:
                docs = build_docs_from_pools(records)
                index = KeywordIndex()
                index.clear()
                index.add_documents(docs)
                self._snapshot = _Snapshot(records=tuple(records), index=index, updated_at=time.time())
                logger.info("Updated knowledge store with %d pools (%d documents)", len(records), len(docs))
            except Exception:
                # keep serving the previous generation
                logger.exception("Error updating knowledge store")

    def search(self, query: str, k: int = SEARCH_K) -> List[Doc]:
        return self._snapshot.index.search(query, k)

    def get_context(self, query: str) -> str:
        snap = self._snapshot
        try:
            hits = [d for d, score in snap.index.search_with_scores(query, SEARCH_K) if score > 0]
            if not hits:
                return self.general_overview(snap.records)

            context = "## Retrieved Information\n\n"
            for doc_type, heading in SECTIONS:
                bucket = [d for d in hits if d.metadata.get("type") == doc_type]
                if bucket:
                    context += heading + "\n\n"
                    for d in bucket:
                        context += d.content + "\n\n"

            if OVERVIEW_QUERY.search(query):
                context += "\n" + self.general_overview(snap.records)
            return context
        except Exception:
            logger.exception("Error getting context for query %r", query)
            return self._fallback_overview(snap.records)

    def _fallback_overview(self, records: Sequence[PoolRecord]) -> str:
        try:
            return self.general_overview(records)
        except Exception:
            logger.exception("Error building general overview")
            return "### General Overview\n\nMarket data is currently unavailable.\n"

    def general_overview(self, records: Sequence[PoolRecord] | None = None) -> str:
        records = self._snapshot.records if records is None else records
        overview = "### General Overview\n\n"

        overview += "Top Performing Protocols by APY:\n"
        for p in sorted(records, key=lambda r: -r.apy)[:TOP_N]:
            overview += f"- {p.project} ({p.symbol}): {format_percentage(p.apy)} APY, TVL: {format_currency(p.tvl_usd)}\n"

        overview += "\nLargest Protocols by TVL:\n"
        for p in sorted(records, key=lambda r: -r.tvl_usd)[:TOP_N]:
            overview += f"- {p.project} ({p.symbol}): {format_currency(p.tvl_usd)} TVL, APY: {format_percentage(p.apy)}\n"

        for brand in self.highlighted:
            matches = [p for p in records
                       if brand in p.project.lower() or (p.project_name and brand in p.project_name.lower())]
            if not matches:
                continue
            overview += f"\n### {brand.title()} Protocols\n\n"
            for p in matches:
                overview += (f"- {p.project} ({p.symbol}) on {p.chain}: {format_percentage(p.apy)} APY, "
                             f"TVL: {format_currency(p.tvl_usd)}\n")
        return overview

    def get_project_data(self, name: str) -> List[PoolRecord]:
        needle = name.lower()
        return [p for p in self._snapshot.records
                if needle in p.project.lower() or (p.project_name and needle in p.project_name.lower())]


class LSTRagPipeline:
    def __init__(self, cache: PoolCache | None = None, store: KnowledgeStore | None = None,
                 history_fetcher: HistoryFetcher | None = None):
        self.cache = cache or PoolCache()
        self.store = store or KnowledgeStore()
        self.history_fetcher = history_fetcher
        self.client: OpenAI | None = None

    def set_openai(self, api_key: str, base_url: str | None = LLM_BASE_URL):
        self.client = OpenAI(api_key=api_key, base_url=base_url)

    def refresh(self, force_refresh: bool = False) -> int:
        records = self.cache.fetch(force_refresh)
        self.store.update(records)
        return len(records)

    def load_market(self, force_refresh: bool = False) -> Dict[str, Any]:
        records = self.cache.fetch(force_refresh)
        pools = enrich_many(records, self.history_fetcher)
        return {
            "protocols": aggregate(pools),
            "pools": sorted(pools, key=lambda p: -p.tvl),
        }

    def search(self, query: str, k: int = SEARCH_K) -> List[Doc]:
        return self.store.search(query, k)

    def get_context(self, query: str) -> str:
        return self.store.get_context(query)

    def debug_query(self, query: str) -> Dict[str, Any]:
        results = self.search(query)
        return {
            "query": query,
            "results": [{"id": d.id, "metadata": d.metadata, "content_preview": d.content[:100] + "..."}
                        for d in results],
            "context": self.get_context(query),
        }

    def build_prompt(self, messages: List[Dict[str, str]]) -> Tuple[List[Dict[str, str]], str]:
        user_messages = [m for m in messages if m.get("role") == "user"]
        last = user_messages[-1]["content"] if user_messages else ""
        system_prompt = SYSTEM_PROMPT.format(context=self.get_context(last))
        return messages, system_prompt

    def answer_stream(self, messages: List[Dict[str, str]], model: str = LLM_MODEL):
        if self.client is None:
            raise LLMNotConfigured("LLM client not set; call set_openai() first")
        messages, system_prompt = self.build_prompt(messages)
        with self.client.chat.completions.create(
            model=model,
            messages=[{"role": "system", "content": system_prompt}, *messages],
            stream=True,
        ) as stream:
            for event in stream:
                if hasattr(event, "choices") and event.choices:
                    delta = event.choices[0].delta
                    if delta and delta.content:
                        yield delta.content
