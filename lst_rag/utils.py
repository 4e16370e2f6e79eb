from __future__ import annotations
import re, logging, threading
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[\W_]", re.ASCII)


def format_currency(value: float, decimals: int = 2) -> str:
    if value >= 1_000_000_000:
        return f"${value / 1_000_000_000:.{decimals}f}B"
    if value >= 1_000_000:
        return f"${value / 1_000_000:.{decimals}f}M"
    if value >= 1_000:
        return f"${value / 1_000:.{decimals}f}K"
    return f"${value:.{decimals}f}"


def format_percentage(value: Optional[float], decimals: int = 2) -> str:
    if value is None:
        return "N/A"
    return f"{value:.{decimals}f}%"


def format_usd(value: float) -> str:
    return f"${value:,.0f}"


@dataclass
class Doc:
    id: str
    content: str
    metadata: Dict[str, Any]
    keywords: List[str] = field(default_factory=list)


def query_tokens(normalized_query: str) -> List[str]:
    # Length filter runs before stripping punctuation, so "apy?" survives as "apy"
    words = [w for w in normalized_query.split() if len(w) > 3]
    return [t for t in (_NON_ALNUM.sub("", w) for w in words) if t]


def score_doc(doc: Doc, normalized_query: str, tokens: List[str]) -> int:
    score = 0
    project = doc.metadata.get("project")
    if project and str(project).lower() in normalized_query:
        score += 10
    chain = doc.metadata.get("chain")
    if chain and str(chain).lower() in normalized_query:
        score += 5
    for t in tokens:
        if any(t in kw for kw in doc.keywords):
            score += 1
    return score


class KeywordIndex:
    """In-memory document store ranked by keyword / substring overlap.

    Not an embedding index: scores are small integers and a score of 0 means
    nothing in the query matched the document.
    """

    def __init__(self):
        self.docs: List[Doc] = []
        self._positions: Dict[str, int] = {}
        self._initialized = False
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self.docs)

    def initialize(self) -> bool:
        with self._lock:
            if not self._initialized:
                self._initialized = True
                logger.debug("Keyword index initialized")
        return True

    def ready(self) -> bool:
        return self._initialized and len(self.docs) > 0

    def add_documents(self, docs: List[Doc]) -> int:
        with self._lock:
            if not self._initialized:
                self.initialize()
            for d in docs:
                pos = self._positions.get(d.id)
                if pos is None:
                    self._positions[d.id] = len(self.docs)
                    self.docs.append(d)
                else:
                    self.docs[pos] = d
            logger.debug("Upserted %d documents (%d total)", len(docs), len(self.docs))
            return len(docs)

    def clear(self):
        with self._lock:
            self.docs = []
            self._positions = {}

    def search_with_scores(self, query: str, k: int = 5) -> List[Tuple[Doc, int]]:
        q = (query or "").lower()
        tokens = query_tokens(q)
        with self._lock:
            if not self._initialized:
                self.initialize()
            scored = [(d, score_doc(d, q, tokens)) for d in self.docs]
        # list.sort is stable, so equal scores keep insertion order
        scored.sort(key=lambda x: -x[1])
        return scored[:k]

    def search(self, query: str, k: int = 5) -> List[Doc]:
        return [d for d, _ in self.search_with_scores(query, k)]
