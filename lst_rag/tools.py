from __future__ import annotations
import logging
from typing import Any, Dict, List

import requests

from .config import POOLS_URL, CHART_URL, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

# urllib3 logs every retry/connection at DEBUG
logging.getLogger("urllib3").setLevel(logging.WARNING)


class PoolDecodeError(ValueError):
    """The /pools response was neither a bare list nor {"data": [...]}."""


def parse_pools(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict) and isinstance(payload.get("data"), list):
        entries = payload["data"]
    else:
        raise PoolDecodeError(f"unrecognised pools payload: {type(payload).__name__}")
    # Drop junk entries the filter can't reason about
    return [e for e in entries if isinstance(e, dict) and e.get("project")]


def get_pools(timeout: float = REQUEST_TIMEOUT) -> List[Dict[str, Any]]:
    r = requests.get(POOLS_URL, timeout=timeout)
    r.raise_for_status()
    return parse_pools(r.json())


def get_pool_history(pool_id: str, timeout: float = REQUEST_TIMEOUT) -> List[Dict[str, Any]]:
    url = f"{CHART_URL}/{pool_id}"
    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    data = r.json()
    if isinstance(data, dict) and data.get("status") == "success" and isinstance(data.get("data"), list):
        return data["data"]
    logger.debug("Unexpected history payload for pool %s", pool_id)
    return []
