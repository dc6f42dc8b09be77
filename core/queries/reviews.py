#!/usr/bin/env python3
"""
Review stats reader - best-effort enrichment for candidate listings.

The review subsystem lives elsewhere; this client only reads its aggregate
endpoint. Every failure is logged and answered with None so a listing never
fails because reviews are unavailable.
"""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class ReviewStatsClient:
    """GET {base_url}/workers/{worker_id}/review-stats -> {"average": 4.5, "count": 12, ...}"""

    def __init__(self, base_url: str, request_timeout_seconds: int = 3, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.request_timeout_seconds = request_timeout_seconds
        self.session = session or requests.Session()

    def get_review_stats(self, worker_id: Any) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}/workers/{worker_id}/review-stats"
        try:
            response = self.session.get(url, timeout=self.request_timeout_seconds)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Review stats unavailable for worker {worker_id}: {e}")
            return None

        data = payload.get('data', payload) if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            logger.warning(f"Unexpected review stats payload for worker {worker_id}")
            return None
        return {
            'average': data.get('average', data.get('avg')),
            'count': data.get('count', 0),
        }

    def close(self):
        self.session.close()
