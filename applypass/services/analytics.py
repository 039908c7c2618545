from typing import Any, Dict, Optional

import requests
from loguru import logger

from applypass.core.settings import Settings, config_settings


class AnalyticsSink:
    """Fire-and-forget mirror of experiment events to an external collector."""

    def __init__(
        self,
        collector_url: Optional[str] = None,
        timeout: float = 2.0,
        session: Optional[requests.Session] = None,
    ):
        self.collector_url = collector_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings = config_settings) -> "AnalyticsSink":
        return cls(
            collector_url=settings.ANALYTICS_COLLECTOR_URL,
            timeout=settings.ANALYTICS_TIMEOUT_SECONDS,
        )

    def track(self, name: str, properties: Dict[str, Any]) -> None:
        """Send one event. Never raises: an analytics outage must not break the caller."""
        if not self.collector_url:
            return
        try:
            resp = self.session.post(
                self.collector_url,
                json={"name": name, "properties": properties},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except Exception as e:  # noqa
            logger.warning("analytics mirror failed for {}: {}", name, e)
