from typing import Optional

import requests
from fastapi import HTTPException, status
from loguru import logger

from applypass.core.settings import Settings, config_settings
from applypass.models.schemas.memory import MemoryClearResponseModel, MemoryCountResponseModel


class MemoryService:
    """Thin proxy over the mem0 memories API, scoped to one user."""

    def __init__(self, settings: Settings = config_settings, session: Optional[requests.Session] = None):
        if not settings.MEM0_API_KEY:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Memory service not configured",
            )
        self.api_key = settings.MEM0_API_KEY
        self.base_url = settings.MEM0_API_URL.rstrip("/")
        self.timeout = settings.MEM0_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def _request(self, method: str, user_id: str) -> requests.Response:
        return self.session.request(
            method,
            f"{self.base_url}/v1/memories/",
            params={"user_id": user_id},
            headers={
                "Authorization": f"Token {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )

    def clear(self, user_id: str) -> MemoryClearResponseModel:
        logger.info("Clearing all memories for user {}", user_id)
        resp = self._request("DELETE", user_id)
        if not resp.ok:
            logger.error("mem0 delete error: {} {}", resp.status_code, resp.text)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to clear memories",
            )
        return MemoryClearResponseModel()

    def count(self, user_id: str) -> MemoryCountResponseModel:
        resp = self._request("GET", user_id)
        if not resp.ok:
            # A failed lookup reads as "no memories" to the client.
            logger.error("mem0 get error: {} {}", resp.status_code, resp.text)
            return MemoryCountResponseModel(count=0)

        data = resp.json()
        if isinstance(data, list):
            count = len(data)
        elif isinstance(data, dict):
            count = len(data.get("results") or [])
        else:
            count = 0
        logger.info("Memory count for user {}: {}", user_id, count)
        return MemoryCountResponseModel(count=count)

    def handle(self, action: str, user_id: str):
        if action == "clear":
            return self.clear(user_id)
        if action == "count":
            return self.count(user_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid action")
