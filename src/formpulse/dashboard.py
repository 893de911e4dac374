from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from formpulse.channel import UPDATE_EVENT, AnalyticsChannel, ConnectionState
from formpulse.client import ApiSession, FormsClient
from formpulse.utils import now_utc

logger = logging.getLogger(__name__)


class AnalyticsDashboard:
    def __init__(
        self,
        form_id: str,
        client: FormsClient,
        session: ApiSession,
        channel: AnalyticsChannel,
    ) -> None:
        self.form_id = form_id
        self.client = client
        self.session = session
        self.channel = channel
        self.analytics: dict[str, Any] | None = None
        self.last_updated: datetime | None = None
        self.error: str | None = None

    async def start(self) -> None:
        await self.refresh()
        self.channel.on(UPDATE_EVENT, self._apply_update)
        await self.channel.join(self.form_id)
        if self.channel.state is ConnectionState.DISCONNECTED:
            await self.channel.open()

    async def refresh(self) -> None:
        try:
            self.analytics = await self.client.get_analytics(self.session, self.form_id)
        except httpx.HTTPError:
            logger.exception("Error fetching analytics for form %s", self.form_id)
            self.error = "Failed to load analytics"
            return
        self.error = None
        self.last_updated = now_utc()

    async def stop(self) -> None:
        await self.channel.close()

    def _apply_update(self, message: dict[str, Any]) -> None:
        analytics = message.get("analytics")
        if not isinstance(analytics, dict):
            logger.warning("Ignoring analytics update without payload")
            return
        self.analytics = analytics
        self.last_updated = now_utc()
