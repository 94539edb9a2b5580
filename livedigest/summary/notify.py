"""Best-effort webhook delivery of updated summaries."""

from __future__ import annotations

import json
import logging

import httpx

logger = logging.getLogger(__name__)

PLACEHOLDER = "{summary}"


class WebhookNotifier:
    """POST a templated payload once per updated summary.

    Failures are logged and returned as False; delivery is never retried.
    """

    def __init__(
        self,
        url: str,
        template: str = '{"summary":"{summary}"}',
        *,
        content_type: str = "application/json",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.template = template
        self.content_type = content_type
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def render(self, summary: str) -> str:
        if "json" in self.content_type:
            # Escape for a JSON string literal; the template supplies the quotes.
            summary = json.dumps(summary, ensure_ascii=False)[1:-1]
        return self.template.replace(PLACEHOLDER, summary)

    async def notify(self, summary: str) -> bool:
        if not self.url:
            return False
        try:
            response = await self._client.post(
                self.url,
                content=self.render(summary).encode("utf-8"),
                headers={"Content-Type": self.content_type},
            )
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery to %s failed: %s", self.url, exc)
            return False
        if not response.is_success:
            logger.warning("Webhook %s answered %s", self.url, response.status_code)
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
