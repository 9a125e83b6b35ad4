from __future__ import annotations

import logging
from typing import Any

import httpx

from jewel_assist import __version__
from jewel_assist.config.model import DiscordConfig

logger = logging.getLogger(__name__)


class PlatformRequestError(RuntimeError):
    def __init__(self, *, method: str, status: int, url: str, body: str) -> None:
        super().__init__(f"{method} {url} -> HTTP {status} :: {body[:500]}")
        self.method = method
        self.status = status
        self.url = url
        self.body = body


class WebhookClient:
    """Follow-up messages for interactions (interaction webhooks, token in the path)."""

    def __init__(self, cfg: DiscordConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._cfg = cfg
        headers = {
            "Content-Type": "application/json; charset=UTF-8",
            "User-Agent": f"DiscordBot (https://github.com/jewel-assist, {__version__})",
        }
        if cfg.bot_token:
            headers["Authorization"] = f"Bot {cfg.bot_token}"
        self._http = httpx.AsyncClient(
            base_url=cfg.api_base_url,
            headers=headers,
            timeout=30.0,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    def _application_id(self, application_id: str | None) -> str:
        app_id = application_id or self._cfg.application_id
        if not app_id:
            raise ValueError("application id is not configured (set APP_ID)")
        return app_id

    async def edit_original(self, *, token: str, content: str, application_id: str | None = None) -> None:
        path = f"/webhooks/{self._application_id(application_id)}/{token}/messages/@original"
        await self._request("PATCH", path, json={"content": content, "components": [], "flags": 0})

    async def edit_message(
        self,
        *,
        token: str,
        message_id: str,
        components: list[dict[str, Any]],
        application_id: str | None = None,
    ) -> None:
        path = f"/webhooks/{self._application_id(application_id)}/{token}/messages/{message_id}"
        await self._request("PATCH", path, json={"components": components})

    async def delete_message(self, *, token: str, message_id: str, application_id: str | None = None) -> None:
        path = f"/webhooks/{self._application_id(application_id)}/{token}/messages/{message_id}"
        await self._request("DELETE", path)

    async def _request(self, method: str, path: str, *, json: Any = None) -> httpx.Response:
        resp = await self._http.request(method, path, json=json)
        if resp.is_error:
            raise PlatformRequestError(method=method, status=resp.status_code, url=str(resp.request.url), body=resp.text)
        logger.debug("webhook_request_ok", extra={"method": method, "status": resp.status_code})
        return resp
