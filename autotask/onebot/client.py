"""OneBot 11 HTTP API client."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

# Marker text some OneBot implementations put in the error raised for
# fire-and-forget actions that return no payload.
NO_DATA_MARKER = "No data returned"


class ActionError(Exception):
    """A OneBot action failed (transport error or non-ok response)."""

    def __init__(self, action: str, message: str) -> None:
        super().__init__(f"{action}: {message}")
        self.action = action


class NoDataReturnedError(ActionError):
    """The action was accepted but produced no response payload."""

    def __init__(self, action: str) -> None:
        super().__init__(action, NO_DATA_MARKER)


def is_no_data(exc: BaseException) -> bool:
    """True for the benign empty-result condition, whatever raised it."""
    return isinstance(exc, NoDataReturnedError) or NO_DATA_MARKER in str(exc)


class ActionInvoker(Protocol):
    async def call(self, action: str, params: dict[str, Any]) -> Any: ...


class OneBotClient:
    """Calls OneBot actions over HTTP: ``POST {base_url}/{action}``.

    Args:
        base_url: Root of the OneBot HTTP server.
        access_token: Sent as a Bearer token when non-empty.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def call(self, action: str, params: dict[str, Any]) -> Any:
        """Invoke *action* and return its ``data`` field.

        Raises:
            NoDataReturnedError: The server answered with an empty body.
            ActionError: Transport failure, HTTP error or a failed status.
        """
        # OneBot rejects explicit nulls on optional params
        body = {key: value for key, value in params.items() if value is not None}
        try:
            resp = await self._client.post(f"/{action}", json=body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ActionError(action, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ActionError(action, f"request failed: {exc}") from exc

        if not resp.content.strip():
            raise NoDataReturnedError(action)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ActionError(action, "response is not JSON") from exc

        if not isinstance(payload, dict):
            raise ActionError(action, "unexpected response shape")
        status = payload.get("status")
        retcode = payload.get("retcode", 0)
        if status == "failed" or retcode not in (0, 1):
            detail = payload.get("message") or payload.get("wording") or f"retcode={retcode}"
            raise ActionError(action, str(detail))

        logger.debug("OneBot %s ok (retcode=%s)", action, retcode)
        return payload.get("data")

    async def aclose(self) -> None:
        await self._client.aclose()
