"""HTTP client for the submission relay."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

import httpx

from .constants import HEALTH_PATH
from .messages import CommentSubmission, RelayResponse, VoteSubmission

logger = logging.getLogger(__name__)

Submission = Union[VoteSubmission, CommentSubmission]


class RelayClient:
    """
    Thin async wrapper over ``httpx.AsyncClient``.

    Transport errors (``httpx.TransportError``) propagate to the caller;
    every HTTP response, successful or not, is returned as ``RelayResponse``.

    Example:
        async with RelayClient("https://relay.example") as relay:
            response = await relay.submit(vote)
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def submit(self, submission: Submission) -> RelayResponse:
        payload = submission.to_json()
        response = await self._client.post(submission.path, json=payload)
        logger.debug("relay %s -> %d", submission.path, response.status_code)
        return RelayResponse(status_code=response.status_code, body=_json_body(response))

    async def health(self) -> Dict[str, Any]:
        response = await self._client.get(HEALTH_PATH)
        response.raise_for_status()
        return _json_body(response)


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"error": response.text[:512]} if response.text else {}
    if not isinstance(body, dict):
        return {"error": str(body)[:512]}
    return body
