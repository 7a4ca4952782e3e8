"""
Tokenator - Relay Client

HTTP client for the store-and-forward message relay.

Endpoints (all POST, JSON):
  /sendMessage        - {"message": {recipient, messageBox, messageId, body}}
  /listMessages       - {"messageBox"}            -> {"messages": [...]}
  /readMessage        - {"messageIds": [...]}     -> {"messages": [...]}
  /acknowledgeMessage - {"messageIds": [...]}     -> {"status"}

Every response carries {"status": "success"|"error", "code"?, "description"?}.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import RelayError, TimeoutFailure

log = logging.getLogger(__name__)

DEFAULT_RELAY_URL = "https://messagebox.babbage.systems"


class RelayClient:
    """
    Usage:
        relay = RelayClient("https://relay.example")
        await relay.send_message({"recipient": key, "messageBox": "inbox",
                                  "messageId": mid, "body": "hi"})
        messages = await relay.list_messages("inbox")
    """

    def __init__(self, base_url: str = DEFAULT_RELAY_URL, timeout: float = 30,
                 auth: Optional[httpx.Auth] = None,
                 headers: Optional[Dict[str, str]] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.auth = auth
        self.headers = dict(headers or {})
        self._client = client

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST to the relay and unwrap the status envelope."""
        url = f"{self.base_url}/{endpoint}"
        client = self._client or httpx.AsyncClient()
        try:
            response = await client.post(url, json=body, headers=self.headers,
                                         auth=self.auth, timeout=self.timeout)
        except httpx.TimeoutException:
            raise TimeoutFailure(f"Relay {endpoint} exceeded {self.timeout}s")
        except httpx.HTTPError as e:
            raise RelayError(f"Relay unreachable: {e}", "ERR_RELAY_UNAVAILABLE")
        finally:
            if self._client is None:
                await client.aclose()

        try:
            parsed = response.json()
        except ValueError:
            parsed = None

        if not isinstance(parsed, dict):
            raise RelayError(f"Relay returned HTTP {response.status_code} without a JSON body",
                             f"ERR_HTTP_{response.status_code}", response.status_code)

        if parsed.get("status") == "error" or response.status_code >= 400:
            code = parsed.get("code") or f"ERR_HTTP_{response.status_code}"
            description = parsed.get("description") or f"Relay {endpoint} failed"
            log.warning(f"Relay {endpoint} error {code}: {description}")
            raise RelayError(description, code, response.status_code)

        return parsed

    async def send_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post("sendMessage", {"message": message})

    async def list_messages(self, message_box: str) -> List[Dict[str, Any]]:
        parsed = await self._post("listMessages", {"messageBox": message_box})
        return parsed.get("messages", [])

    async def read_messages(self, message_ids: List[str]) -> List[Dict[str, Any]]:
        parsed = await self._post("readMessage", {"messageIds": message_ids})
        return parsed.get("messages", [])

    async def acknowledge_messages(self, message_ids: List[str]) -> str:
        parsed = await self._post("acknowledgeMessage", {"messageIds": message_ids})
        return parsed.get("status", "success")

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
