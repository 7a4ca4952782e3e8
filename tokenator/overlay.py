"""
Tokenator - Overlay Client

HTTP client for overlay lookup (query) and topic submission (broadcast).

Endpoints (per network host):
  POST /lookup   - {"service", "query"} -> {"type", "outputs": [{"beef", "outputIndex"}]}
  POST /submit   - raw transaction bundle, X-Topics header -> admittance per topic
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import OverlayError, TimeoutFailure
from .token_types import BroadcastResult
from .wallet_client import from_byte_array

log = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT_S = 10.0

OVERLAY_HOSTS = {
    "mainnet": "https://overlay-us-1.bsvb.tech",
    "testnet": "https://testnet-overlay-us-1.bsvb.tech",
}


class OverlayClient:
    """
    Usage:
        overlay = OverlayClient()
        answer = await overlay.query("ls_tokenator", {"limit": 5}, network="mainnet")
        result = await overlay.broadcast(beef, ["tm_tokenator"], network="mainnet")
    """

    def __init__(self, hosts: Optional[Dict[str, str]] = None,
                 client: Optional[httpx.AsyncClient] = None,
                 query_timeout: float = DEFAULT_QUERY_TIMEOUT_S):
        self.hosts = dict(hosts or OVERLAY_HOSTS)
        self.query_timeout = query_timeout
        self._client = client

    def host_for(self, network: str) -> str:
        if network not in self.hosts:
            raise OverlayError(f"No overlay host for network {network!r}", "ERR_UNKNOWN_NETWORK")
        return self.hosts[network].rstrip("/")

    async def _post(self, url: str, timeout: float, **kwargs) -> httpx.Response:
        client = self._client or httpx.AsyncClient()
        try:
            return await client.post(url, timeout=timeout, **kwargs)
        finally:
            if self._client is None:
                await client.aclose()

    async def query(self, service: str, query: Dict[str, Any],
                    timeout: Optional[float] = None,
                    network: str = "mainnet") -> Dict[str, Any]:
        """
        Run a lookup query.

        Returns:
            {"type": "output-list", "outputs": [{"beef": bytes, "outputIndex": n}]}
            (other answer types are passed through untouched)
        """
        timeout = self.query_timeout if timeout is None else timeout
        url = f"{self.host_for(network)}/lookup"
        log.debug(f"Overlay lookup {service} on {network}: {query}")
        try:
            response = await self._post(url, timeout, json={"service": service, "query": query})
            response.raise_for_status()
        except httpx.TimeoutException:
            raise TimeoutFailure(f"Overlay query to {service} exceeded {timeout}s")
        except httpx.HTTPError as e:
            raise OverlayError(f"Overlay query failed: {e}")

        try:
            answer = response.json()
        except ValueError as e:
            raise OverlayError(f"Overlay answered {service} with invalid JSON: {e}",
                               "ERR_OVERLAY_RESPONSE")
        if not isinstance(answer, dict):
            raise OverlayError(f"Overlay answered {service} with a non-object reply",
                               "ERR_OVERLAY_RESPONSE")
        if answer.get("type") == "output-list":
            answer["outputs"] = [
                {"beef": from_byte_array(o.get("beef")), "outputIndex": int(o.get("outputIndex", 0))}
                for o in answer.get("outputs", [])
            ]
        return answer

    async def broadcast(self, transaction: bytes, topics: List[str],
                        network: str = "mainnet", txid: str = "",
                        timeout: float = 30.0) -> BroadcastResult:
        """
        Submit a transaction to the overlay under ``topics``.

        Never raises for a rejected submission: failures come back as a
        BroadcastResult with status "error" and a reason.
        """
        url = f"{self.host_for(network)}/submit"
        headers = {
            "Content-Type": "application/octet-stream",
            "X-Topics": json.dumps(topics),
        }
        try:
            response = await self._post(url, timeout, content=transaction, headers=headers)
        except httpx.TimeoutException:
            return BroadcastResult(status="error", txid=txid, code="ERR_TIMEOUT",
                                   reason=f"Overlay submit exceeded {timeout}s")
        except httpx.HTTPError as e:
            return BroadcastResult(status="error", txid=txid, code="ERR_BROADCAST",
                                   reason=f"Overlay unreachable: {e}")

        if response.status_code >= 400:
            return BroadcastResult(status="error", txid=txid, code=f"ERR_HTTP_{response.status_code}",
                                   reason=response.text[:200])

        # Spends admit nothing new, so an empty admittance is still a success
        try:
            steak = response.json() if response.content else {}
        except ValueError:
            steak = {}
        if not isinstance(steak, dict):
            steak = {}
        admitted = [t for t in topics if (steak.get(t) or {}).get("outputsToAdmit")]
        log.info(f"Broadcast {txid or 'transaction'} accepted (admitted on {admitted or 'none'})")
        return BroadcastResult(status="success", txid=txid)
