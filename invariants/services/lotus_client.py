"""Async JSON-RPC client for a Lotus node."""

import logging
from itertools import count
from types import TracebackType
from typing import Any

import httpx
from pydantic import ValidationError

from invariants.core.errors import ChainUnavailable, ConfigurationError
from invariants.schemas.chain import TipSet

logger = logging.getLogger(__name__)

EMPTY_TIPSET_KEY: list[dict[str, Any]] = []


class LotusClient:
    """Minimal Filecoin JSON-RPC surface used by the checks.

    One instance is constructed per run and passed to every component that
    needs chain access. Calls are point-in-time reads and safe to issue
    concurrently.
    """

    def __init__(
        self,
        *,
        dial_addr: str,
        token: str = "",
        timeout_seconds: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if http_client is None and not dial_addr:
            raise ConfigurationError("Lotus node address is not set.")
        self.dial_addr = dial_addr
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        self._headers = headers
        self._owns_client = http_client is None
        self._ids = count(1)

    # ------------------------------------------------------------------
    # Chain
    # ------------------------------------------------------------------

    async def chain_head(self) -> TipSet:
        """Filecoin.ChainHead"""
        return self._tipset(await self.call("Filecoin.ChainHead"))

    async def chain_get_tipset_after_height(self, height: int) -> TipSet:
        """First produced tipset at or after ``height``.

        Filecoin.ChainGetTipSetAfterHeight
        """
        return self._tipset(await self.call("Filecoin.ChainGetTipSetAfterHeight", height, EMPTY_TIPSET_KEY))

    async def chain_get_tipset_by_height(self, height: int) -> TipSet:
        """Tipset at ``height`` or the last produced one before it.

        Filecoin.ChainGetTipSetByHeight
        """
        return self._tipset(await self.call("Filecoin.ChainGetTipSetByHeight", height, EMPTY_TIPSET_KEY))

    # ------------------------------------------------------------------
    # Miner state
    # ------------------------------------------------------------------

    async def state_miner_deadlines(self, miner: str, tipset_key: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Filecoin.StateMinerDeadlines"""
        result = await self.call("Filecoin.StateMinerDeadlines", miner, tipset_key)
        if not isinstance(result, list):
            raise ChainUnavailable("StateMinerDeadlines returned a non-list result.", code="CHAIN_BAD_RESPONSE")
        return result

    async def state_miner_partitions(
        self,
        miner: str,
        deadline: int,
        tipset_key: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Filecoin.StateMinerPartitions"""
        result = await self.call("Filecoin.StateMinerPartitions", miner, deadline, tipset_key)
        if not isinstance(result, list):
            raise ChainUnavailable("StateMinerPartitions returned a non-list result.", code="CHAIN_BAD_RESPONSE")
        return result

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def call(self, method: str, *params: Any) -> Any:
        """Issue one JSON-RPC request and return its ``result``."""
        request_id = next(self._ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": list(params)}
        logger.debug("RPC %s %s", method, params)
        try:
            response = await self._client.post(self.dial_addr, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise ChainUnavailable(f"{method}: {exc}") from exc

        if response.status_code >= 400:
            raise ChainUnavailable(
                f"{method}: Lotus error {response.status_code}: {response.text or 'request failed'}",
                code="CHAIN_REQUEST_FAILED",
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ChainUnavailable(f"{method}: response is not valid JSON.", code="CHAIN_BAD_RESPONSE_JSON") from exc
        if not isinstance(body, dict):
            raise ChainUnavailable(f"{method}: response must be an object.", code="CHAIN_BAD_RESPONSE")

        error = body.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise ChainUnavailable(f"{method}: {message}", code="CHAIN_RPC_ERROR")
        return body.get("result")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "LotusClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @staticmethod
    def _tipset(result: Any) -> TipSet:
        if not isinstance(result, dict):
            raise ChainUnavailable("Tipset response must be an object.", code="CHAIN_BAD_RESPONSE")
        try:
            return TipSet.model_validate(result)
        except ValidationError as exc:
            raise ChainUnavailable(f"Tipset response is malformed: {exc}", code="CHAIN_BAD_RESPONSE") from exc
