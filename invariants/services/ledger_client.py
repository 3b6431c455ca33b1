"""Async HTTP client for the ledger (events) REST API."""

import logging
from types import TracebackType
from typing import Any

import httpx
from pydantic import ValidationError

from invariants.config import Settings, get_settings
from invariants.core.errors import ConfigurationError, LedgerError
from invariants.core.series import LedgerSeries
from invariants.schemas.ledger import (
    Agent,
    AgentEcon,
    AvailableBalanceSnapshot,
    IFILTotalSupply,
    MinerDetails,
    ProtocolMetrics,
    TransactionRecord,
)

logger = logging.getLogger(__name__)


class LedgerClient:
    """Read-only client for the ledger service.

    All endpoints return bare JSON (no envelope). Big integers arrive as
    decimal strings and are parsed by the schema validators.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        if http_client is None and not self._settings.events_api:
            raise ConfigurationError("INVARIANTS_EVENTS_API is not set.")
        self._client = http_client or httpx.AsyncClient(
            base_url=self._settings.events_api.rstrip("/"),
            timeout=httpx.Timeout(self._settings.http_timeout_seconds),
            headers={"Accept": "application/json"},
        )
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def list_agents(self) -> list[Agent]:
        """List all agents.

        GET /agent
        """
        data = await self._get("/agent")
        return self._parse_list(data, Agent, "/agent")

    async def get_agent(self, agent_id: int) -> Agent | None:
        """Find one agent by id in the agent list; None when absent."""
        for agent in await self.list_agents():
            if agent.id == agent_id:
                return agent
        return None

    async def get_available_balance(self, agent_id: int) -> AvailableBalanceSnapshot:
        """Latest stored vs recomputed available balance.

        GET /agent/{agent_id}/available-balance
        """
        path = f"/agent/{agent_id}/available-balance"
        return self._parse_one(await self._get(path), AvailableBalanceSnapshot, path)

    async def get_transactions(self, agent_id: int) -> list[TransactionRecord]:
        """Full transaction log, ascending by height.

        GET /agent/{agent_id}/tx
        """
        path = f"/agent/{agent_id}/tx"
        records = self._parse_list(await self._get(path), TransactionRecord, path)
        return sorted(records, key=lambda record: record.height)

    async def get_available_balance_at(self, agent_id: int, height: int) -> int:
        """Available balance as of ``height``, replayed from the transaction log."""
        return LedgerSeries(await self.get_transactions(agent_id)).value_at(height)

    async def get_agent_econ(self, agent_id: int) -> AgentEcon:
        """Latest economics for an agent.

        GET /agent/{agent_id}/econ
        """
        path = f"/agent/{agent_id}/econ"
        return self._parse_one(await self._get(path), AgentEcon, path)

    async def get_agent_miners(self, agent_id: int) -> list[MinerDetails]:
        """Miners pledged to an agent.

        GET /agent/{agent_id}/miners
        """
        path = f"/agent/{agent_id}/miners"
        return self._parse_list(await self._get(path), MinerDetails, path)

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    async def get_metrics(self, height: int | None = None) -> ProtocolMetrics:
        """Aggregate protocol metrics, latest or at a height.

        GET /metrics, GET /metrics/{height}
        """
        path = "/metrics" if height is None else f"/metrics/{height}"
        return self._parse_one(await self._get(path), ProtocolMetrics, path)

    async def get_ifil_total_supply(self, height: int) -> IFILTotalSupply:
        """iFIL total supply at a height.

        GET /ifil/{height}/total-supply
        """
        path = f"/ifil/{height}/total-supply"
        return self._parse_one(await self._get(path), IFILTotalSupply, path)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _get(self, path: str) -> Any:
        logger.debug("GET %s", path)
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise LedgerError(str(exc), code="LEDGER_UNAVAILABLE", status_code=502) from exc
        return self._parse_response(response)

    @staticmethod
    def _parse_response(response: httpx.Response) -> Any:
        if response.status_code >= 400:
            raise LedgerError(
                f"Ledger API error {response.status_code}: {response.text or 'request failed'}",
                code="LEDGER_REQUEST_FAILED",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise LedgerError(
                "Ledger response is not valid JSON.",
                code="LEDGER_BAD_RESPONSE_JSON",
                status_code=502,
            ) from exc

    @staticmethod
    def _parse_one(data: Any, model: type, path: str) -> Any:
        if not isinstance(data, dict):
            raise LedgerError(f"Ledger response for {path} must be an object.", code="LEDGER_BAD_RESPONSE")
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise LedgerError(f"Ledger response for {path} is malformed: {exc}", code="LEDGER_BAD_RESPONSE") from exc

    @staticmethod
    def _parse_list(data: Any, model: type, path: str) -> list[Any]:
        if not isinstance(data, list):
            raise LedgerError(f"Ledger response for {path} must be a list.", code="LEDGER_BAD_RESPONSE")
        try:
            return [model.model_validate(item) for item in data]
        except ValidationError as exc:
            raise LedgerError(f"Ledger response for {path} is malformed: {exc}", code="LEDGER_BAD_RESPONSE") from exc
