"""Point-in-time reads of the lending pool contracts over Lotus' Ethereum RPC."""

import logging
from collections.abc import Awaitable
from typing import Any, Protocol, TypeVar

from web3 import AsyncWeb3

from invariants.config import Settings
from invariants.core.errors import ChainUnavailable, ConfigurationError, LedgerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _view(name: str, inputs: list[tuple[str, str]] | None = None) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": arg, "type": kind} for arg, kind in (inputs or [])],
        "outputs": [{"name": "", "type": "uint256"}],
    }


AGENT_ABI = [_view("id"), _view("liquidAssets")]
INFINITY_POOL_ABI = [
    _view("totalAssets"),
    _view("totalBorrowed"),
    _view("getAgentBorrowed", [("agentID", "uint256")]),
]
AGENT_FACTORY_ABI = [_view("agentCount")]
ERC20_ABI = [_view("totalSupply")]


class PoolsReader(Protocol):
    """Chain-backed protocol figures, each evaluated at an explicit block number."""

    async def agent_liquid_assets(self, agent_address: str, block_number: int) -> int:
        ...

    async def agent_principal(self, agent_address: str, block_number: int) -> int:
        ...

    async def ifil_total_supply(self, block_number: int) -> int:
        ...

    async def pool_total_assets(self, block_number: int) -> int:
        ...

    async def pool_total_borrowed(self, block_number: int) -> int:
        ...

    async def agent_count(self, block_number: int) -> int:
        ...


class PoolsQuery:
    """web3.py implementation of :class:`PoolsReader`."""

    def __init__(self, *, settings: Settings, rpc_url: str, token: str = "", w3: AsyncWeb3 | None = None) -> None:
        if w3 is None and not rpc_url:
            raise ConfigurationError("Lotus node address is not set.")
        self._settings = settings
        if w3 is None:
            request_kwargs: dict[str, Any] = {"timeout": settings.rpc_timeout_seconds}
            if token:
                request_kwargs["headers"] = {"Authorization": f"Bearer {token}"}
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs=request_kwargs))
        self._w3 = w3

    async def agent_liquid_assets(self, agent_address: str, block_number: int) -> int:
        agent = self._agent(agent_address)
        return await self._call("Agent.liquidAssets", agent.functions.liquidAssets().call(block_identifier=block_number))

    async def agent_principal(self, agent_address: str, block_number: int) -> int:
        agent = self._agent(agent_address)
        agent_id = await self._call("Agent.id", agent.functions.id().call(block_identifier=block_number))
        pool = self._configured("infinity_pool_address", INFINITY_POOL_ABI)
        return await self._call(
            "InfinityPool.getAgentBorrowed",
            pool.functions.getAgentBorrowed(agent_id).call(block_identifier=block_number),
        )

    async def ifil_total_supply(self, block_number: int) -> int:
        token = self._configured("ifil_address", ERC20_ABI)
        return await self._call("iFIL.totalSupply", token.functions.totalSupply().call(block_identifier=block_number))

    async def pool_total_assets(self, block_number: int) -> int:
        pool = self._configured("infinity_pool_address", INFINITY_POOL_ABI)
        return await self._call("InfinityPool.totalAssets", pool.functions.totalAssets().call(block_identifier=block_number))

    async def pool_total_borrowed(self, block_number: int) -> int:
        pool = self._configured("infinity_pool_address", INFINITY_POOL_ABI)
        return await self._call(
            "InfinityPool.totalBorrowed",
            pool.functions.totalBorrowed().call(block_identifier=block_number),
        )

    async def agent_count(self, block_number: int) -> int:
        factory = self._configured("agent_factory_address", AGENT_FACTORY_ABI)
        return await self._call("AgentFactory.agentCount", factory.functions.agentCount().call(block_identifier=block_number))

    def _agent(self, address: str) -> Any:
        if not address:
            raise LedgerError("Agent record has no addressNative.", code="LEDGER_BAD_RESPONSE")
        return self._contract(address, AGENT_ABI)

    def _contract(self, address: str, abi: list[dict[str, Any]], *, field: str | None = None) -> Any:
        """Bind ``abi`` at ``address``; ``field`` names the setting the address came from."""
        try:
            checksummed = AsyncWeb3.to_checksum_address(address)
        except (TypeError, ValueError) as exc:
            if field is None:
                raise LedgerError(f"Agent address {address!r} is not an EVM address.", code="LEDGER_BAD_RESPONSE") from exc
            raise ConfigurationError(f"INVARIANTS_{field.upper()} is not an EVM address: {address!r}") from exc
        return self._w3.eth.contract(address=checksummed, abi=abi)

    def _configured(self, field: str, abi: list[dict[str, Any]]) -> Any:
        address = getattr(self._settings, field)
        if not address:
            raise ConfigurationError(f"INVARIANTS_{field.upper()} is not set.")
        return self._contract(address, abi, field=field)

    @staticmethod
    async def _call(label: str, pending: Awaitable[T]) -> T:
        logger.debug("eth_call %s", label)
        try:
            return await pending
        except Exception as exc:
            raise ChainUnavailable(f"{label}: {exc}", code="CHAIN_CALL_FAILED") from exc
