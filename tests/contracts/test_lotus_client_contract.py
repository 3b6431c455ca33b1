"""Contract tests for Lotus JSON-RPC framing and ChainUnavailable mapping."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from invariants.core.errors import ChainUnavailable, ConfigurationError
from invariants.services.lotus_client import LotusClient


def _client(handler, token: str = "") -> LotusClient:  # type: ignore[no-untyped-def]
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LotusClient(dial_addr="http://lotus.local/rpc/v1", token=token, http_client=http_client)


def test_requests_are_json_rpc_with_bearer_token() -> None:
    seen: list[dict[str, object]] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append({"body": body, "auth": request.headers.get("Authorization")})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"Height": 4242, "Cids": []}})

    async def _run() -> None:
        client = _client(_handler, token="secret")
        head = await client.chain_head()
        after = await client.chain_get_tipset_after_height(101)
        assert head.height == 4242
        assert after.height == 4242

    asyncio.run(_run())

    assert seen[0]["auth"] == "Bearer secret"
    assert seen[0]["body"]["method"] == "Filecoin.ChainHead"  # type: ignore[index]
    assert seen[1]["body"]["method"] == "Filecoin.ChainGetTipSetAfterHeight"  # type: ignore[index]
    assert seen[1]["body"]["params"] == [101, []]  # type: ignore[index]
    assert seen[0]["body"]["id"] != seen[1]["body"]["id"]  # type: ignore[index]


@pytest.mark.parametrize(
    ("response", "code"),
    [
        (httpx.Response(500, text="boom"), "CHAIN_REQUEST_FAILED"),
        (httpx.Response(200, text="not-json"), "CHAIN_BAD_RESPONSE_JSON"),
        (httpx.Response(200, json=["unexpected"]), "CHAIN_BAD_RESPONSE"),
        (httpx.Response(200, json={"error": {"code": 1, "message": "actor not found"}}), "CHAIN_RPC_ERROR"),
        (httpx.Response(200, json={"result": {"Cids": []}}), "CHAIN_BAD_RESPONSE"),
    ],
)
def test_failures_map_to_chain_unavailable(response: httpx.Response, code: str) -> None:
    async def _run() -> None:
        with pytest.raises(ChainUnavailable) as excinfo:
            await _client(lambda request: response).chain_head()
        assert excinfo.value.code == code

    asyncio.run(_run())


def test_transport_error_maps_to_chain_unavailable() -> None:
    def _timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async def _run() -> None:
        with pytest.raises(ChainUnavailable) as excinfo:
            await _client(_timeout).chain_head()
        assert excinfo.value.code == "CHAIN_UNAVAILABLE"

    asyncio.run(_run())


def test_missing_address_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        LotusClient(dial_addr="")
