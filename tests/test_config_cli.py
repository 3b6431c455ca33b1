"""Settings loading and CLI option handling."""

from __future__ import annotations

import asyncio

from typer.testing import CliRunner

from invariants.cli.main import app
from invariants.cli.miner_commands import select_miners
from invariants.config import Settings, load_settings
from invariants.schemas.ledger import Agent, MinerDetails

runner = CliRunner()


def test_settings_read_prefixed_environment(monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setenv("INVARIANTS_EVENTS_API", "http://ledger.local")
    monkeypatch.setenv("INVARIANTS_RPC_TIMEOUT_SECONDS", "30")

    settings = Settings()

    assert settings.events_api == "http://ledger.local"
    assert settings.rpc_timeout_seconds == 30.0
    assert settings.chain_id == 314
    assert settings.ado_addr == "https://ado.glif.link/rpc/v0"


def test_load_settings_reads_named_env_file(tmp_path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.chdir(tmp_path)
    (tmp_path / "calibnet.env").write_text(
        "INVARIANTS_CHAIN_ID=314159\n"
        "INVARIANTS_LOTUS_ARCHIVE_ADDR=http://archive.local/rpc/v1\n"
        "INVARIANTS_LOTUS_PRIVATE_ADDR=http://private.local/rpc/v1\n"
        "INVARIANTS_LOTUS_PRIVATE_TOKEN=tok\n"
    )

    settings = load_settings("calibnet")

    assert settings.chain_id == 314159
    assert settings.lotus_endpoint(archive=True) == ("http://archive.local/rpc/v1", "")
    assert settings.lotus_endpoint(archive=False) == ("http://private.local/rpc/v1", "tok")


def test_single_entity_command_without_selection_prints_usage(tmp_path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["agent-balances"])

    assert result.exit_code == 2
    assert "Provide an id" in result.output


def test_all_and_random_are_mutually_exclusive(tmp_path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["miner-liquidation", "--all-agents", "--random", "3"])

    assert result.exit_code == 2
    assert "mutually exclusive" in result.output


def test_status_lists_configured_endpoints(tmp_path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("INVARIANTS_EVENTS_API", "http://ledger.local")

    result = runner.invoke(app, ["--no-archive", "status"])

    assert result.exit_code == 0
    assert "http://ledger.local" in result.output
    assert "private" in result.output


def test_missing_ledger_endpoint_aborts_with_exit_code_one(tmp_path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("INVARIANTS_EVENTS_API", raising=False)

    result = runner.invoke(app, ["agent-balances", "5"])

    assert result.exit_code == 1
    assert "CONFIGURATION_MISSING" in result.output


class _StubLedger:
    def __init__(self) -> None:
        self.agents = [Agent(id=1, miners=2), Agent(id=2, miners=1)]
        self.pledged = {
            1: [MinerDetails(miner_addr="f0101"), MinerDetails(miner_addr="f0102")],
            2: [MinerDetails(miner_addr="f0201")],
        }

    async def get_agent(self, agent_id: int) -> Agent | None:
        return next((agent for agent in self.agents if agent.id == agent_id), None)

    async def list_agents(self) -> list[Agent]:
        return self.agents

    async def get_agent_miners(self, agent_id: int) -> list[MinerDetails]:
        return self.pledged[agent_id]


def test_agent_selection_targets_every_pledged_miner_of_that_agent() -> None:
    targets = asyncio.run(select_miners(_StubLedger(), None, 1, 0))  # type: ignore[arg-type]

    assert [target.miner for target in targets] == ["f0101", "f0102"]
    assert {target.agent.id for target in targets} == {1}  # type: ignore[union-attr]


def test_random_selection_draws_from_every_agent() -> None:
    targets = asyncio.run(select_miners(_StubLedger(), None, None, 10))  # type: ignore[arg-type]

    assert sorted(target.miner for target in targets) == ["f0101", "f0102", "f0201"]
    assert all(target.details is not None for target in targets)
