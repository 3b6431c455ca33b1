"""Ledger (events) REST API schemas."""

from typing import Annotated, Any  # noqa: I001

from pydantic import BaseModel, BeforeValidator, Field


def _parse_big_int(value: Any) -> int:
    """Parse a decimal-string big integer; missing or empty values read as zero."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError("boolean is not a big integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped == "":
            return 0
        return int(stripped, 10)
    raise ValueError(f"unsupported big integer value: {value!r}")


def _parse_float(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, str) and value.strip() == "":
        return 0.0
    return float(value)


BigInt = Annotated[int, BeforeValidator(_parse_big_int)]
LooseFloat = Annotated[float, BeforeValidator(_parse_float)]
LooseInt = Annotated[int, BeforeValidator(_parse_big_int)]


# ------------------------------------------------------------------
# Agents
# ------------------------------------------------------------------

class Agent(BaseModel):
    """Agent record as indexed by the ledger."""

    model_config = {"populate_by_name": True}

    id: int = Field(..., description="Agent identifier")
    address: str = Field(default="", description="Filecoin address of the agent actor")
    address_native: str = Field(default="", alias="addressNative", description="0x address of the agent contract")
    available_balance: BigInt = Field(default=0, alias="availableBalance", description="Liquid assets (attoFIL)")
    balance: BigInt = Field(default=0, description="Agent balance (attoFIL)")
    height: int = Field(default=0, description="Creation height")
    miners: int = Field(default=0, description="Number of miners pledged to the agent")
    principal_balance: BigInt = Field(default=0, alias="principalBalance", description="Outstanding principal (attoFIL)")
    tx_hash: str = Field(default="", alias="txHash", description="Creation transaction hash")


class AvailableBalanceSnapshot(BaseModel):
    """Stored vs recomputed-by-ledger available balance."""

    model_config = {"populate_by_name": True}

    stored: BigInt = Field(default=0, alias="availableBalanceDB", description="Balance stored in the ledger database")
    recomputed: BigInt = Field(default=0, alias="availableBalanceNd", description="Balance recomputed by the ledger from the node")

    @property
    def matches(self) -> bool:
        return self.stored == self.recomputed


class TransactionRecord(BaseModel):
    """One entry of an agent's transaction log."""

    model_config = {"populate_by_name": True}

    height: int = Field(..., description="Height the ledger attributes the transaction to")
    available_balance: BigInt = Field(default=0, alias="availableBalance", description="Available balance after the transaction")
    amount: BigInt = Field(default=0, description="Transaction amount (attoFIL)")
    balance: BigInt = Field(default=0, description="Agent balance after the transaction")
    id: int = Field(default=0, description="Transaction identifier")
    interest: BigInt = Field(default=0, description="Interest component")
    principal: BigInt = Field(default=0, description="Principal component")
    timestamp: int = Field(default=0, description="Block timestamp")
    tx_hash: str = Field(default="", alias="txHash", description="Transaction hash")
    type: str = Field(default="", description="Transaction type")
    synthetic: bool = Field(default=False, exclude=True, description="Point synthesized during divergence search")


class AgentEcon(BaseModel):
    """Agent economics as reported by the ledger."""

    id: int = Field(default=0, description="Agent identifier")
    assets: BigInt = Field(default=0)
    liability: BigInt = Field(default=0)
    equity: BigInt = Field(default=0)
    collateral_value: BigInt = Field(default=0, alias="collateralValue")
    borrow_now: BigInt = Field(default=0, alias="borrowNow")
    borrow_max: BigInt = Field(default=0, alias="borrowMax")
    dte: LooseFloat = Field(default=0.0, description="Debt-to-equity ratio")

    model_config = {"populate_by_name": True}


class MinerDetails(BaseModel):
    """Miner pledged to an agent, with the ledger's stored termination penalty."""

    model_config = {"populate_by_name": True}

    miner: int = Field(default=0, description="Miner actor id")
    agent_id: int = Field(default=0, alias="agentId")
    actions: int = Field(default=0)
    miner_addr: str = Field(..., alias="minerAddr", description="Miner address (f0...)")
    available_balance: BigInt = Field(default=0, alias="availableBalance")
    equity: BigInt = Field(default=0)
    estimated_weekly_rewards: BigInt = Field(default=0, alias="estimatedWeeklyRewards")
    qap: BigInt = Field(default=0)
    rbp: BigInt = Field(default=0)
    slashing_risk: LooseFloat = Field(default=0.0, alias="slashingRisk")
    live_sectors: LooseInt = Field(default=0, alias="liveSectors")
    faulty_sectors: LooseInt = Field(default=0, alias="faultySectors")
    recovering_sectors: LooseInt = Field(default=0, alias="recoveringSectors")
    ratio: LooseFloat = Field(default=0.0)
    termination_penalty: BigInt = Field(default=0, alias="terminationPenalty")
    liquidation_value: BigInt = Field(default=0, alias="liquidationValue")


# ------------------------------------------------------------------
# Protocol-wide figures
# ------------------------------------------------------------------

class ProtocolMetrics(BaseModel):
    """Aggregate protocol metrics at a height."""

    model_config = {"populate_by_name": True}

    height: int = Field(default=0)
    timestamp: int = Field(default=0)
    pool_total_assets: BigInt = Field(default=0, alias="poolTotalAssets")
    pool_total_borrowed: BigInt = Field(default=0, alias="poolTotalBorrowed")
    pool_total_borrowable_assets: BigInt = Field(default=0, alias="poolTotalBorrowableAssets")
    pool_exit_reserve: BigInt = Field(default=0, alias="poolExitReserve")
    total_agent_count: int = Field(default=0, alias="totalAgentCount")
    total_miner_collaterals: BigInt = Field(default=0, alias="totalMinerCollaterals")
    total_miners_count: int = Field(default=0, alias="totalMinersCount")
    total_value_locked: BigInt = Field(default=0, alias="totalValueLocked")
    total_miners_sectors: BigInt = Field(default=0, alias="totalMinersSectors")
    total_miner_qap: BigInt = Field(default=0, alias="totalMinerQAP")
    total_miner_rbp: BigInt = Field(default=0, alias="totalMinerRBP")
    total_miner_edr: BigInt = Field(default=0, alias="totalMinerEDR")


class IFILTotalSupply(BaseModel):
    """iFIL token total supply at a height."""

    model_config = {"populate_by_name": True}

    height: int = Field(default=0)
    total_supply: BigInt = Field(default=0, alias="iFILTotalSupply")
