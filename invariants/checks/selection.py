"""Choose which agents or miners a check runs against."""

from __future__ import annotations

import random
from dataclasses import dataclass

from invariants.schemas.ledger import Agent


class SelectionError(ValueError):
    """Conflicting or missing entity selection options."""


@dataclass(frozen=True)
class AgentMiner:
    """The ``position``-th (1-based) miner of ``agent``."""

    agent: Agent
    position: int


def validate_selection(*, entity_id: object | None, all_entities: bool, random_count: int) -> None:
    if all_entities and random_count > 0:
        raise SelectionError("--all and --random are mutually exclusive.")
    if (all_entities or random_count > 0) and entity_id is not None:
        raise SelectionError("An explicit id cannot be combined with --all or --random.")
    if not all_entities and random_count <= 0 and entity_id is None:
        raise SelectionError("Provide an id, --all, or --random N.")


def pick_random(items: list, count: int, rng: random.Random | None = None) -> list:
    """Up to ``count`` distinct items in random order."""
    chooser = rng or random.Random()
    shuffled = list(items)
    chooser.shuffle(shuffled)
    return shuffled[: min(count, len(shuffled))]


def flatten_miners(agents: list[Agent]) -> list[AgentMiner]:
    """One entry per pledged miner, using each agent's miner count."""
    return [AgentMiner(agent=agent, position=position) for agent in agents for position in range(1, agent.miners + 1)]
