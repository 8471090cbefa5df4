"""
Agent Set Loader
================

Discovers agent sets from the agent store folder structure:

    agentstore/
      customer_service_retail/
        _set.yaml               → order + shared defaults
        base/agent.yaml         → "base"
        translation/agent.yaml  → "translation"
      person_detection/
        ...

The directory name is the agent set key. ``_set.yaml`` may declare
``order`` (agent folder names, first one is the default root agent) and
``defaults`` merged under every agent definition.

Usage:
    from apps.rtconsole.backend.registries.agentstore.loader import load_agent_set

    roster = load_agent_set("customer_service_retail")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from apps.rtconsole.backend.config.settings import DEFAULT_AGENT_SET
from apps.rtconsole.backend.registries.agentstore.base import AgentRoster, RealtimeAgent
from utils.ml_logging import get_logger

logger = get_logger("agents.loader")

# Default path to agent store directory
AGENTS_DIR = Path(__file__).parent

_SET_FILE = "_set.yaml"
_AGENT_FILE = "agent.yaml"


class AgentSetNotFoundError(LookupError):
    """Raised when neither the requested nor the default agent set exists."""


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_agent(agent_file: Path, defaults: dict[str, Any] | None = None) -> RealtimeAgent:
    """Load a single agent from its agent.yaml file."""
    raw = _read_yaml(agent_file)
    return RealtimeAgent.from_dict(_deep_merge(defaults or {}, raw))


def _ordered_agent_dirs(set_dir: Path, order: list[str]) -> list[Path]:
    found = sorted(
        item
        for item in set_dir.iterdir()
        if item.is_dir()
        and not item.name.startswith(("_", "."))
        and (item / _AGENT_FILE).exists()
    )
    by_name = {item.name: item for item in found}
    ordered = [by_name.pop(name) for name in order if name in by_name]
    missing = [name for name in order if name not in {p.name for p in ordered}]
    if missing:
        logger.warning("Agent set %s lists unknown agents in order: %s", set_dir.name, missing)
    return ordered + list(by_name.values())


def load_agent_set_from_dir(set_dir: Path) -> AgentRoster:
    """Load every agent of one agent set directory into a roster."""
    set_file = set_dir / _SET_FILE
    set_config = _read_yaml(set_file) if set_file.exists() else {}
    defaults = set_config.get("defaults") or {}

    agents = [
        load_agent(agent_dir / _AGENT_FILE, defaults)
        for agent_dir in _ordered_agent_dirs(set_dir, list(set_config.get("order") or []))
    ]
    roster = AgentRoster(agents, key=set_dir.name)
    logger.debug("Loaded agent set %s: %s", roster.key, roster.names)
    return roster


def discover_agent_sets(agents_dir: Path = AGENTS_DIR) -> dict[str, AgentRoster]:
    """
    Auto-discover agent sets by scanning for folders with agents in them.

    Returns:
        Dict of set key → AgentRoster
    """
    rosters: dict[str, AgentRoster] = {}
    for item in sorted(agents_dir.iterdir()):
        if not item.is_dir() or item.name.startswith(("_", ".")):
            continue
        try:
            roster = load_agent_set_from_dir(item)
        except Exception as e:
            logger.error("Failed to load agent set from %s: %s", item, e)
            continue
        if len(roster):
            rosters[roster.key] = roster

    logger.debug("Discovered %d agent sets: %s", len(rosters), list(rosters))
    return rosters


def load_agent_set(
    key: str | None,
    agents_dir: Path = AGENTS_DIR,
    *,
    default_key: str = DEFAULT_AGENT_SET,
) -> AgentRoster:
    """
    Load the named agent set, falling back to the default set for unknown keys.

    Raises:
        AgentSetNotFoundError: if neither set exists.
    """
    rosters = discover_agent_sets(agents_dir)
    if key and key in rosters:
        return rosters[key]
    if key:
        logger.warning("Unknown agent set %r; using default %r", key, default_key)
    if default_key in rosters:
        return rosters[default_key]
    raise AgentSetNotFoundError(
        f"No agent set {key!r} or default {default_key!r} under {agents_dir}"
    )


__all__ = [
    "AGENTS_DIR",
    "AgentSetNotFoundError",
    "discover_agent_sets",
    "load_agent",
    "load_agent_set",
    "load_agent_set_from_dir",
]
