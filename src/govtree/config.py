"""Governance configuration — loads governance.json and environment overrides.

No magic. No defaults for governance parameters: a value missing from
the config file fails loud. Deployment settings (store URL, branch,
key paths) may come from the environment or a ``.env`` file:

    GOVTREE_STORE_URL     remote URL or path of the community repository
    GOVTREE_BRANCH        governed branch
    GOVTREE_USER          local community user name
    GOVTREE_PUBLIC_KEY    path to the user's public key file
    GOVTREE_PRIVATE_KEY   path to the user's private key file
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

SUPPORTED_VERSION = 1


@dataclass(frozen=True)
class GovernanceConfig:
    """Resolved configuration for one community."""
    store_url: str
    branch: str
    max_push_attempts: int
    retry_wait_seconds: float
    inverse_cost_multiplier: float
    concern_policy: str
    proposal_policy: str
    resolves_ref_type: str
    user: str = ""
    public_key_path: Optional[Path] = None
    private_key_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.max_push_attempts < 1:
            raise ValueError("max_push_attempts must be >= 1")
        if self.retry_wait_seconds < 0:
            raise ValueError("retry_wait_seconds must be >= 0")
        if self.inverse_cost_multiplier <= 0:
            raise ValueError("inverse_cost_multiplier must be > 0")

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Path,
        env_file: Optional[Path] = None,
    ) -> GovernanceConfig:
        """Load governance.json, then apply environment overrides."""
        params = _load_json(config_dir / "governance.json")
        config = cls.from_params(params)
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()
        return config.with_environment(os.environ)

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> GovernanceConfig:
        if params.get("version") != SUPPORTED_VERSION:
            raise ValueError(
                f"governance.json version {params.get('version')!r} "
                f"is not supported (expected {SUPPORTED_VERSION})"
            )
        store = params["store"]
        retry = params["retry"]
        voting = params["voting"]
        policies = params["policies"]
        return cls(
            store_url=store["url"],
            branch=store["branch"],
            max_push_attempts=retry["max_push_attempts"],
            retry_wait_seconds=retry["wait_seconds"],
            inverse_cost_multiplier=voting["inverse_cost_multiplier"],
            concern_policy=policies["concern"],
            proposal_policy=policies["proposal"],
            resolves_ref_type=policies["resolves_ref_type"],
        )

    def with_environment(self, env: Any) -> GovernanceConfig:
        """Return a copy with GOVTREE_* variables applied."""
        updates: dict[str, Any] = {}
        if env.get("GOVTREE_STORE_URL"):
            updates["store_url"] = env["GOVTREE_STORE_URL"]
        if env.get("GOVTREE_BRANCH"):
            updates["branch"] = env["GOVTREE_BRANCH"]
        if env.get("GOVTREE_USER"):
            updates["user"] = env["GOVTREE_USER"]
        if env.get("GOVTREE_PUBLIC_KEY"):
            updates["public_key_path"] = Path(env["GOVTREE_PUBLIC_KEY"])
        if env.get("GOVTREE_PRIVATE_KEY"):
            updates["private_key_path"] = Path(env["GOVTREE_PRIVATE_KEY"])
        return replace(self, **updates) if updates else self


def _load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file or raise with clear path."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)
