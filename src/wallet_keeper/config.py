"""Configuration system for Wallet Keeper.

Loads settings from a YAML file (``wallet-keeper.yaml`` by default),
expands ``${VAR}`` placeholders from the environment, and validates the
result with pydantic. This is the only place that reads process state; the
core receives the resulting values.
"""

from __future__ import annotations

import os
import re
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from wallet_keeper.core.models import TopUpPolicy
from wallet_keeper.core.topup import DEFAULT_FEE_RESERVE
from wallet_keeper.wallet.chains import Chain, get_chain, list_chain_names
from wallet_keeper.wallet.ledger import ConfirmationLevel


CONFIG_ENV_VAR = "WALLET_KEEPER_CONFIG"
DEFAULT_CONFIG_NAME = "wallet-keeper.yaml"


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


def _merge(base: dict, override: dict) -> dict:
    """Overlay *override* onto *base*, descending into nested sections."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class LedgerConfig(BaseModel):
    """Which chain to talk to and which key pays for top-ups."""

    chain: str = "base"
    rpc_url: Optional[str] = None  # Overrides the chain's public RPC
    signer_key: str = "${WALLET_KEEPER_PRIVATE_KEY}"
    poll_interval: float = Field(default=1.0, gt=0)

    @field_validator("chain")
    @classmethod
    def _known_chain(cls, value: str) -> str:
        name = value.strip().lower()
        if name not in list_chain_names():
            raise ValueError(f"Unknown chain '{value}'. Available: {list_chain_names()}")
        return name

    @field_validator("rpc_url")
    @classmethod
    def _blank_rpc_is_default(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


class MonitorConfig(BaseModel):
    """The account kept funded when no address is given."""

    default_address: str = "${MONITORED_WALLET_ADDRESS}"


class PolicyConfig(BaseModel):
    """Amounts in native units (e.g. ETH)."""

    min_balance: Decimal = Field(default=Decimal("0.005"), gt=0)
    top_up_amount: Decimal = Field(default=Decimal("0.005"), gt=0)
    fee_reserve: Decimal = Field(default=DEFAULT_FEE_RESERVE, ge=0)


class LoopConfig(BaseModel):
    """Cadence of the autonomous loop."""

    interval_seconds: float = Field(default=10.0, gt=0)
    recovery_seconds: float = Field(default=5.0, gt=0)


class ConfirmationConfig(BaseModel):
    level: ConfirmationLevel = ConfirmationLevel.CONFIRMED
    timeout_seconds: float = Field(default=90.0, gt=0)


class KeeperConfig(BaseModel):
    """Root configuration object."""

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    confirmation: ConfirmationConfig = Field(default_factory=ConfirmationConfig)

    @model_validator(mode="after")
    def _amounts_fit_chain(self) -> KeeperConfig:
        chain = self.chain
        for name in ("min_balance", "top_up_amount", "fee_reserve"):
            value = getattr(self.policy, name)
            try:
                chain.to_smallest(value)
            except ValueError:
                raise ValueError(
                    f"policy.{name} ({value}) has more than {chain.decimals} decimal places, "
                    f"the precision of {chain.native_symbol} on {chain.name}"
                ) from None
        return self

    @property
    def chain(self) -> Chain:
        return get_chain(self.ledger.chain)

    def top_up_policy(self) -> TopUpPolicy:
        return TopUpPolicy(
            min_balance=self.policy.min_balance,
            top_up_amount=self.policy.top_up_amount,
        )

    def policy_warnings(self) -> list[str]:
        """Describe policy settings that look like mistakes.

        Nothing is corrected; a top-up that cannot lift the balance over the
        threshold is allowed but probably unintended.
        """
        warnings: list[str] = []
        p = self.policy
        if p.top_up_amount < p.min_balance:
            warnings.append(
                f"top_up_amount ({p.top_up_amount}) is below min_balance ({p.min_balance}); "
                "a nearly empty wallet will still be under the threshold after a top-up."
            )
        if self.loop.recovery_seconds > self.loop.interval_seconds:
            warnings.append(
                f"recovery_seconds ({self.loop.recovery_seconds}) is longer than "
                f"interval_seconds ({self.loop.interval_seconds})."
            )
        return warnings


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def default_config_path(base: Path | None = None) -> Path:
    """Return the config path from ``$WALLET_KEEPER_CONFIG`` or ``./wallet-keeper.yaml``."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    if base is None:
        base = Path.cwd()
    return base / DEFAULT_CONFIG_NAME


def load_config(path: Path) -> KeeperConfig:
    """Load and validate configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation. Settings the file leaves out take their defaults, and
    placeholders in those defaults are expanded the same way; a missing file
    yields the defaults alone.
    """
    raw_data: dict = {}
    if path.exists():
        raw_text = path.read_text(encoding="utf-8")
        raw_data = yaml.safe_load(raw_text) or {}
    defaults = KeeperConfig().model_dump(mode="json", exclude_none=True)
    expanded = _expand_env_recursive(_merge(defaults, raw_data))
    return KeeperConfig.model_validate(expanded)


def save_config(config: KeeperConfig, path: Path) -> None:
    """Serialize a :class:`KeeperConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)


def unresolved_placeholders(config: KeeperConfig) -> list[str]:
    """Names of ``${VAR}`` placeholders still present after expansion."""
    data = config.model_dump(mode="json")
    found: list[str] = []

    def _walk(obj: object) -> None:
        if isinstance(obj, str):
            for name in _ENV_VAR_RE.findall(obj):
                if name not in found:
                    found.append(name)
        elif isinstance(obj, dict):
            for v in obj.values():
                _walk(v)
        elif isinstance(obj, list):
            for item in obj:
                _walk(item)

    _walk(data)
    return found
