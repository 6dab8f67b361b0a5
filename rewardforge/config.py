"""Configuration models for RewardForge."""

from __future__ import annotations

import os
import json
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Sequence

from .domain.leveling import LevelingCurve, LevelingCurves


BackendKind = Literal["memory", "sqlalchemy", "rpc"]
_TRUTHY = {"1", "true", "yes"}


@dataclass(slots=True)
class BackendConfig:
    """Select and configure the authoritative store."""

    kind: BackendKind = "memory"
    dsn: str | None = None
    echo_sql: bool = False
    base_url: str | None = None
    timeout_seconds: float = 10.0

    def resolve_dsn(self) -> str | None:
        if self.dsn:
            return self.dsn
        if self.kind == "sqlalchemy":
            return "sqlite+aiosqlite:///./rewardforge.db"
        return None


@dataclass(slots=True)
class RetryConfig:
    """Bounded retry for transactions that lose an optimistic-concurrency race."""

    max_attempts: int = 5
    base_delay: float = 0.02
    max_delay: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays cannot be negative")


@dataclass(slots=True)
class CurveConfig:
    base_exp: int = 100
    increment: float = 0.1
    max_level: int = 50
    table: Sequence[int] = field(default_factory=tuple)

    def build(self) -> LevelingCurve:
        return LevelingCurve(
            base_exp=self.base_exp,
            increment=self.increment,
            max_level=self.max_level,
            table=tuple(self.table),
        )


@dataclass(slots=True)
class LevelingConfig:
    """One curve per progression axis."""

    account: CurveConfig = field(default_factory=CurveConfig)
    character: CurveConfig = field(default_factory=lambda: CurveConfig(max_level=30))
    mastery: CurveConfig = field(default_factory=lambda: CurveConfig(max_level=20))
    battle_pass: CurveConfig = field(
        default_factory=lambda: CurveConfig(base_exp=1000, increment=0.0, max_level=50)
    )

    def build(self) -> LevelingCurves:
        return LevelingCurves(
            account=self.account.build(),
            character=self.character.build(),
            mastery=self.mastery.build(),
            battle_pass=self.battle_pass.build(),
        )


@dataclass(slots=True)
class EconomyConfig:
    """Currency wiring for sessions and the battle pass."""

    gold_currency: str = "gold"
    battle_pass_currency: str = "gems"
    battle_pass_price: int = 500
    default_currencies: Sequence[str] = field(default_factory=lambda: ("gold", "gems"))
    starting_balances: Mapping[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class RewardForgeConfig:
    """Top-level configuration container."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    leveling: LevelingConfig = field(default_factory=LevelingConfig)
    economy: EconomyConfig = field(default_factory=EconomyConfig)
    rng_seed: int | None = None

    @classmethod
    def from_env(cls) -> "RewardForgeConfig":
        """Create config from environment variables prefixed with REWARDFORGE_."""
        prefix = "REWARDFORGE_"
        backend_kind = os.getenv(f"{prefix}BACKEND", "memory")
        if backend_kind not in {"memory", "sqlalchemy", "rpc"}:
            raise ValueError(f"Unsupported {prefix}BACKEND value '{backend_kind}'")

        backend = BackendConfig(
            kind=backend_kind,
            dsn=os.getenv(f"{prefix}DSN"),
            echo_sql=os.getenv(f"{prefix}ECHO_SQL", "false").lower() in _TRUTHY,
            base_url=os.getenv(f"{prefix}BASE_URL"),
            timeout_seconds=float(os.getenv(f"{prefix}TIMEOUT", "10")),
        )

        retry = RetryConfig(
            max_attempts=int(os.getenv(f"{prefix}RETRY_ATTEMPTS", "5")),
            base_delay=float(os.getenv(f"{prefix}RETRY_BASE_DELAY", "0.02")),
            max_delay=float(os.getenv(f"{prefix}RETRY_MAX_DELAY", "0.5")),
        )

        defaults = LevelingConfig()
        leveling = LevelingConfig(
            account=_parse_curve(os.getenv(f"{prefix}CURVE_ACCOUNT"), defaults.account, "CURVE_ACCOUNT"),
            character=_parse_curve(
                os.getenv(f"{prefix}CURVE_CHARACTER"), defaults.character, "CURVE_CHARACTER"
            ),
            mastery=_parse_curve(os.getenv(f"{prefix}CURVE_MASTERY"), defaults.mastery, "CURVE_MASTERY"),
            battle_pass=_parse_curve(
                os.getenv(f"{prefix}CURVE_BATTLE_PASS"), defaults.battle_pass, "CURVE_BATTLE_PASS"
            ),
        )

        currencies = tuple(
            cur.strip()
            for cur in os.getenv(f"{prefix}DEFAULT_CURRENCIES", "gold,gems").split(",")
            if cur.strip()
        )
        economy = EconomyConfig(
            gold_currency=os.getenv(f"{prefix}GOLD_CURRENCY", "gold") or "gold",
            battle_pass_currency=os.getenv(f"{prefix}BATTLE_PASS_CURRENCY", "gems") or "gems",
            battle_pass_price=int(os.getenv(f"{prefix}BATTLE_PASS_PRICE", "500")),
            default_currencies=currencies,
            starting_balances=_parse_balances(os.getenv(f"{prefix}STARTING_BALANCES")),
        )

        return cls(
            backend=backend,
            retry=retry,
            leveling=leveling,
            economy=economy,
            rng_seed=(
                int(os.getenv(f"{prefix}RNG_SEED")) if os.getenv(f"{prefix}RNG_SEED") else None
            ),
        )


def _load_json_object(raw: str, name: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON for REWARDFORGE_{name}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"REWARDFORGE_{name} must be a JSON object")
    return data


def _parse_curve(raw: str | None, default: CurveConfig, name: str) -> CurveConfig:
    if not raw:
        return default
    data = _load_json_object(raw, name)
    return CurveConfig(
        base_exp=int(data.get("baseExp", default.base_exp)),
        increment=float(data.get("increment", default.increment)),
        max_level=int(data.get("maxLevel", default.max_level)),
        table=tuple(int(value) for value in data.get("table", default.table)),
    )


def _parse_balances(raw: str | None) -> Mapping[str, int]:
    if not raw:
        return {}
    data = _load_json_object(raw, "STARTING_BALANCES")
    return {str(k): int(v) for k, v in data.items()}
