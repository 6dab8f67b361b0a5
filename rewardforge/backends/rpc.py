"""RPC-service backend: every operation is one authoritative HTTP call.

The server performs the check-and-mutate itself and answers with a single
JSON document::

    {"success": true, "reason": null, "balances": {"gold": 120},
     "granted": {...}, "progress": {"level": 3, "exp": 40}}

Failures carry a reason string. Older servers send numeric or free-text
reasons (``"0"``, ``"1"``, ``"already_today"`` ...); they are mapped onto
:class:`~rewardforge.domain.results.ReasonCode` with the legacy code table of
the operation that was issued.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

import httpx

from ..domain.exceptions import TransportError, UnauthenticatedError
from ..domain.granter import GrantDelta
from ..domain.ledger import BattlePassProgress, InventoryItemInstance, QuestProgress
from ..domain.leveling import LevelProgress
from ..domain.results import (
    COUPON_LEGACY_CODES,
    DAILY_CLAIM_LEGACY_CODES,
    SHOP_LEGACY_CODES,
    UPGRADE_LEGACY_CODES,
    ReasonCode,
    Result,
)
from ..domain.rewards import EntitlementKind, QuestKind, RewardDescriptor, TrackKind
from ..domain.tracks import ClaimedSet, RewardTrack
from ..domain.transactions import SessionSummary
from .base import AccountSnapshot, CharacterProgress

logger = logging.getLogger(__name__)

_TRACK_PATHS = {
    TrackKind.DAILY: "daily",
    TrackKind.NEW_PLAYER: "new-player",
}

_TRACK_LEGACY_CODES: dict[TrackKind, Mapping[str, ReasonCode] | None] = {
    TrackKind.DAILY: DAILY_CLAIM_LEGACY_CODES,
    TrackKind.NEW_PLAYER: None,
}


class HttpRpcBackend:
    """Async httpx client for the authoritative economy service."""

    name = "rpc"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._account_id: str | None = None
        self._token: str | None = None

    @property
    def account_id(self) -> str | None:
        return self._account_id

    async def open_session(self, account_id: str, token: str | None = None) -> None:
        if not account_id:
            raise ValueError("account_id is required")
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        self._account_id = account_id
        self._token = token
        logger.info("Opened rpc session for account %s", account_id)

    async def close(self) -> None:
        self._account_id = None
        self._token = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # transport

    def _headers(self) -> dict[str, str]:
        headers = {"X-Account-Id": self._account_id or ""}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: Mapping[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> Any:
        if self._account_id is None or self._client is None:
            raise UnauthenticatedError()
        try:
            response = await self._client.request(method, path, json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed", method, path, exc_info=True)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise UnauthenticatedError(f"{method} {path} rejected with HTTP {response.status_code}")
        if allow_missing and response.status_code == 404:
            return None
        if response.status_code >= 500 or (response.status_code >= 400 and not response.content):
            raise TransportError(f"{method} {path} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"{method} {path} returned a non-JSON body") from exc

    async def _call(
        self,
        action: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        *,
        legacy: Mapping[str, ReasonCode] | None = None,
    ) -> Result:
        if self._account_id is None:
            logger.warning("%s rejected: no open session", action)
            return Result.fail(ReasonCode.INVALID_CREDENTIALS)
        data = await self._request("POST", path, payload=payload or {})
        result = parse_result(data, legacy)
        if result.success:
            logger.info("%s committed for account %s", action, self._account_id)
        else:
            logger.warning("%s rejected for account %s: %s", action, self._account_id, result.reason_code)
        return result

    # operations

    async def claim_daily_reward(self, day_index: int, reward: RewardDescriptor | None = None) -> Result:
        return await self._claim_track(TrackKind.DAILY, day_index, reward)

    async def claim_new_player_reward(self, day_index: int, reward: RewardDescriptor | None = None) -> Result:
        return await self._claim_track(TrackKind.NEW_PLAYER, day_index, reward)

    async def _claim_track(self, kind: TrackKind, day_index: int, reward: RewardDescriptor | None) -> Result:
        payload: dict[str, Any] = {"dayIndex": day_index}
        if reward is not None:
            payload["reward"] = reward.to_dict()
        return await self._call(
            f"claim_{kind.value}_reward",
            f"auth/rewards/{_TRACK_PATHS[kind]}/claim",
            payload,
            legacy=_TRACK_LEGACY_CODES[kind],
        )

    async def claim_battle_pass_reward(self, pass_id: str) -> Result:
        return await self._call("claim_battle_pass_reward", "auth/purchase/battlepass/claim", {"passId": pass_id})

    async def unlock_battle_pass_premium(self) -> Result:
        return await self._call("unlock_battle_pass_premium", "auth/purchase/battlepass/premium")

    async def add_account_exp(self, amount: int) -> Result:
        return await self._call("add_account_exp", "auth/exp/account", {"exp": amount})

    async def add_character_exp(self, character_id: str, amount: int) -> Result:
        return await self._call(
            "add_character_exp", "auth/exp/character", {"characterId": character_id, "exp": amount}
        )

    async def add_character_mastery_exp(self, character_id: str, amount: int) -> Result:
        return await self._call(
            "add_character_mastery_exp", "auth/exp/mastery", {"characterId": character_id, "exp": amount}
        )

    async def add_battle_pass_xp(self, amount: int) -> Result:
        return await self._call("add_battle_pass_xp", "auth/exp/battlepass", {"exp": amount})

    async def complete_game_session(self, summary: SessionSummary) -> Result:
        return await self._call("complete_game_session", "auth/progress/session", summary.to_dict())

    async def complete_quest(self, quest_id: str, character_id: str | None = None) -> Result:
        payload: dict[str, Any] = {"questId": quest_id}
        if character_id is not None:
            payload["characterId"] = character_id
        return await self._call("complete_quest", "auth/progress/quest/complete", payload)

    async def redeem_coupon(self, code: str) -> Result:
        return await self._call(
            "redeem_coupon", "auth/coupon/redeem", {"code": code}, legacy=COUPON_LEGACY_CODES
        )

    async def purchase_shop_item(self, item_id: str) -> Result:
        return await self._call(
            "purchase_shop_item", "auth/purchase/shop", {"itemId": item_id}, legacy=SHOP_LEGACY_CODES
        )

    async def upgrade_inventory_item(self, unique_id: str) -> Result:
        return await self._call(
            "upgrade_inventory_item",
            "auth/inventory/upgrade-item",
            {"uniqueId": unique_id},
            legacy=UPGRADE_LEGACY_CODES,
        )

    async def delete_inventory_item(self, unique_id: str) -> Result:
        return await self._call("delete_inventory_item", "auth/character/delete-item", {"uniqueId": unique_id})

    # reads

    async def fetch_account_snapshot(self) -> AccountSnapshot:
        data = await self._request("GET", "auth/init")
        return _guard(parse_snapshot, data, self._account_id or "")

    async def fetch_reward_track(self, kind: TrackKind) -> RewardTrack | None:
        data = await self._request("GET", f"auth/rewards/{_TRACK_PATHS[kind]}", allow_missing=True)
        if data is None:
            return None
        return _guard(parse_track, kind, data)

    async def fetch_quest_progress(self) -> dict[str, QuestProgress]:
        data = await self._request("GET", "auth/progress/quests", allow_missing=True)
        if not data:
            return {}
        return _guard(parse_quests, data.get("quests", data))

    async def fetch_character_progress(self, character_id: str) -> CharacterProgress | None:
        data = await self._request("GET", f"auth/character/{character_id}/progress", allow_missing=True)
        if data is None:
            return None
        return _guard(parse_character, data)

    async def fetch_inventory(self) -> list[InventoryItemInstance]:
        data = await self._request("GET", "auth/character/inventory", allow_missing=True)
        if not data:
            return []
        return _guard(parse_inventory, data.get("items", ()))

    async def fetch_entitlements(self) -> dict[EntitlementKind, list[str]]:
        data = await self._request("GET", "auth/purchase/owned", allow_missing=True)
        if not data:
            return {}
        return _guard(parse_entitlements, data)


def _guard(parser: Any, *args: Any) -> Any:
    try:
        return parser(*args)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise TransportError(f"Malformed response for {parser.__name__}: {exc}") from exc


def parse_result(data: Any, legacy: Mapping[str, ReasonCode] | None = None) -> Result:
    if not isinstance(data, Mapping):
        raise TransportError("Malformed response: expected a JSON object")
    try:
        if not data.get("success"):
            return Result(success=False, reason=ReasonCode.parse(data.get("reason"), legacy))
        progress = data.get("progress")
        return Result.ok(
            balances={str(k): int(v) for k, v in (data.get("balances") or {}).items()},
            delta=GrantDelta.from_dict(data["granted"]) if data.get("granted") is not None else None,
            progress=LevelProgress(int(progress["level"]), int(progress["exp"])) if progress else None,
            levels_gained=int(data.get("levelsGained", 0)),
            payload=dict(data.get("payload") or {}),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise TransportError(f"Malformed result payload: {exc}") from exc


def _parse_date(raw: Any) -> date | None:
    if not raw:
        return None
    return date.fromisoformat(str(raw)[:10])


def parse_track(kind: TrackKind, data: Mapping[str, Any]) -> RewardTrack:
    if "claimedMask" in data:
        claimed = ClaimedSet.from_bitmask(int(data["claimedMask"]))
    else:
        claimed = ClaimedSet(int(index) for index in data.get("claimed", ()))
    return RewardTrack(
        kind=kind,
        anchor_date=_parse_date(data.get("anchorDate")),
        last_claim_date=_parse_date(data.get("lastClaimDate")),
        claimed=claimed,
    )


def parse_quests(data: Mapping[str, Any]) -> dict[str, QuestProgress]:
    return {
        str(quest_id): QuestProgress(
            progress=int(raw.get("progress", 0)),
            completed=bool(raw.get("completed", False)),
            kind=QuestKind(raw.get("kind", QuestKind.ONE_TIME.value)),
        )
        for quest_id, raw in data.items()
    }


def parse_character(data: Mapping[str, Any]) -> CharacterProgress:
    return CharacterProgress(
        level=LevelProgress(int(data.get("level", 1)), int(data.get("exp", 0))),
        mastery=LevelProgress(int(data.get("masteryLevel", 1)), int(data.get("masteryExp", 0))),
    )


def parse_inventory(items: Any) -> list[InventoryItemInstance]:
    return [
        InventoryItemInstance(
            unique_id=str(raw["uniqueId"]),
            template_id=str(raw["templateId"]),
            level=int(raw.get("level", 0)),
            upgrades={int(stat): int(level) for stat, level in (raw.get("upgrades") or {}).items()},
        )
        for raw in items
    ]


def parse_entitlements(data: Mapping[str, Any]) -> dict[EntitlementKind, list[str]]:
    owned: dict[EntitlementKind, list[str]] = {}
    for kind in EntitlementKind:
        ids = data.get(kind.value)
        if ids:
            owned[kind] = [str(template_id) for template_id in ids]
    return owned


def parse_snapshot(data: Mapping[str, Any], account_id: str) -> AccountSnapshot:
    """Decode ``auth/init``; keys the server omitted stay ``None``."""
    snapshot = AccountSnapshot(account_id=str(data.get("accountId", account_id)))
    if "currencies" in data:
        snapshot.balances = {str(k): int(v) for k, v in data["currencies"].items()}
    if "entitlements" in data:
        snapshot.entitlements = parse_entitlements(data["entitlements"])
    if "inventory" in data:
        snapshot.inventory = parse_inventory(data["inventory"])
    if "account" in data:
        raw = data["account"]
        snapshot.account = LevelProgress(int(raw.get("level", 1)), int(raw.get("exp", 0)))
    if "characters" in data:
        snapshot.characters = {str(cid): parse_character(raw) for cid, raw in data["characters"].items()}
    if "rewards" in data:
        snapshot.tracks = {
            kind: parse_track(kind, data["rewards"][kind.value])
            for kind in TrackKind
            if data["rewards"].get(kind.value) is not None
        }
    if "battlePass" in data:
        raw = data["battlePass"]
        snapshot.battle_pass = BattlePassProgress(
            xp=int(raw.get("xp", 0)),
            level=int(raw.get("level", 1)),
            premium=bool(raw.get("premium", False)),
            claimed={str(pass_id) for pass_id in raw.get("claimed", ())},
        )
        if "claimedMask" in raw:
            snapshot.battle_pass_mask = int(raw["claimedMask"])
    if "quests" in data:
        snapshot.quests = parse_quests(data["quests"])
    if "coupons" in data:
        snapshot.coupons = [str(coupon_id) for coupon_id in data["coupons"]]
    if "score" in data:
        snapshot.score = int(data["score"])
    return snapshot
