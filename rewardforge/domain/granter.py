"""Apply reward descriptors to a ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from uuid import uuid4

from .economy import CurrencyRegistry
from .ledger import InventoryItemInstance, LedgerView
from .rewards import ENTITLEMENT_REWARDS, EntitlementKind, RewardDescriptor, RewardKind

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]

MAX_ID_ATTEMPTS = 32


def default_unique_id() -> str:
    return uuid4().hex[:8].upper()


@dataclass(slots=True)
class GrantDelta:
    """Exactly what a grant changed: currency additions, new entitlements, new instances."""

    currencies: dict[str, int] = field(default_factory=dict)
    entitlements: dict[EntitlementKind, list[str]] = field(default_factory=dict)
    items: list[InventoryItemInstance] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.currencies or any(self.entitlements.values()) or self.items)

    def add_currency(self, currency: str, amount: int) -> None:
        self.currencies[currency] = self.currencies.get(currency, 0) + amount

    def add_entitlement(self, kind: EntitlementKind, template_id: str) -> None:
        bucket = self.entitlements.setdefault(kind, [])
        if template_id not in bucket:
            bucket.append(template_id)

    def has_entitlement(self, kind: EntitlementKind, template_id: str) -> bool:
        return template_id in self.entitlements.get(kind, ())

    def merge(self, other: "GrantDelta") -> "GrantDelta":
        merged = GrantDelta(
            currencies=dict(self.currencies),
            entitlements={kind: list(ids) for kind, ids in self.entitlements.items()},
            items=[item.copy() for item in self.items],
        )
        for currency, amount in other.currencies.items():
            merged.add_currency(currency, amount)
        for kind, ids in other.entitlements.items():
            for template_id in ids:
                merged.add_entitlement(kind, template_id)
        merged.items.extend(item.copy() for item in other.items)
        return merged

    def to_dict(self) -> dict[str, Any]:
        return {
            "currencies": dict(self.currencies),
            "entitlements": {kind.value: list(ids) for kind, ids in self.entitlements.items() if ids},
            "items": [
                {"uniqueId": item.unique_id, "templateId": item.template_id, "level": item.level}
                for item in self.items
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "GrantDelta":
        if not data:
            return cls()
        delta = cls()
        for currency, amount in (data.get("currencies") or {}).items():
            delta.add_currency(str(currency), int(amount))
        for kind, ids in (data.get("entitlements") or {}).items():
            for template_id in ids or ():
                delta.add_entitlement(EntitlementKind(kind), str(template_id))
        for raw in data.get("items") or ():
            delta.items.append(
                InventoryItemInstance(
                    unique_id=str(raw["uniqueId"]),
                    template_id=str(raw["templateId"]),
                    level=int(raw.get("level", 0)),
                )
            )
        return delta


class EntitlementGranter:
    """Dispatch a reward descriptor on its kind and record the resulting delta.

    Currency grants stop at the currency's ``max_amount`` when ``currencies``
    knows one; a balance already above the cap is left as it is.
    """

    def __init__(
        self,
        *,
        id_factory: IdFactory | None = None,
        currencies: CurrencyRegistry | None = None,
    ) -> None:
        self._id_factory = id_factory or default_unique_id
        self._currencies = currencies

    def plan(
        self,
        reward: RewardDescriptor,
        view: LedgerView,
        *,
        pending: GrantDelta | None = None,
    ) -> GrantDelta:
        """Compute the delta ``reward`` would produce against ``view``.

        ``pending`` is a delta planned earlier in the same unit that has not
        been applied yet; its entitlements and unique ids count as taken.
        """
        delta = GrantDelta()
        if reward.kind is RewardKind.CURRENCY:
            if not reward.currency:
                raise ValueError("Currency reward without a currency code")
            if reward.amount < 0:
                raise ValueError(f"Currency reward cannot be negative: {reward.amount}")
            if reward.amount:
                delta.add_currency(reward.currency, reward.amount)
            return delta

        if reward.kind is RewardKind.INVENTORY_ITEM:
            taken = {item.unique_id for item in pending.items} if pending else set()
            for template_id in reward.template_ids:
                unique_id = self._fresh_id(view, taken)
                taken.add(unique_id)
                delta.items.append(InventoryItemInstance(unique_id=unique_id, template_id=template_id))
            return delta

        kind = ENTITLEMENT_REWARDS[reward.kind]
        for template_id in reward.template_ids:
            if view.owns(kind, template_id):
                continue
            if pending and pending.has_entitlement(kind, template_id):
                continue
            delta.add_entitlement(kind, template_id)
        return delta

    def apply(self, delta: GrantDelta, view: LedgerView) -> None:
        for currency, amount in delta.currencies.items():
            if amount < 0:
                raise ValueError(f"Grant cannot debit {currency}: {amount}")
            view.set_balance(currency, self._capped(currency, view.balance(currency), amount))
        for kind, ids in delta.entitlements.items():
            for template_id in ids:
                view.add_entitlement(kind, template_id)
        for item in delta.items:
            if view.has_unique_id(item.unique_id):
                logger.debug("Inventory instance %s already present, skipping", item.unique_id)
                continue
            view.put_inventory_item(item)

    def grant(self, reward: RewardDescriptor, view: LedgerView) -> GrantDelta:
        delta = self.plan(reward, view)
        self.apply(delta, view)
        return delta

    def _capped(self, currency: str, current: int, amount: int) -> int:
        total = current + amount
        if self._currencies is None:
            return total
        try:
            cap = self._currencies.get(currency).max_amount
        except KeyError:
            return total
        if cap is None or total <= cap:
            return total
        return max(current, cap)

    def _fresh_id(self, view: LedgerView, taken: set[str]) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in taken and not view.has_unique_id(candidate):
                return candidate
        raise RuntimeError(f"Could not generate a unique inventory id in {MAX_ID_ATTEMPTS} attempts")
