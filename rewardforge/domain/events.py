"""Domain event dispatch."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, DefaultDict, Mapping

EventPayload = Mapping[str, Any]
EventListener = Callable[[EventPayload], Awaitable[None]]

logger = logging.getLogger(__name__)

REWARD_TRACK_CLAIMED = "reward.track.claimed"
BATTLE_PASS_REWARD_CLAIMED = "battle_pass.reward.claimed"
BATTLE_PASS_PREMIUM_UNLOCKED = "battle_pass.premium.unlocked"
LEVEL_UP = "progress.level.up"
SESSION_COMPLETED = "session.completed"
QUEST_COMPLETED = "quest.completed"
COUPON_REDEEMED = "coupon.redeemed"
ITEM_UPGRADED = "inventory.item.upgraded"
ITEM_DELETED = "inventory.item.deleted"
SHOP_ITEM_PURCHASED = "shop.item.purchased"
LEDGER_RECONCILED = "ledger.reconciled"


class EventBus:
    """Simple async pub-sub used to notify presentation layers."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, list[EventListener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: EventListener) -> None:
        self._listeners[event_name].append(listener)

    def unsubscribe(self, event_name: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event_name)
        if listeners and listener in listeners:
            listeners.remove(listener)

    async def publish(self, event_name: str, payload: EventPayload) -> None:
        """Notify every listener in order; a listener that raises is logged, never re-raised."""
        for listener in list(self._listeners.get(event_name, ())):
            try:
                await listener(payload)
            except Exception:
                logger.exception("Listener %r failed for event %s", listener, event_name)
