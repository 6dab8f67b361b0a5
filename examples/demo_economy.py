"""Пример клиента RewardForge: каталог из JSON, вход, награды и прокачка."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from rewardforge import EconomyApp, RewardForgeConfig
from rewardforge.domain import events
from rewardforge.domain.exceptions import RewardForgeError
from rewardforge.domain.rewards import TrackKind
from rewardforge.domain.transactions import SessionSummary
from rewardforge.loaders import load_catalog_from_json


def register(app: EconomyApp) -> None:
    """Регистрируем каталог наград."""
    catalog_path = Path(__file__).with_name("catalog") / "rewards.json"
    load_catalog_from_json(app, catalog_path)


async def on_level_up(payload) -> None:
    print(f"Новый уровень ({payload['axis']}): {payload['level']}")


async def run_demo() -> None:
    app = EconomyApp(RewardForgeConfig.from_env())
    register(app)
    app.event_bus.subscribe(events.LEVEL_UP, on_level_up)
    await app.init_backend()

    service = app.service
    try:
        await service.login("demo-player")
        await service.claim_new_player_reward(0)
        await service.claim_daily_reward(0)
        await service.redeem_coupon("LAUNCH2024")
        await service.complete_game_session(
            SessionSummary("forest", "knight", won=True, monsters_killed=50, gained_gold=120)
        )
        await service.complete_quest("monster_hunter")

        try:
            await service.claim_daily_reward(1)
        except RewardForgeError as exc:
            print(f"Награда недоступна: {exc.reason.value}")

        status = service.track_status(TrackKind.DAILY)
        print(f"Ежедневные награды: {status.claimed_count}/{status.length} ({status.state.value})")
        print(f"Баланс: {service.cache.balances}")
    finally:
        await app.shutdown()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_demo())
