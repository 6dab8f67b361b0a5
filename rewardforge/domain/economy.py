"""Economy primitives."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable


@dataclass(slots=True)
class Currency:
    code: str
    name: str
    initial_amount: int = 0
    max_amount: int | None = None


@dataclass(slots=True)
class Wallet:
    """Mutable wallet; balances never go below zero."""

    balances: Dict[str, int] = field(default_factory=dict)

    def get(self, currency: str) -> int:
        return self.balances.get(currency, 0)

    def set(self, currency: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Balance for {currency} cannot be negative: {amount}")
        self.balances[currency] = amount


class CurrencyRegistry:
    """Keeps track of available currencies."""

    def __init__(self) -> None:
        self._currencies: dict[str, Currency] = {}

    def register(self, currency: Currency, *, replace: bool = False) -> None:
        if currency.code in self._currencies and not replace:
            raise ValueError(f"Currency {currency.code} already registered")
        self._currencies[currency.code] = currency

    def get(self, code: str) -> Currency:
        try:
            return self._currencies[code]
        except KeyError as exc:
            raise KeyError(f"Currency {code} is not configured") from exc

    def all(self) -> Iterable[Currency]:
        return self._currencies.values()
