"""Premium entitlement gate."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol


class EntitlementChecker(Protocol):
    async def has_premium(self, user_id: str) -> bool: ...


class StaticEntitlements:
    """Entitlements from a fixed set of premium user ids.

    Real deployments plug in a checker backed by their billing system.
    """

    def __init__(self, premium_users: Iterable[str] = (), everyone: bool = False) -> None:
        self.premium_users = set(premium_users)
        self.everyone = everyone

    async def has_premium(self, user_id: str) -> bool:
        return self.everyone or user_id in self.premium_users
