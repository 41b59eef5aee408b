"""Credit ledger contract used to charge for generated lessons."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

LESSON_COST = 1


class InsufficientCreditsError(RuntimeError):
  """Raised when an owner cannot pay for a lesson."""


class CreditLedger(Protocol):
  """Ledger contract; payments and purchases live elsewhere."""

  async def balance(self, owner_id: str) -> int:
    """Return the owner's remaining credits."""

  async def charge(self, owner_id: str, amount: int) -> int:
    """Deduct credits and return the new balance."""


class InMemoryCreditLedger:
  """Process-local ledger for development and tests."""

  def __init__(self, initial_balance: int = 0, balances: dict[str, int] | None = None) -> None:
    self._initial_balance = initial_balance
    self._balances: dict[str, int] = dict(balances or {})

  async def balance(self, owner_id: str) -> int:
    return self._balances.get(owner_id, self._initial_balance)

  async def charge(self, owner_id: str, amount: int) -> int:
    if amount <= 0:
      raise ValueError("Charge amount must be positive.")

    current = await self.balance(owner_id)
    if current < amount:
      raise InsufficientCreditsError(f"Owner {owner_id} has {current} credits; {amount} required.")

    self._balances[owner_id] = current - amount
    logger.info("Charged %d credit(s) to %s; %d remaining.", amount, owner_id, self._balances[owner_id])
    return self._balances[owner_id]
