"""Credit ledger — conditional debit and compensating refund on users.credits_balance."""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelforge.errors import InsufficientFunds
from reelforge.models.user import User

logger = logging.getLogger(__name__)


class CreditLedger:
    """Debits are a single conditional UPDATE so concurrent requests cannot overdraw."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def balance(self, user_id: str) -> int:
        async with self._session_factory() as session:
            value = await session.scalar(
                select(User.credits_balance).where(User.id == user_id)
            )
        return value or 0

    async def check_and_debit(self, user_id: str, amount: int) -> None:
        """Debit `amount` or raise InsufficientFunds without touching the balance."""
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(User)
                    .where(User.id == user_id, User.credits_balance >= amount)
                    .values(credits_balance=User.credits_balance - amount)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    available = await session.scalar(
                        select(User.credits_balance).where(User.id == user_id)
                    )
                    raise InsufficientFunds(required=amount, available=available or 0)

        logger.info("Debited %d credits from user %s", amount, user_id)

    async def refund(self, user_id: str, amount: int) -> None:
        """Return credits for a dispatch that produced no jobs."""
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(credits_balance=User.credits_balance + amount)
                    .execution_options(synchronize_session=False)
                )

        logger.info("Refunded %d credits to user %s", amount, user_id)
