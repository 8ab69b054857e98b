"""Dependency wiring for the pricing service."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bellebook.common import lifespan_session

from .repository import PricingRepository
from .rules import Clock, utc_now
from .services import PricingRuleService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an AsyncSession for the current request lifecycle."""

    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with lifespan_session(session_factory) as session:
        yield session


def get_repository(session: AsyncSession = Depends(get_session)) -> PricingRepository:
    """Return a repository bound to the active session."""

    return PricingRepository(session)


def get_clock() -> Clock:
    """Time source for rule validity checks; overridden in tests."""

    return utc_now


def get_pricing_service(
    repository: PricingRepository = Depends(get_repository),
    clock: Clock = Depends(get_clock),
) -> PricingRuleService:
    return PricingRuleService(repository, clock=clock)
