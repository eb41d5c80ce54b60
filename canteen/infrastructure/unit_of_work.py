from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from canteen.infrastructure.repositories import SQLAlchemyOrderRepository


class UnitOfWork:
    """Одна транзакция на один use case: без явного commit изменения откатываются"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            uow = _SessionUnitOfWork(session)
            try:
                yield uow
            except Exception:
                await session.rollback()
                raise
            if not uow.committed:
                await session.rollback()


class _SessionUnitOfWork:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.orders = SQLAlchemyOrderRepository(session)
        self.committed = False

    async def commit(self):
        await self._session.commit()
        self.committed = True

    async def rollback(self):
        await self._session.rollback()
        self.committed = False
