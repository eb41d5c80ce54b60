from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from canteen.config import settings
from canteen.infrastructure.db_schema import metadata
from canteen.infrastructure.unit_of_work import UnitOfWork

engine = create_async_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(bind=engine):
    async with bind.begin() as conn:
        await conn.run_sync(metadata.create_all)


def get_unit_of_work() -> UnitOfWork:
    return UnitOfWork(AsyncSessionLocal)
