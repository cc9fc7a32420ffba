from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """Holds the ``AsyncSession`` a repository works through.

    Repositories never open or close sessions themselves; the caller
    (a request dependency or a notification session's loader) owns the
    session and decides when to commit.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def commit(self) -> None:
        """Commit, rolling back first if the commit fails."""
        try:
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise
