from typing import Optional

from sqlalchemy import select

from tasq.models.user import User
from tasq.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    """Encapsulates queries against the ``users`` table."""

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self._db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
