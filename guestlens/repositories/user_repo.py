"""User repository."""
from typing import Optional
from sqlalchemy.orm import Session

from guestlens.repositories.base import BaseRepository
from guestlens.models.user import User


class UserRepository(BaseRepository[User]):
    """Repository for account lookups."""

    def __init__(self, db: Session):
        super().__init__(User, db)

    def get_plan_name(self, user_id: int) -> Optional[str]:
        user = self.get(user_id)
        return user.plan_name if user else None
