"""Event repository extending base repository."""
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional, List, Dict, Any
from datetime import datetime
import secrets

from guestlens.core.idempotency import normalize_name
from guestlens.repositories.base import BaseRepository
from guestlens.models.event import Event
from guestlens.models.event_member import EventMember
from guestlens.models.enums import MemberRole

CODE_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'
EVENT_CODE_LENGTH = 8
ACCESS_CODE_LENGTH = 6


class EventRepository(BaseRepository[Event]):
    """Repository for event database operations."""

    def __init__(self, db: Session):
        super().__init__(Event, db)

    @staticmethod
    def generate_code(length: int) -> str:
        """Generate an uppercase alphanumeric code."""
        return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))

    def _unique_code(self, field_name: str, length: int) -> str:
        code = self.generate_code(length)
        while self.get_by_field(field_name, code):
            code = self.generate_code(length)
        return code

    def create_event(self, created_by: int, data: Dict[str, Any]) -> Event:
        """
        Create new event with unique public and private codes.

        Args:
            created_by: Owning account ID
            data: Event fields (name, date, description, location, policy flags)

        Returns:
            Created Event instance
        """
        event_dict = dict(data)
        event_dict['created_by'] = created_by
        event_dict['event_code'] = self._unique_code('event_code', EVENT_CODE_LENGTH)
        event_dict['access_code'] = self._unique_code('access_code', ACCESS_CODE_LENGTH)
        return self.create(event_dict)

    def regenerate_access_code(self, event_id: int) -> Optional[Event]:
        """Replace the private access code, revoking links and cookies holding the old one."""
        return self.update(event_id, {'access_code': self._unique_code('access_code', ACCESS_CODE_LENGTH)})

    def get_by_event_code(self, code: str) -> Optional[Event]:
        return self.get_by_field('event_code', code.strip().upper())

    def find_recent_duplicate(
        self,
        created_by: int,
        normalized_name: str,
        event_date: datetime,
        since: datetime,
    ) -> Optional[Event]:
        """
        Most recently created event of this owner with the same name and day.

        Args:
            created_by: Owning account ID
            normalized_name: Lowercased, whitespace-collapsed name
            event_date: Event date (compared by day)
            since: Only events created at or after this instant

        Returns:
            Matching Event or None
        """
        candidates = self.db.query(Event).filter(
            Event.created_by == created_by,
            Event.created_at >= since,
        ).order_by(desc(Event.created_at), desc(Event.id)).all()

        # names are compared normalized; rows written before names were cleaned may hold extra spaces
        day = event_date.date()
        for event in candidates:
            if normalize_name(event.name) != normalized_name:
                continue
            if event.date and event.date.date() == day:
                return event
        return None

    def list_for_owner(self, created_by: int) -> List[Event]:
        return self.db.query(Event).filter(
            Event.created_by == created_by
        ).order_by(desc(Event.date), desc(Event.id)).all()

    def get_member_role(self, event_id: int, user_id: Optional[int]) -> Optional[MemberRole]:
        """Event-scoped role of an account, or None."""
        if user_id is None:
            return None
        member = self.db.query(EventMember).filter(
            EventMember.event_id == event_id,
            EventMember.user_id == user_id,
        ).first()
        return member.role if member else None

    def set_member_role(self, event_id: int, user_id: int, role: MemberRole) -> EventMember:
        """Grant or change an account's role on an event."""
        member = self.db.query(EventMember).filter(
            EventMember.event_id == event_id,
            EventMember.user_id == user_id,
        ).first()
        if member:
            member.role = role
        else:
            member = EventMember(event_id=event_id, user_id=user_id, role=role)
            self.db.add(member)
        self.db.commit()
        self.db.refresh(member)
        return member

    def delete_members(self, event_id: int) -> int:
        count = self.db.query(EventMember).filter(EventMember.event_id == event_id).delete(
            synchronize_session=False
        )
        self.db.commit()
        return count
