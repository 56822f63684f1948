"""
Access Control Evaluator
========================

Single source of truth for who may view, upload to, or manage an event.

Audiences:
- the host (event creator)
- an authenticated account holding an event-scoped role
- an anonymous guest presenting the event's access code

The decision functions are pure. Callers gather the presented access code
with ``resolve_access_code`` so every route applies the same transport
precedence: explicit value > ``x-access-code`` header > per-event cookie.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from guestlens.models.enums import MemberRole
from guestlens.models.event import Event

ACCESS_CODE_HEADER = "x-access-code"

UPLOAD_ROLES = frozenset({MemberRole.contributor, MemberRole.manager})
MANAGE_ROLES = frozenset({MemberRole.manager})


@dataclass(frozen=True)
class Requester:
    """Who is asking: an optional account and an optional presented code."""
    user_id: Optional[int] = None
    access_code: Optional[str] = None
    is_admin: bool = False

    def with_code(self, access_code: Optional[str]) -> "Requester":
        return Requester(self.user_id, access_code, self.is_admin)


def access_cookie_name(event_code: str) -> str:
    return f"evt:{event_code}:access"


def normalize_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


def resolve_access_code(
    explicit: Optional[str],
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    event_code: Optional[str] = None,
) -> Optional[str]:
    """Pick the presented access code: explicit > header > event cookie."""
    for candidate in (explicit, headers.get(ACCESS_CODE_HEADER)):
        code = normalize_code(candidate)
        if code:
            return code
    if event_code:
        return normalize_code(cookies.get(access_cookie_name(event_code)))
    return None


def code_matches(event: Event, presented: Optional[str]) -> bool:
    presented = normalize_code(presented)
    stored = normalize_code(event.access_code)
    return presented is not None and stored is not None and presented == stored


def is_owner(event: Event, requester: Requester) -> bool:
    return requester.user_id is not None and requester.user_id == event.created_by


def can_access(event: Event, requester: Requester, member_role: Optional[MemberRole] = None) -> bool:
    """May the requester view the event and its photos."""
    if event.is_public:
        return True
    if is_owner(event, requester) or requester.is_admin:
        return True
    if requester.user_id is not None and member_role is not None:
        return True
    return code_matches(event, requester.access_code)


def can_upload(event: Event, requester: Requester, member_role: Optional[MemberRole] = None) -> bool:
    """May the requester add photos to the event."""
    if is_owner(event, requester) or requester.is_admin:
        return True
    if requester.user_id is not None and member_role in UPLOAD_ROLES:
        return True
    return bool(event.allow_guest_uploads) and can_access(event, requester, member_role)


def can_manage(event: Event, requester: Requester, member_role: Optional[MemberRole] = None) -> bool:
    """May the requester moderate photos and edit or delete the event."""
    if is_owner(event, requester) or requester.is_admin:
        return True
    return requester.user_id is not None and member_role in MANAGE_ROLES
