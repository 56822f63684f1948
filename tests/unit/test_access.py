import pytest

from guestlens.core.access import (
    Requester,
    access_cookie_name,
    can_access,
    can_manage,
    can_upload,
    resolve_access_code,
)
from guestlens.models.enums import MemberRole


@pytest.fixture
def private_event(make_event):
    return make_event(is_public=False)


def test_public_event_is_open(make_event):
    event = make_event(is_public=True)
    assert can_access(event, Requester())


def test_private_event_denies_anonymous(private_event):
    assert not can_access(private_event, Requester())
    assert not can_access(private_event, Requester(access_code="WRONG1"))


def test_access_code_is_trimmed_and_case_insensitive(private_event):
    code = f"  {private_event.access_code.lower()} "
    assert can_access(private_event, Requester(access_code=code))


def test_owner_and_admin(private_event, host, admin):
    assert can_access(private_event, Requester(user_id=host.id))
    assert can_access(private_event, Requester(user_id=admin.id, is_admin=True))
    assert can_manage(private_event, Requester(user_id=admin.id, is_admin=True))


def test_member_role_grants_access(private_event, other_user):
    requester = Requester(user_id=other_user.id)
    assert not can_access(private_event, requester)
    assert can_access(private_event, requester, MemberRole.viewer)


def test_access_is_monotonic(private_event, other_user):
    base = Requester(user_id=other_user.id)
    signals = [
        (base, None),
        (base.with_code(private_event.access_code), None),
        (base, MemberRole.viewer),
        (base.with_code(private_event.access_code), MemberRole.viewer),
    ]
    verdicts = [can_access(private_event, r, role) for r, role in signals]
    assert verdicts == [False, True, True, True]


def test_upload_rules(make_event, other_user):
    event = make_event(allow_guest_uploads=False)
    guest = Requester(access_code=event.access_code)
    assert can_access(event, guest)
    assert not can_upload(event, guest)

    member = Requester(user_id=other_user.id)
    assert not can_upload(event, member, MemberRole.viewer)
    assert can_upload(event, member, MemberRole.contributor)
    assert can_upload(event, member, MemberRole.manager)


def test_guest_upload_needs_access(make_event):
    event = make_event(allow_guest_uploads=True)
    assert not can_upload(event, Requester())
    assert can_upload(event, Requester(access_code=event.access_code))


def test_manage_rules(private_event, other_user):
    member = Requester(user_id=other_user.id)
    assert not can_manage(private_event, member, MemberRole.contributor)
    assert can_manage(private_event, member, MemberRole.manager)
    assert not can_manage(private_event, Requester(access_code=private_event.access_code))


def test_resolve_access_code_precedence():
    cookie = {access_cookie_name("EVT12345"): "cookie"}
    header = {"x-access-code": "header"}

    assert resolve_access_code("explicit", header, cookie, "EVT12345") == "EXPLICIT"
    assert resolve_access_code(None, header, cookie, "EVT12345") == "HEADER"
    assert resolve_access_code(None, {}, cookie, "EVT12345") == "COOKIE"
    assert resolve_access_code("  ", {}, cookie, "EVT12345") == "COOKIE"
    assert resolve_access_code(None, {}, cookie, "OTHER000") is None
    assert resolve_access_code(None, {}, cookie) is None
