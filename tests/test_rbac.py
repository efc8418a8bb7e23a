from app.core.auth import authorize
from app.core.roles import Role, has_required_role, parse_role
from app.schemas.user import UserContext


def _user(*roles: Role, demo: bool = False) -> UserContext:
    return UserContext(user_id="u", email="u@example.com", roles=list(roles), is_demo=demo)


def test_admin_has_no_implicit_roles():
    assert has_required_role([Role.ADMIN], [Role.ADMIN]) is True
    assert has_required_role([Role.ADMIN], [Role.CANDIDATE]) is False


def test_any_required_role_is_enough():
    assert has_required_role([Role.RECRUITER], [Role.RECRUITER, Role.ADMIN]) is True
    assert has_required_role([Role.CANDIDATE], [Role.RECRUITER, Role.ADMIN]) is False


def test_parse_role():
    assert parse_role(" Recruiter ") is Role.RECRUITER
    assert parse_role("superuser") is None
    assert parse_role("") is None


def test_demo_user_only_passes_viewer_checks():
    demo = _user(demo=True)
    assert authorize(demo, [Role.CANDIDATE]) is False
    assert authorize(demo, [], allow_demo=True) is True


def test_demo_flag_does_not_lift_real_roles():
    assert authorize(_user(Role.CANDIDATE, demo=True), [Role.CANDIDATE]) is False
    assert authorize(_user(Role.CANDIDATE), [Role.CANDIDATE]) is True
