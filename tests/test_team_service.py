import pytest

from familybudget.core.errors import ConflictError, NotFoundError, ValidationError
from familybudget.core.models import User, UserRole
from familybudget.services.team_service import (
    change_password,
    deactivate_user,
    get_context,
    get_team_banks,
    hash_password,
    register_user,
    set_user_banks,
    update_profile,
    verify_password,
)


def test_founder_is_admin_and_joiner_is_member(db_session, team):
    joiner = register_user(
        db_session,
        name="Ana",
        email="Ana@Lopez.mx",
        password="secret123",
        invite_code=team.invite_code,
    )

    founder = db_session.get(User, team.user_id)
    assert founder.role == UserRole.ADMIN
    assert joiner.role == UserRole.MEMBER
    assert joiner.team_id == team.team_id
    assert joiner.email == "ana@lopez.mx"


def test_bad_invite_code_is_rejected(db_session, team):
    with pytest.raises(ValidationError) as exc_info:
        register_user(
            db_session, name="X", email="x@example.com", password="secret123", invite_code="NOPE"
        )
    assert exc_info.value.field == "invite_code"


def test_team_name_or_invite_is_required(db_session):
    with pytest.raises(ValidationError):
        register_user(db_session, name="X", email="x@example.com", password="secret123")


def test_duplicate_email_conflicts(db_session, team):
    with pytest.raises(ConflictError):
        register_user(
            db_session,
            name="Again",
            email="ADMIN@lopez.mx",
            password="secret123",
            team_name="Otra",
        )


def test_short_password_is_rejected(db_session):
    with pytest.raises(ValidationError):
        register_user(
            db_session, name="X", email="x@example.com", password="123", team_name="Equipo"
        )


def test_password_hash_round_trip():
    stored = hash_password("hunter22")
    assert "hunter22" not in stored
    assert verify_password("hunter22", stored)
    assert not verify_password("hunter23", stored)
    assert not verify_password("hunter22", "garbage")


def test_team_banks_are_union_of_members(db_session, team):
    joiner = register_user(
        db_session,
        name="Ana",
        email="ana@lopez.mx",
        password="secret123",
        invite_code=team.invite_code,
        banks=["Santander", "BBVA"],
    )

    assert get_team_banks(db_session, team.team_id) == ["BBVA", "Banregio", "Santander"]

    joiner.is_active = False
    db_session.commit()
    assert get_team_banks(db_session, team.team_id) == ["BBVA", "Banregio"]


def test_team_without_bank_preferences_uses_defaults(db_session):
    user = register_user(
        db_session, name="Solo", email="solo@example.com", password="secret123", team_name="Solo"
    )
    assert get_team_banks(db_session, user.team_id) == ["Banregio", "BBVA"]


def test_set_user_banks_dedupes_and_requires_one(db_session, team):
    assert set_user_banks(db_session, team.team_id, team.user_id, [" HSBC ", "HSBC", ""]) == ["HSBC"]
    assert get_team_banks(db_session, team.team_id) == ["HSBC"]

    with pytest.raises(ValidationError):
        set_user_banks(db_session, team.team_id, team.user_id, [" "])


def test_context_resolves_user_in_team(db_session, team):
    context = get_context(db_session, team.team_id, team.user_id)
    assert context.team_name == "Familia Lopez"
    assert context.role == UserRole.ADMIN
    assert context.to_dict()["banks"] == ["BBVA", "Banregio"]


def test_context_rejects_cross_team_and_inactive_users(db_session, team, other_team):
    with pytest.raises(NotFoundError):
        get_context(db_session, team.team_id, other_team.user_id)

    user = db_session.get(User, team.user_id)
    user.is_active = False
    db_session.commit()
    with pytest.raises(ValidationError):
        get_context(db_session, team.team_id, team.user_id)


# Account management


def test_update_profile_changes_name_and_email(db_session, team):
    user = update_profile(
        db_session, team.team_id, team.user_id, name="  Maria  ", email="Maria@Lopez.MX"
    )
    assert user.name == "Maria"
    assert user.email == "maria@lopez.mx"


def test_update_profile_leaves_unset_fields(db_session, team):
    user = update_profile(db_session, team.team_id, team.user_id, name="Maria")
    assert user.email == "admin@lopez.mx"


def test_update_profile_rejects_taken_email(db_session, team, other_team):
    with pytest.raises(ConflictError):
        update_profile(db_session, team.team_id, team.user_id, email="admin@perez.mx")
    assert db_session.get(User, team.user_id).email == "admin@lopez.mx"


@pytest.mark.parametrize("kwargs, field", [
    ({"email": "not-an-email"}, "email"),
    ({"name": "   "}, "name"),
])
def test_update_profile_validates_fields(db_session, team, kwargs, field):
    with pytest.raises(ValidationError) as exc_info:
        update_profile(db_session, team.team_id, team.user_id, **kwargs)
    assert exc_info.value.field == field


def test_change_password_requires_current_password(db_session, team):
    with pytest.raises(ValidationError) as exc_info:
        change_password(db_session, team.team_id, team.user_id, "wrong", "newsecret")
    assert exc_info.value.field == "current_password"


def test_change_password_enforces_minimum_length(db_session, team):
    with pytest.raises(ValidationError) as exc_info:
        change_password(db_session, team.team_id, team.user_id, "secret123", "abc")
    assert exc_info.value.field == "new_password"


def test_change_password_replaces_hash(db_session, team):
    change_password(db_session, team.team_id, team.user_id, "secret123", "newsecret")

    user = db_session.get(User, team.user_id)
    assert verify_password("newsecret", user.password_hash)
    assert not verify_password("secret123", user.password_hash)


def test_deactivate_requires_password(db_session, team):
    with pytest.raises(ValidationError) as exc_info:
        deactivate_user(db_session, team.team_id, team.user_id, "wrong")
    assert exc_info.value.field == "password"
    assert db_session.get(User, team.user_id).is_active


def test_deactivated_user_can_no_longer_act(db_session, team):
    user = deactivate_user(db_session, team.team_id, team.user_id, "secret123")
    assert user.is_active is False

    with pytest.raises(ValidationError):
        get_context(db_session, team.team_id, team.user_id)


def test_account_changes_are_scoped_to_team(db_session, team, other_team):
    with pytest.raises(NotFoundError):
        deactivate_user(db_session, other_team.team_id, team.user_id, "secret123")
