from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from vowmarket.core.config import Settings
from vowmarket.models import User, UserRole
from vowmarket.models.base import BaseModel
from pydantic import ValidationError as SchemaError

from vowmarket.schemas.user import UserCreate, UserUpdate
from vowmarket.services.exceptions import AuthenticationFailed, NotFound, ValidationError
from vowmarket.services.identity import DatabaseIdentityProvider, InMemoryIdentityProvider


def setup_db():
    engine = create_engine('sqlite:///:memory:', connect_args={'check_same_thread': False})
    BaseModel.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    return Session()


CONFIG = Settings(SECRET_KEY='unit-test-secret', ADMIN_EMAILS='Boss@Vowmarket.in, ops@vowmarket.in')


def providers():
    return [
        DatabaseIdentityProvider(setup_db(), config=CONFIG),
        InMemoryIdentityProvider(config=CONFIG),
    ]


@pytest.mark.parametrize('provider', providers(), ids=['database', 'memory'])
def test_register_authenticate_and_resolve(provider):
    identity = provider.register(UserCreate(email='Priya@Test.com', password='s3cret-pass', display_name='Priya'))

    assert identity.email == 'priya@test.com'
    assert provider.authenticate('PRIYA@test.com ', 's3cret-pass') == identity
    assert provider.resolve_role(identity.user_id) == UserRole.USER

    principal = provider.resolve(provider.issue_token(identity))
    assert principal.identity == identity
    assert principal.role == UserRole.USER


@pytest.mark.parametrize('provider', providers(), ids=['database', 'memory'])
def test_bad_credentials_and_duplicates(provider):
    provider.register(UserCreate(email='a@test.com', password='password-1', display_name='A', role='vendor'))

    with pytest.raises(AuthenticationFailed):
        provider.authenticate('a@test.com', 'wrong-password')
    with pytest.raises(AuthenticationFailed):
        provider.authenticate('nobody@test.com', 'password-1')
    with pytest.raises(ValidationError):
        provider.register(UserCreate(email='A@test.com', password='password-2', display_name='A2'))


@pytest.mark.parametrize('provider', providers(), ids=['database', 'memory'])
def test_admin_role_requires_allowlisted_email(provider):
    with pytest.raises(ValidationError) as exc:
        provider.register(UserCreate(email='intruder@test.com', password='password-1', display_name='X', role='admin'))
    assert exc.value.field_errors == {'role': 'admin_not_allowed'}

    admin = provider.register(UserCreate(email='boss@vowmarket.in', password='password-1', display_name='Boss', role='admin'))
    assert provider.resolve_role(admin.user_id) == UserRole.ADMIN


@pytest.mark.parametrize('provider', providers(), ids=['database', 'memory'])
def test_tokens(provider):
    identity = provider.register(UserCreate(email='t@test.com', password='password-1', display_name='T'))

    assert provider.resolve(None).role == UserRole.GUEST
    with pytest.raises(AuthenticationFailed):
        provider.resolve('not-a-jwt')
    with pytest.raises(AuthenticationFailed):
        provider.resolve(provider.issue_token(identity, expires_delta=timedelta(seconds=-5)))

    other = Settings(SECRET_KEY='a-different-secret')
    forged = InMemoryIdentityProvider(config=other).issue_token(identity)
    with pytest.raises(AuthenticationFailed):
        provider.resolve(forged)


def test_unknown_user_resolves_to_guest():
    assert InMemoryIdentityProvider(config=CONFIG).resolve_role(5) == UserRole.GUEST
    assert DatabaseIdentityProvider(setup_db(), config=CONFIG).resolve_role(5) == UserRole.GUEST


def test_inactive_database_user_cannot_log_in():
    db = setup_db()
    provider = DatabaseIdentityProvider(db, config=CONFIG)
    identity = provider.register(UserCreate(email='gone@test.com', password='password-1', display_name='Gone'))
    token = provider.issue_token(identity)
    db.get(User, identity.user_id).is_active = False
    db.commit()

    with pytest.raises(AuthenticationFailed):
        provider.authenticate('gone@test.com', 'password-1')
    with pytest.raises(AuthenticationFailed):
        provider.resolve(token)


def test_memory_provider_is_seeded_per_instance():
    seeded = InMemoryIdentityProvider(
        [{'email': 'seed@test.com', 'password': 'seed-pass', 'display_name': 'Seed', 'role': 'vendor'}],
        config=CONFIG,
    )
    identity = seeded.authenticate('seed@test.com', 'seed-pass')
    assert seeded.resolve_role(identity.user_id) == UserRole.VENDOR

    with pytest.raises(AuthenticationFailed):
        InMemoryIdentityProvider(config=CONFIG).authenticate('seed@test.com', 'seed-pass')


@pytest.mark.parametrize('provider', providers(), ids=['database', 'memory'])
def test_update_profile_recomputes_completeness(provider):
    identity = provider.register(UserCreate(email='edit@test.com', password='password-1', display_name='Edit'))
    assert identity.profile_complete is False

    partial = provider.update_profile(identity.user_id, UserUpdate(phone_number=' 0821234567 '))
    assert partial.phone_number == '0821234567'
    assert partial.profile_complete is False

    updated = provider.update_profile(
        identity.user_id,
        UserUpdate(display_name=' Edith ', city='Cape Town', photo_url='https://cdn.test/edith.png'),
    )
    assert updated.display_name == 'Edith'
    assert updated.phone_number == '0821234567'
    assert updated.city == 'Cape Town'
    assert updated.photo_url == 'https://cdn.test/edith.png'
    assert updated.profile_complete is True
    assert provider.get_identity(identity.user_id) == updated
    assert provider.resolve(provider.issue_token(updated)).identity == updated

    cleared = provider.update_profile(identity.user_id, UserUpdate(city=''))
    assert cleared.city is None
    assert cleared.profile_complete is False
    assert cleared.email == 'edit@test.com'


@pytest.mark.parametrize('provider', providers(), ids=['database', 'memory'])
def test_update_profile_rejects_blank_name_and_unknown_user(provider):
    identity = provider.register(UserCreate(email='blank@test.com', password='password-1', display_name='Blank'))

    with pytest.raises(ValidationError) as exc:
        provider.update_profile(identity.user_id, UserUpdate(display_name='   '))
    assert exc.value.field_errors == {'display_name': 'blank'}
    assert provider.get_identity(identity.user_id).display_name == 'Blank'

    with pytest.raises(NotFound):
        provider.update_profile(999, UserUpdate(city='Durban'))


def test_profile_update_cannot_change_email_or_role():
    with pytest.raises(SchemaError):
        UserUpdate(email='new@test.com')
    with pytest.raises(SchemaError):
        UserUpdate(role='admin')


def test_registration_with_phone_and_city_is_complete():
    for provider in providers():
        identity = provider.register(
            UserCreate(email='full@test.com', password='password-1', display_name='Full', phone_number='011', city='Soweto')
        )
        assert identity.profile_complete is True
