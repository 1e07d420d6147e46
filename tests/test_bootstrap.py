import pytest

from authcore.auth.password import hash_password, verify_password
from authcore.models.user import NewUser, UserRole
from authcore.repositories import InMemoryUserStore
from authcore.services import bootstrap_admin_if_needed

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, make_settings


@pytest.mark.asyncio
async def test_creates_admin_from_settings():
    store = InMemoryUserStore()
    admin = await bootstrap_admin_if_needed(store, make_settings(admin_email=" Admin@Example.com "))

    assert admin.role is UserRole.ADMIN
    assert admin.email == ADMIN_EMAIL
    assert admin.first_name == "Ada"
    assert verify_password(ADMIN_PASSWORD, await store.get_password_hash(admin.id))


@pytest.mark.asyncio
async def test_is_idempotent():
    store = InMemoryUserStore()
    settings = make_settings()

    assert await bootstrap_admin_if_needed(store, settings) is not None
    assert await bootstrap_admin_if_needed(store, settings) is None
    assert await store.count_by_role(UserRole.ADMIN) == 1


@pytest.mark.asyncio
async def test_skipped_without_admin_email():
    store = InMemoryUserStore()
    assert await bootstrap_admin_if_needed(store, make_settings(admin_email=None)) is None
    assert await store.count_by_role(UserRole.ADMIN) == 0


@pytest.mark.asyncio
async def test_weak_admin_password_is_refused():
    store = InMemoryUserStore()
    assert await bootstrap_admin_if_needed(store, make_settings(admin_password="password")) is None
    assert await store.count_by_role(UserRole.ADMIN) == 0


@pytest.mark.asyncio
async def test_overlong_admin_password_is_refused():
    store = InMemoryUserStore()
    settings = make_settings(admin_password="Aa1!" * 40)
    assert await bootstrap_admin_if_needed(store, settings) is None
    assert await store.count_by_role(UserRole.ADMIN) == 0


@pytest.mark.asyncio
async def test_generated_password_outside_production(capsys):
    store = InMemoryUserStore()
    admin = await bootstrap_admin_if_needed(store, make_settings(admin_password=None))

    assert admin is not None
    out = capsys.readouterr().out
    assert ADMIN_EMAIL in out
    password = out.split("Password:")[1].split()[0]
    assert verify_password(password, await store.get_password_hash(admin.id))


@pytest.mark.asyncio
async def test_missing_password_in_production_is_skipped():
    store = InMemoryUserStore()
    settings = make_settings(app_env="production", admin_password=None)
    assert await bootstrap_admin_if_needed(store, settings) is None


@pytest.mark.asyncio
async def test_email_taken_by_regular_user():
    store = InMemoryUserStore()
    await store.create(
        NewUser(email=ADMIN_EMAIL, first_name="Not", last_name="Admin"),
        hash_password("Valid1Pass!"),
    )

    assert await bootstrap_admin_if_needed(store, make_settings()) is None
    assert await store.count_by_role(UserRole.ADMIN) == 0
