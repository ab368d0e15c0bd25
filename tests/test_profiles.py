"""
User and profile endpoint tests: registration, the current user, profile
lookup and the follow relation.
"""
import pytest
from httpx import AsyncClient

from conftest import auth


async def _register(client: AsyncClient, username: str, **extra) -> int:
    resp = await client.post("/api/users", json={
        "user": {"username": username, "email": f"{username}@example.com", **extra},
    })
    assert resp.status_code == 201
    return resp.json()["user"]["id"]


# ---------------------------------------------------------------------------
# Create user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_user(async_client: AsyncClient):
    """Creating a user with all fields returns 201 and the provided data."""
    resp = await async_client.post("/api/users", json={"user": {
        "username": "newuser",
        "email": "newuser@example.com",
        "bio": "I am new here",
        "image": "https://example.com/me.png",
    }})
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["username"] == "newuser"
    assert user["email"] == "newuser@example.com"
    assert user["bio"] == "I am new here"
    assert user["image"] == "https://example.com/me.png"
    assert "id" in user


@pytest.mark.asyncio
async def test_create_user_missing_email_returns_422(async_client: AsyncClient):
    resp = await async_client.post("/api/users", json={"user": {"username": "noemail"}})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_profile(async_client: AsyncClient):
    await _register(async_client, "celeb", bio="Famous")
    resp = await async_client.get("/api/profiles/celeb")
    assert resp.status_code == 200
    assert resp.json() == {"profile": {
        "username": "celeb",
        "bio": "Famous",
        "image": None,
        "following": False,
    }}


@pytest.mark.asyncio
async def test_get_unknown_profile_returns_404(async_client: AsyncClient):
    resp = await async_client.get("/api/profiles/ghost")
    assert resp.status_code == 404
    assert resp.json() == {"errors": {"body": ["User not found"]}}


@pytest.mark.asyncio
async def test_follow_and_unfollow(async_client: AsyncClient):
    fan = await _register(async_client, "fan")
    await _register(async_client, "idol")

    for _ in range(2):
        resp = await async_client.post("/api/profiles/idol/follow", headers=auth(fan))
        assert resp.status_code == 200
        assert resp.json()["profile"]["following"] is True

    seen_by_fan = await async_client.get("/api/profiles/idol", headers=auth(fan))
    assert seen_by_fan.json()["profile"]["following"] is True
    anonymous = await async_client.get("/api/profiles/idol")
    assert anonymous.json()["profile"]["following"] is False

    for _ in range(2):
        resp = await async_client.delete("/api/profiles/idol/follow", headers=auth(fan))
        assert resp.status_code == 200
        assert resp.json()["profile"]["following"] is False


@pytest.mark.asyncio
async def test_follow_self_returns_422(async_client: AsyncClient):
    me = await _register(async_client, "narcissist")
    resp = await async_client.post("/api/profiles/narcissist/follow", headers=auth(me))
    assert resp.status_code == 422
    assert resp.json() == {"errors": {"username": ["cannot follow yourself"]}}


@pytest.mark.asyncio
async def test_follow_requires_identity(async_client: AsyncClient):
    await _register(async_client, "lonely")
    resp = await async_client.post("/api/profiles/lonely/follow")
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_current_user(async_client: AsyncClient):
    me = await _register(async_client, "myself", bio="Hello")
    resp = await async_client.get("/api/user", headers=auth(me))
    assert resp.status_code == 200
    assert resp.json() == {"user": {
        "id": me,
        "username": "myself",
        "email": "myself@example.com",
        "bio": "Hello",
        "image": None,
    }}


@pytest.mark.asyncio
async def test_get_current_user_requires_identity(async_client: AsyncClient):
    resp = await async_client.get("/api/user")
    assert resp.status_code == 401

    resp = await async_client.get("/api/user", headers=auth(4242))
    assert resp.status_code == 401
    assert resp.json() == {"errors": {"body": ["User not found"]}}


@pytest.mark.asyncio
async def test_update_current_user(async_client: AsyncClient):
    me = await _register(async_client, "changer", bio="Old bio")
    resp = await async_client.put(
        "/api/user",
        json={"user": {"username": "changed", "email": "", "image": "https://example.com/a.png"}},
        headers=auth(me),
    )
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["username"] == "changed"
    assert user["email"] == "changer@example.com"
    assert user["bio"] == "Old bio"
    assert user["image"] == "https://example.com/a.png"

    assert (await async_client.get("/api/profiles/changed")).status_code == 200
    assert (await async_client.get("/api/profiles/changer")).status_code == 404


@pytest.mark.asyncio
async def test_update_current_user_clears_bio_with_null(async_client: AsyncClient):
    me = await _register(async_client, "clearer", bio="Temporary")
    resp = await async_client.put("/api/user", json={"user": {"bio": None}}, headers=auth(me))
    assert resp.status_code == 200
    assert resp.json()["user"]["bio"] is None


@pytest.mark.asyncio
async def test_update_to_taken_username_and_email_returns_422(async_client: AsyncClient):
    await _register(async_client, "holder")
    me = await _register(async_client, "wannabe")
    resp = await async_client.put(
        "/api/user",
        json={"user": {"username": "holder", "email": "holder@example.com"}},
        headers=auth(me),
    )
    assert resp.status_code == 422
    assert resp.json() == {"errors": {
        "email": ["is already taken"],
        "username": ["is already taken"],
    }}


@pytest.mark.asyncio
async def test_update_keeping_own_username_is_allowed(async_client: AsyncClient):
    me = await _register(async_client, "steady")
    resp = await async_client.put(
        "/api/user",
        json={"user": {"username": "steady", "bio": "Still me"}},
        headers=auth(me),
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["bio"] == "Still me"
