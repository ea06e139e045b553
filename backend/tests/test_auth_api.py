"""
注册与登录
"""
from __future__ import annotations

import pytest

from educonnect.auth import authenticate
from educonnect.domain import Role

pytestmark = pytest.mark.anyio


async def test_register_creates_student(client, repo):
    resp = await client.post(
        "/api/auth/register",
        json={"name": "Stu", "email": "stu@example.com", "password": "secret123"},
    )
    assert resp.status_code == 201
    assert resp.json()["user"]["role"] == "student"
    assert (await repo.get_user_by_email("stu@example.com")).role is Role.STUDENT


async def test_register_ignores_requested_role(client, repo):
    resp = await client.post(
        "/api/auth/register",
        json={"name": "Eve", "email": "eve@example.com", "password": "secret123", "role": "admin"},
    )
    assert resp.status_code == 201
    assert (await repo.get_user_by_email("eve@example.com")).role is Role.STUDENT


async def test_register_duplicate_email(client, make_user):
    await make_user(email="dup@example.com")
    resp = await client.post(
        "/api/auth/register",
        json={"name": "Dup", "email": "dup@example.com", "password": "secret123"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "conflict"


async def test_register_invalid_email(client):
    resp = await client.post(
        "/api/auth/register",
        json={"name": "Bad", "email": "not-an-email", "password": "secret123"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_failure"


async def test_login_issues_working_token(client, make_user, settings):
    teacher, _ = await make_user(Role.TEACHER, email="login.teacher@example.com")

    resp = await client.post("/api/auth/login", json={"email": "login.teacher@example.com", "password": "secret123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["id"] == teacher.id
    identity = authenticate(body["token"], settings)
    assert identity.id == teacher.id
    assert identity.role is Role.TEACHER

    created = await client.post(
        "/api/lectures/", json={"title": "Via login"}, headers={"authorization": body["token"]}
    )
    assert created.status_code == 201


@pytest.mark.parametrize(
    "email,password",
    [("known@example.com", "wrong-password"), ("unknown@example.com", "secret123")],
)
async def test_login_failures_are_401(client, make_user, email, password):
    await make_user(email="known@example.com")
    resp = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid email or password"
