"""
鉴权闸门：凭据校验、角色检查、所有权检查
"""
from __future__ import annotations

import base64
import json
from dataclasses import replace

import pytest
from jose import jwt

from educonnect.auth import authenticate, authorize_owner_mutation, issue_token, owner_scope, require_role
from educonnect.domain import Identity, Role
from educonnect.errors import Forbidden, InvalidCredential, MissingCredential, NotOwner


def test_authenticate_returns_identity_from_token(settings):
    token = issue_token(Identity(id=7, role=Role.TEACHER), settings)
    assert authenticate(token, settings) == Identity(id=7, role=Role.TEACHER)


def test_authenticate_accepts_bearer_prefix(settings):
    token = issue_token(Identity(id=3, role=Role.STUDENT), settings)
    assert authenticate(f"Bearer {token}", settings).id == 3


@pytest.mark.parametrize("credential", [None, "", "   "])
def test_authenticate_missing_credential(settings, credential):
    with pytest.raises(MissingCredential):
        authenticate(credential, settings)


def test_authenticate_rejects_other_secret(settings):
    token = issue_token(Identity(id=1, role=Role.ADMIN), replace(settings, jwt_secret="other-secret"))
    with pytest.raises(InvalidCredential):
        authenticate(token, settings)


def test_authenticate_rejects_expired_token(settings):
    token = issue_token(Identity(id=1, role=Role.STUDENT), replace(settings, jwt_expire_minutes=-5))
    with pytest.raises(InvalidCredential):
        authenticate(token, settings)


def test_authenticate_rejects_tampered_payload(settings):
    header, _, signature = issue_token(Identity(id=1, role=Role.STUDENT), settings).split(".")
    forged = base64.urlsafe_b64encode(json.dumps({"sub": "1", "role": "admin"}).encode()).rstrip(b"=").decode()
    with pytest.raises(InvalidCredential):
        authenticate(f"{header}.{forged}.{signature}", settings)


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "1"},
        {"sub": "1", "role": "superuser"},
        {"sub": "abc", "role": "student"},
    ],
)
def test_authenticate_rejects_malformed_claims(settings, claims):
    token = jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    with pytest.raises(InvalidCredential):
        authenticate(token, settings)


def test_authenticate_rejects_garbage(settings):
    with pytest.raises(InvalidCredential):
        authenticate("not-a-jwt", settings)


def test_require_role():
    teacher = Identity(id=1, role=Role.TEACHER)
    assert require_role(teacher, Role.TEACHER) is teacher
    assert require_role(teacher, Role.TEACHER, Role.ADMIN) is teacher

    with pytest.raises(Forbidden) as exc_info:
        require_role(Identity(id=2, role=Role.STUDENT), Role.TEACHER)
    assert exc_info.value.message == "Access denied. Teachers only."

    with pytest.raises(Forbidden):
        require_role(teacher, Role.ADMIN)


def test_authorize_owner_mutation():
    authorize_owner_mutation(Identity(id=5, role=Role.TEACHER), owner_id=5)
    authorize_owner_mutation(Identity(id=9, role=Role.ADMIN), owner_id=5)

    with pytest.raises(NotOwner):
        authorize_owner_mutation(Identity(id=6, role=Role.TEACHER), owner_id=5)


def test_owner_scope():
    assert owner_scope(Identity(id=4, role=Role.STUDENT)) == 4
    assert owner_scope(Identity(id=4, role=Role.ADMIN)) is None


# ---- HTTP 层 ----

LECTURE = {"title": "Intro", "videoUrl": "https://videos.example.com/intro"}


@pytest.mark.anyio
async def test_protected_route_without_token_is_401(client, repo):
    resp = await client.post("/api/lectures/", json=LECTURE)
    assert resp.status_code == 401
    assert "No token" in resp.json()["message"]
    assert await repo.list_lectures() == []


@pytest.mark.anyio
async def test_token_signed_with_other_secret_is_400(client, repo, settings, make_user):
    teacher, _ = await make_user(Role.TEACHER)
    forged = issue_token(Identity(id=teacher.id, role=Role.TEACHER), replace(settings, jwt_secret="nope"))

    resp = await client.post("/api/lectures/", json=LECTURE, headers={"authorization": forged})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid token"
    assert await repo.list_lectures() == []


@pytest.mark.anyio
async def test_expired_token_is_400(client, settings, make_user):
    teacher, _ = await make_user(Role.TEACHER)
    expired = issue_token(Identity(id=teacher.id, role=Role.TEACHER), replace(settings, jwt_expire_minutes=-1))

    resp = await client.get(f"/api/lectures/teacher/{teacher.id}", headers={"authorization": expired})
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_wrong_role_is_403_without_mutation(client, repo, make_user):
    _, student_headers = await make_user(Role.STUDENT)
    _, teacher_headers = await make_user(Role.TEACHER)

    resp = await client.post("/api/lectures/", json=LECTURE, headers=student_headers)
    assert resp.status_code == 403
    assert await repo.list_lectures() == []

    resp = await client.post(
        "/api/admin/create-teacher",
        json={"name": "T", "email": "new.teacher@example.com", "password": "secret123"},
        headers=teacher_headers,
    )
    assert resp.status_code == 403
    assert await repo.get_user_by_email("new.teacher@example.com") is None


@pytest.mark.anyio
async def test_public_routes_need_no_token(client):
    assert (await client.get("/api/lectures/")).status_code == 200
    assert (await client.get("/api/users/teachers")).status_code == 200
    assert (await client.get("/health")).json() == {"status": "ok"}


@pytest.mark.anyio
async def test_public_path_is_method_specific(client):
    resp = await client.delete("/api/lectures/1")
    assert resp.status_code == 401
