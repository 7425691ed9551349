import asyncio
import time

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt
from starlette.requests import Request

from quoteflow.auth import get_current_user, session_cache_key
from quoteflow.config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET


def make_token(sub: str, email: str) -> str:
    claims = {
        "sub": sub,
        "email": email,
        "aud": SUPABASE_JWT_AUDIENCE,
        "exp": int(time.time()) + 600,
    }
    return jwt.encode(claims, SUPABASE_JWT_SECRET, algorithm="HS256")


def authenticate(db, kv, token: str):
    request = Request({"type": "http", "headers": []})
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
    return asyncio.run(get_current_user(request, credentials, db, kv))


def test_cache_key_covers_whole_token():
    token = make_token("uid-a", "a@example.com")
    other = make_token("uid-b", "b@example.com")
    assert token[:36] == other[:36]
    assert session_cache_key(token) != session_cache_key(other)


def test_valid_token_creates_user_and_caches_session(db, kv):
    token = make_token("uid-alice", "alice@example.com")
    user = authenticate(db, kv, token)
    assert user.email == "alice@example.com"
    assert kv.get(session_cache_key(token)) == {"user_id": user.id}

    assert authenticate(db, kv, token).id == user.id


def test_forged_token_rejected_after_login(db, kv):
    token = make_token("uid-alice", "alice@example.com")
    authenticate(db, kv, token)

    forged = token[:32] + "AAAA.forged.signature"
    with pytest.raises(HTTPException) as exc:
        authenticate(db, kv, forged)
    assert exc.value.status_code == 401


def test_second_user_gets_own_identity(db, kv):
    alice = authenticate(db, kv, make_token("uid-alice", "alice@example.com"))
    bob = authenticate(db, kv, make_token("uid-bob", "bob@example.com"))
    assert alice.id != bob.id
    assert bob.email == "bob@example.com"
