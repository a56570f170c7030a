"""Tests for bearer token decoding."""

import uuid
from datetime import timedelta

from jose import jwt

from gatekeeper.core.config import get_settings
from gatekeeper.core.security import create_access_token, decode_token


class TestDecodeToken:

    def test_round_trip(self):
        user_id = uuid.uuid4()
        assert decode_token(create_access_token(user_id)) == user_id

    def test_expired(self):
        token = create_access_token(uuid.uuid4(), expires_delta=timedelta(seconds=-1))
        assert decode_token(token) is None

    def test_garbage(self):
        assert decode_token("not-a-token") is None

    def test_wrong_secret(self):
        token = jwt.encode({"sub": str(uuid.uuid4())}, "some-other-secret", algorithm="HS256")
        assert decode_token(token) is None

    def test_missing_subject(self):
        settings = get_settings()
        token = jwt.encode({"type": "access"}, settings.secret_key, algorithm=settings.algorithm)
        assert decode_token(token) is None

    def test_subject_not_uuid(self):
        settings = get_settings()
        token = jwt.encode({"sub": "alice"}, settings.secret_key, algorithm=settings.algorithm)
        assert decode_token(token) is None
