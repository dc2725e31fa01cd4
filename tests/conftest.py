# tests/conftest.py

import time
from unittest.mock import MagicMock

import jwt
import pytest

from awwal import create_app, db as _db
from awwal.models import User

# Use a simple secret key for HS256 algorithm in tests
TEST_SECRET_KEY = "your-super-secret-and-long-enough-test-key-for-hs256"
TEST_CLIENT_ID = "test-client-id.apps.googleusercontent.com"

SAMPLE_TIMINGS = {
    "Fajr": "04:35", "Sunrise": "05:50", "Dhuhr": "11:55",
    "Asr": "15:15", "Sunset": "17:58", "Maghrib": "18:00",
    "Isha": "19:10", "Imsak": "04:25", "Midnight": "23:55",
}


def aladhan_day(timings=None, timezone="Asia/Jakarta", gregorian="10-03-2025"):
    """A `data` block shaped like AlAdhan's /timings response."""
    return {
        "timings": dict(timings or SAMPLE_TIMINGS),
        "date": {
            "gregorian": {"date": gregorian},
            "hijri": {"day": "10", "month": {"en": "Ramaḍān"}, "year": "1446"},
        },
        "meta": {"timezone": timezone},
    }


@pytest.fixture(scope='session')
def app():
    """Session-wide application for testing."""
    app = create_app('testing')
    return app


@pytest.fixture(scope='function')
def db(app):
    """Function-level database setup. Creates and tears down tables for each test function."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def test_client(app, db):
    """A test client for the app, ensuring the DB is initialized."""
    return app.test_client()


@pytest.fixture(autouse=True)
def mock_auth_dependencies(mocker):
    """
    Mocks the Google JWKS lookup and makes jwt.decode verify HS256 test tokens.
    This applies to all tests automatically.
    """
    mock_jwks_client_instance = MagicMock()
    mock_signing_key = MagicMock()
    mock_signing_key.key = TEST_SECRET_KEY
    mock_jwks_client_instance.get_signing_key_from_jwt.return_value = mock_signing_key
    mocker.patch('awwal.utils.auth.get_jwks_client', return_value=mock_jwks_client_instance)
    mocker.patch('awwal.routes.auth_routes.get_jwks_client', return_value=mock_jwks_client_instance)

    original_jwt_decode = jwt.decode

    def mock_decode_logic(token, key, algorithms, audience=None, issuer=None):
        # Bypass the RS256 key but still validate audience and expiry
        return original_jwt_decode(token, TEST_SECRET_KEY, algorithms=["HS256"], audience=audience)

    mocker.patch('jwt.decode', side_effect=mock_decode_logic)


def create_test_token(sub, email, expires_in=3600, issuer="https://accounts.google.com", audience=TEST_CLIENT_ID, name=None):
    """Helper to create a Google-like ID token signed with HS256."""
    payload = {
        'sub': sub,
        'email': email,
        'iss': issuer,
        'aud': audience,
        'exp': int(time.time()) + expires_in,
        'iat': int(time.time()),
    }
    if name:
        payload['name'] = name
    return jwt.encode(payload, TEST_SECRET_KEY, algorithm="HS256")


def auth_header(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def user_in_db(db):
    """A signed-in user that already exists locally."""
    user = User(google_user_id='google-user-1', email='aisyah@example.com', name='Aisyah')
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture(scope='function')
def other_user_in_db(db):
    user = User(google_user_id='google-user-2', email='budi@example.com', name='Budi')
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture(scope='function')
def auth_headers(user_in_db):
    return auth_header(create_test_token(user_in_db.google_user_id, user_in_db.email))


@pytest.fixture(scope='function')
def other_auth_headers(other_user_in_db):
    return auth_header(create_test_token(other_user_in_db.google_user_id, other_user_in_db.email))
