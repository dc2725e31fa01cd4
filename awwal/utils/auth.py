# awwal/utils/auth.py
from functools import wraps
from flask import request, jsonify, current_app, g
import jwt
from jwt import PyJWKClient
import time
from datetime import datetime

from .. import db
from ..models import User

# Simple in-memory cache for JWKS
jwks_cache = {
    "keys": None,
    "expiry": 0
}


class TokenVerificationError(Exception):
    """Raised when a Google ID token cannot be trusted."""


def get_jwks_client():
    """Fetches and caches the Google JWKS client."""
    global jwks_cache
    if jwks_cache["keys"] and jwks_cache["expiry"] > time.time():
        return jwks_cache["keys"]

    try:
        jwks_url = current_app.config.get('GOOGLE_JWKS_URL')
        if not jwks_url:
            current_app.logger.error("GOOGLE_JWKS_URL is not configured.")
            return None

        jwks_client = PyJWKClient(jwks_url)
        jwks_cache["keys"] = jwks_client
        jwks_cache["expiry"] = time.time() + 3600  # Cache for 1 hour
        current_app.logger.info("Successfully created and cached the Google JWKS client.")
        return jwks_client
    except Exception as e:
        current_app.logger.error(f"Failed to create JWKS client: {e}", exc_info=True)
        return None


def decode_google_id_token(token, jwks_client):
    """
    Verifies a Google ID token's signature, audience and issuer and returns its claims.
    Raises jwt.InvalidTokenError (or a subclass) when the token is not acceptable.
    """
    client_id = current_app.config.get('GOOGLE_CLIENT_ID')
    if not client_id:
        raise TokenVerificationError("GOOGLE_CLIENT_ID is not configured.")

    signing_key = jwks_client.get_signing_key_from_jwt(token)
    payload = jwt.decode(
        token,
        signing_key.key,
        algorithms=["RS256"],
        audience=client_id,
    )
    if payload.get("iss") not in current_app.config.get('GOOGLE_ISSUERS', ()):
        raise jwt.InvalidIssuerError(f"Unexpected token issuer: {payload.get('iss')}")
    return payload


def get_or_create_user_from_claims(payload):
    """
    Finds a user in the local DB from the ID token claims, or creates one.
    Also refreshes profile fields and the last_seen_at timestamp.
    """
    google_id = payload.get("sub")
    if not google_id:
        return None

    email = payload.get("email")
    user = User.query.filter_by(google_user_id=google_id).first()
    if not user and email:
        user = User.query.filter_by(email=email).first()
        if user:
            user.google_user_id = google_id

    if not user:
        user = User(google_user_id=google_id, email=email)
        db.session.add(user)

    user.name = payload.get("name") or user.name
    user.image_url = payload.get("picture") or user.image_url
    user.last_seen_at = datetime.utcnow()

    try:
        db.session.commit()
        current_app.logger.info(f"Authenticated user {user.id} (Google ID {google_id})")
        return user
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"DB error creating/linking user for sub {google_id}: {e}", exc_info=True)
        return None


def _validate_token_and_get_user():
    """Validates the bearer token and sets g.user. Returns (success, (message, status_code))."""
    token = None
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()

    if not token:
        return False, ("Unauthorized", 401)

    jwks_client = get_jwks_client()
    if not jwks_client:
        return False, ("Authentication service is currently unavailable.", 503)

    try:
        payload = decode_google_id_token(token, jwks_client)
        user = get_or_create_user_from_claims(payload)
        if not user:
            return False, ("Could not identify or create user profile.", 404)
        g.user = user
        return True, None
    except jwt.ExpiredSignatureError:
        return False, ("Token has expired!", 401)
    except jwt.InvalidTokenError:
        return False, ("Invalid authentication token!", 401)
    except TokenVerificationError as e:
        current_app.logger.error(f"Token verification is misconfigured: {e}")
        return False, ("Authentication service is currently unavailable.", 503)
    except Exception as e:
        current_app.logger.error(f"Internal server error during token validation: {e}", exc_info=True)
        return False, ("Internal server error during authentication.", 500)


def jwt_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        success, error = _validate_token_and_get_user()
        if not success:
            message, code = error
            return jsonify({"error": message}), code
        return f(*args, **kwargs)
    return decorated_function


def jwt_optional(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user = None
        if request.headers.get("authorization"):
            success, _ = _validate_token_and_get_user()
            if not success:
                g.user = None
        return f(*args, **kwargs)
    return decorated_function
