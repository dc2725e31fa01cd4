# awwal/routes/auth_routes.py

import secrets
from urllib.parse import urlencode

import jwt
import requests
from flask import current_app, g, jsonify, redirect, request, session
from flask_smorest import Blueprint

from ..schemas import SessionSchema
from ..utils.auth import (
    decode_google_id_token,
    get_jwks_client,
    get_or_create_user_from_claims,
    jwt_optional,
    TokenVerificationError,
)

auth_bp = Blueprint(
    'Auth',
    __name__,
    url_prefix='/auth',
    description="Google sign-in. Clients authenticate API calls with the returned Google ID token."
)

# Shown to users when sign-in fails, keyed by error type
AUTH_ERROR_MESSAGES = {
    "Configuration": "Terjadi kesalahan konfigurasi pada server.",
    "AccessDenied": "Akses ditolak. Anda tidak memiliki izin untuk masuk.",
    "Verification": "Token verifikasi tidak valid atau sudah kedaluwarsa.",
    "Default": "Terjadi kesalahan yang tidak terduga. Silakan coba lagi.",
}

AUTH_ERROR_STATUS = {
    "Configuration": 500,
    "AccessDenied": 403,
    "Verification": 400,
    "Default": 500,
}


def auth_error(error_type):
    error_type = error_type if error_type in AUTH_ERROR_MESSAGES else "Default"
    return jsonify({"error": error_type, "message": AUTH_ERROR_MESSAGES[error_type]}), AUTH_ERROR_STATUS[error_type]


@auth_bp.route('/signin')
def signin():
    """
    Redirect to Google's consent screen.
    """
    client_id = current_app.config.get('GOOGLE_CLIENT_ID')
    if not client_id:
        current_app.logger.error("Sign-in attempted but GOOGLE_CLIENT_ID is not configured.")
        return auth_error("Configuration")

    state = secrets.token_urlsafe(24)
    session['oauth_state'] = state
    params = {
        "client_id": client_id,
        "redirect_uri": current_app.config['OAUTH_REDIRECT_URI'],
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }
    return redirect(f"{current_app.config['GOOGLE_AUTH_URL']}?{urlencode(params)}")


@auth_bp.route('/callback')
def callback():
    """
    OAuth redirect target. Exchanges the authorization code for a Google ID token
    and returns it with the local user profile. The ID token is then sent as a
    Bearer token on API requests.
    """
    if request.args.get('error'):
        error = request.args['error']
        current_app.logger.info(f"Google sign-in returned error: {error}")
        return auth_error("AccessDenied" if error == "access_denied" else "Default")

    expected_state = session.pop('oauth_state', None)
    code = request.args.get('code')
    if not code or not expected_state or request.args.get('state') != expected_state:
        current_app.logger.warning("OAuth callback with missing code or mismatched state.")
        return auth_error("Verification")

    client_id = current_app.config.get('GOOGLE_CLIENT_ID')
    client_secret = current_app.config.get('GOOGLE_CLIENT_SECRET')
    if not client_id or not client_secret:
        current_app.logger.error("OAuth callback reached but Google client credentials are not configured.")
        return auth_error("Configuration")

    try:
        response = requests.post(
            current_app.config['GOOGLE_TOKEN_URL'],
            data={
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": current_app.config['OAUTH_REDIRECT_URI'],
                "grant_type": "authorization_code",
            },
            timeout=10,
        )
        response.raise_for_status()
        id_token = response.json().get("id_token")
    except requests.exceptions.RequestException as e:
        current_app.logger.error(f"Google token exchange failed: {e}", exc_info=True)
        return auth_error("Verification")
    except ValueError as e:
        current_app.logger.error(f"Invalid token response from Google: {e}")
        return auth_error("Default")

    if not id_token:
        current_app.logger.error("Google token response did not include an id_token.")
        return auth_error("Verification")

    jwks_client = get_jwks_client()
    if not jwks_client:
        return auth_error("Configuration")

    try:
        payload = decode_google_id_token(id_token, jwks_client)
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Google returned an ID token that failed verification: {e}")
        return auth_error("Verification")
    except TokenVerificationError:
        return auth_error("Configuration")

    user = get_or_create_user_from_claims(payload)
    if not user:
        return auth_error("Default")

    return jsonify({"idToken": id_token, "expiresAt": payload.get("exp"), "user": user.to_dict()})


@auth_bp.route('/error')
def error():
    """
    Human readable message for a sign-in error type (`?error=AccessDenied`).
    """
    error_type = request.args.get('error', 'Default')
    if error_type not in AUTH_ERROR_MESSAGES:
        error_type = "Default"
    return jsonify({"error": error_type, "message": AUTH_ERROR_MESSAGES[error_type]})


@auth_bp.route('/session')
@jwt_optional
@auth_bp.response(200, SessionSchema)
def current_session():
    """
    The signed-in user for the supplied Bearer token, or `null` for anonymous callers.
    """
    return {"user": g.user.to_dict() if g.user else None}
