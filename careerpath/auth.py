"""Sign-in, sign-up and session handling on top of the identity provider.

Password checks and email delivery happen at the provider through its
Identity Toolkit REST API; session cookies are minted and verified with the
Admin SDK. The local ``users`` table only mirrors profile fields.
"""
import logging
import re
from datetime import timedelta
from functools import wraps

import requests
from firebase_admin import auth as fb_auth
from firebase_admin import exceptions as fb_exceptions
from flask import current_app, g, jsonify, redirect, request, url_for

from careerpath.models import db, User

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{endpoint}?key={key}"
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ERROR_MESSAGES = {
    "EMAIL_EXISTS": "An account with this email already exists.",
    "INVALID_EMAIL": "The email address is not valid.",
    "WEAK_PASSWORD": "Password is too weak. Please choose a stronger password.",
    "EMAIL_NOT_FOUND": "Invalid email or password.",
    "INVALID_PASSWORD": "Invalid email or password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "USER_DISABLED": "This account has been disabled.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later.",
}
WRONG_CREDENTIALS = {"EMAIL_NOT_FOUND", "INVALID_PASSWORD", "INVALID_LOGIN_CREDENTIALS"}


class AuthError(Exception):
    def __init__(self, code, message=None):
        super().__init__(message or ERROR_MESSAGES.get(code, code))
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, f"There was an error: {code}")


class IdentityClient:
    """Thin client for the provider's REST endpoints and Admin SDK calls."""

    def __init__(self, api_key, http=None, timeout=10):
        self.api_key = api_key
        self.http = http or requests.Session()
        self.timeout = timeout

    def _post(self, endpoint, payload):
        if not self.api_key:
            raise AuthError("CONFIGURATION", "Authentication is not configured.")
        url = IDENTITY_URL.format(endpoint=endpoint, key=self.api_key)
        try:
            resp = self.http.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Identity provider unreachable: %s", e)
            raise AuthError("NETWORK", "Could not reach the authentication service.") from e
        try:
            data = resp.json() if resp.content else {}
        except ValueError as e:
            logger.error("Identity provider returned a non-JSON %s response", resp.status_code)
            raise AuthError("UNKNOWN", "The authentication service returned an unexpected response.") from e
        if resp.status_code != 200:
            # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
            raw = (data.get("error") or {}).get("message", "UNKNOWN")
            raise AuthError(raw.split(" ")[0])
        return data

    def sign_up(self, email, password):
        return self._post("signUp", {"email": email, "password": password, "returnSecureToken": True})

    def sign_in_with_password(self, email, password):
        return self._post("signInWithPassword", {"email": email, "password": password, "returnSecureToken": True})

    def send_email_verification(self, id_token):
        return self._post("sendOobCode", {"requestType": "VERIFY_EMAIL", "idToken": id_token})

    def send_password_reset(self, email):
        return self._post("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    def verify_id_token(self, id_token):
        return fb_auth.verify_id_token(id_token)

    def create_session_cookie(self, id_token, expires_in):
        return fb_auth.create_session_cookie(id_token, expires_in=expires_in)

    def verify_session_cookie(self, cookie):
        return fb_auth.verify_session_cookie(cookie, check_revoked=True)

    def revoke_refresh_tokens(self, uid):
        fb_auth.revoke_refresh_tokens(uid)


def _identity():
    return current_app.extensions["identity"]


# --- Form validation ---------------------------------------------------
def validate_auth_form(form_type, name, email, password):
    errors = {}
    if form_type == "sign-up" and len((name or "").strip()) < 3:
        errors["name"] = "Name must be at least 3 characters."
    if not EMAIL_RE.match(email or ""):
        errors["email"] = "Please enter a valid email address."
    if form_type != "reset" and len(password or "") < 6:
        errors["password"] = "Password must be at least 6 characters."
    return errors


# --- Flows -------------------------------------------------------------
def sign_up(name, email, password):
    if User.query.filter_by(email=email).first():
        return {"success": False, "message": "User already exists. Please sign in instead."}

    identity = _identity()
    try:
        account = identity.sign_up(email, password)
    except AuthError as e:
        logger.info("Sign-up rejected for %s: %s", email, e.code)
        return {"success": False, "message": e.message}

    try:
        identity.send_email_verification(account["idToken"])
    except AuthError as e:
        logger.warning("Could not send verification email to %s: %s", email, e.code)

    uid = account["localId"]
    db.session.add(User(uid=uid, email=email, name=name.strip()))
    db.session.commit()
    logger.info("Created user %s", uid)
    return {
        "success": True,
        "message": "Account created! A verification email has been sent. Please check your inbox.",
    }


def sign_in(email, password):
    identity = _identity()
    try:
        account = identity.sign_in_with_password(email, password)
    except AuthError as e:
        if e.code in WRONG_CREDENTIALS:
            return {"success": False, "code": "Wrong user credentials", "message": "The entered credentials are wrong."}
        return {"success": False, "code": e.code, "message": e.message}

    id_token = account["idToken"]
    try:
        claims = identity.verify_id_token(id_token)
    except (fb_exceptions.FirebaseError, ValueError):
        logger.exception("Provider returned an unverifiable token for %s", email)
        return {"success": False, "code": "Session", "message": "Failed to log into account. Please try again."}
    if not claims.get("email_verified"):
        return {
            "success": False,
            "code": "Email not verified",
            "message": "Your email has not been verified. Please verify your email to sign in.",
        }

    _get_or_create_user(claims)
    days = current_app.config.get("SESSION_COOKIE_DAYS", 7)
    try:
        cookie = identity.create_session_cookie(id_token, expires_in=timedelta(days=days))
    except fb_exceptions.FirebaseError:
        logger.exception("Failed to create session for %s", email)
        return {"success": False, "code": "Session", "message": "Failed to log into account. Please try again."}
    return {"success": True, "message": "Signed in successfully.", "session": cookie, "max_age": days * 86400}


def send_password_reset(email):
    try:
        _identity().send_password_reset(email)
    except AuthError as e:
        if e.code == "EMAIL_NOT_FOUND":
            return {"success": False, "message": "No user found with that email address."}
        return {"success": False, "message": f"Failed to send reset email: {e.message}"}
    return {"success": True, "message": "Password reset link sent! Check your inbox."}


def sign_out(cookie):
    if not cookie:
        return
    identity = _identity()
    try:
        claims = identity.verify_session_cookie(cookie)
        identity.revoke_refresh_tokens(claims["sub"])
    except (fb_auth.InvalidSessionCookieError, fb_exceptions.FirebaseError, ValueError) as e:
        logger.warning("Could not revoke refresh token during logout, likely already invalid: %s", e)


def verify_session(cookie):
    if not cookie:
        return None
    try:
        return _identity().verify_session_cookie(cookie)
    except (fb_auth.InvalidSessionCookieError, fb_exceptions.FirebaseError, ValueError):
        return None


def _get_or_create_user(claims):
    uid = claims.get("uid") or claims.get("sub")
    user = User.query.filter_by(uid=uid).first()
    if user:
        return user
    email = claims.get("email", "")
    user = User.query.filter_by(email=email).first() if email else None
    if user:
        # The provider account was recreated under a new uid for a known email
        logger.info("Relinking user %s from uid %s to %s", email, user.uid, uid)
        user.uid = uid
    else:
        user = User(uid=uid, email=email, name=claims.get("name"))
        db.session.add(user)
    db.session.commit()
    return user


def get_current_user():
    if "current_user" not in g:
        claims = verify_session(request.cookies.get(SESSION_COOKIE))
        g.current_user = _get_or_create_user(claims) if claims else None
    return g.current_user


def is_authenticated():
    return get_current_user() is not None


def update_user_details(uid, name, profile_image_url):
    user = User.query.filter_by(uid=uid).first()
    if not user:
        return {"success": False, "message": "User not found."}
    if name:
        user.name = name.strip()
    user.profile_image = profile_image_url
    db.session.commit()
    return {"success": True, "message": "User details updated successfully."}


# --- Decorators --------------------------------------------------------
def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not is_authenticated():
            return redirect(url_for("sign_in_page", next=request.path))
        return fn(*args, **kwargs)
    return wrapper


def api_login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not is_authenticated():
            return jsonify({"error": "unauthorized"}), 401
        return fn(*args, **kwargs)
    return wrapper
