"""Account and session API routes."""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from config import settings

from ..schemas import LoginRequest, SignupRequest
from ..services import auth_service
from ..services.api_helpers import api_success, current_user, get_store, parse_json_body

bp = Blueprint("auth", __name__)


def _set_session_cookie(resp, session: dict):
    resp.set_cookie(
        settings.auth.cookie_name,
        session["token"],
        max_age=settings.auth.session_ttl,
        path="/",
        httponly=True,
        secure=settings.auth.cookie_secure,
        samesite=settings.auth.cookie_samesite,
    )
    return resp


def _clear_session_cookie(resp):
    resp.delete_cookie(
        settings.auth.cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth.cookie_secure,
        samesite=settings.auth.cookie_samesite,
    )
    return resp


def _user_payload(user: dict) -> dict:
    return {"email": user["email"], "nickname": user["nickname"]}


@bp.route("/api/auth/signup", methods=["POST"])
def signup():
    """Create an account and log in
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - email
            - password
            - nickname
          properties:
            email:
              type: string
              format: email
            password:
              type: string
              minLength: 6
            nickname:
              type: string
    responses:
      200:
        description: Account created; session cookie set
      400:
        description: Missing fields, short password, invalid or duplicate email
    """
    req = parse_json_body(SignupRequest)
    user, session = auth_service.signup(get_store(), req.email, req.password, req.nickname)
    return _set_session_cookie(api_success(user=_user_payload(user)), session)


@bp.route("/api/auth/login", methods=["POST"])
def login():
    """Log in with email and password
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - email
            - password
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Logged in; session cookie set
      400:
        description: Missing fields
      401:
        description: Invalid credentials
    """
    req = parse_json_body(LoginRequest)
    user, session = auth_service.login(get_store(), req.email, req.password)
    return _set_session_cookie(api_success(user=_user_payload(user)), session)


@bp.route("/api/auth/logout", methods=["POST"])
def logout():
    """Log out and clear the session cookie
    ---
    tags:
      - Auth
    responses:
      200:
        description: Logged out (also when no session existed)
    """
    auth_service.logout(get_store(), getattr(g, "session_token", None))
    return _clear_session_cookie(api_success())


@bp.route("/api/me", methods=["GET"])
def me():
    """Current user
    ---
    tags:
      - Auth
    responses:
      200:
        description: Authentication state
        schema:
          type: object
          properties:
            authenticated:
              type: boolean
            user:
              type: object
    """
    user = current_user()
    return jsonify({"authenticated": user is not None, "user": user})
