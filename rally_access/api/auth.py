"""
Login sessions and the bearer-token guard for the Flask API.

A login produces a signed token plus a Session holding the caller and the
PermissionEvaluator built for them. Protected views read the evaluator from
``request.evaluator`` instead of rebuilding it per request.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import wraps
from typing import Dict, Optional, Tuple

import jwt
from flask import request, jsonify

from rally_access.config import SECRET_KEY, TOKEN_EXPIRY_HOURS
from rally_access.models import Caller
from rally_access.permissions import PermissionEvaluator

TOKEN_ALGORITHM = "HS256"


@dataclass
class Session:
    caller: Caller
    evaluator: PermissionEvaluator
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_activity: datetime = field(default_factory=datetime.utcnow)

    @property
    def expires_at(self) -> datetime:
        return self.last_activity + timedelta(hours=TOKEN_EXPIRY_HOURS)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) > self.expires_at

    def touch(self) -> None:
        self.last_activity = datetime.utcnow()


# token -> Session; process-local, cleared on logout or inactivity
sessions: Dict[str, Session] = {}


def open_session(caller: Caller, evaluator: PermissionEvaluator) -> Tuple[str, Session]:
    """Sign a token for *caller* and register its session."""
    now = datetime.utcnow()
    token = jwt.encode(
        {
            "sub": caller.user_id,
            "role": caller.role.value,
            "iat": now,
            "exp": now + timedelta(hours=TOKEN_EXPIRY_HOURS),
        },
        SECRET_KEY,
        algorithm=TOKEN_ALGORITHM,
    )
    session = Session(caller=caller, evaluator=evaluator, created_at=now, last_activity=now)
    sessions[token] = session
    return token, session


def close_session(token: str) -> bool:
    return sessions.pop(token, None) is not None


def decode_token(token: str) -> Optional[dict]:
    """Return the token's claims, or None if it is forged or past ``exp``."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def _request_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.args.get("token") or None


def token_required(view):
    """Resolve the caller's session and expose its evaluator on the request."""
    @wraps(view)
    def guarded(*args, **kwargs):
        token = _request_token()
        if not token:
            return jsonify({"error": "Authentication token is missing"}), 401

        claims = decode_token(token)
        session = sessions.get(token)
        if claims is None or session is None or claims.get("sub") != session.caller.user_id:
            return jsonify({"error": "Invalid or expired session. Please login again."}), 401
        if session.is_expired():
            close_session(token)
            return jsonify({"error": "Invalid or expired session. Please login again."}), 401

        session.touch()
        request.token = token
        request.session = session
        request.evaluator = session.evaluator
        return view(*args, **kwargs)

    return guarded


def cleanup_expired_sessions() -> int:
    """Drop sessions idle past TOKEN_EXPIRY_HOURS; return how many went."""
    now = datetime.utcnow()
    stale = [tok for tok, s in sessions.items() if s.is_expired(now)]
    for tok in stale:
        close_session(tok)
    if stale:
        print(f"[cleanup] Removed {len(stale)} expired sessions")
    return len(stale)
