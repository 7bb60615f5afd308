"""
Flask route handlers for the REST API.
"""

import sys
import traceback
import uuid

from flask import request, jsonify
from sqlalchemy import text

from rally_access.config import MAX_RESULTS_RETURN
from rally_access.database import delete_kid, fetch_kid, fetch_kids, insert_kid, save_kid
from rally_access.fields import iter_leaf_paths
from rally_access.models import EvaluationContext
from rally_access.rbac import load_caller, build_evaluator, visible_kids
from rally_access.api.auth import (
    sessions,
    open_session,
    close_session,
    token_required,
    cleanup_expired_sessions,
)


def _user_payload(caller):
    return {
        "id": caller.user_id,
        "display_name": caller.display_name,
        "role": caller.role.value,
        "instructor_id": caller.instructor_id,
    }


def _server_error(message, e):
    print(f"[ERROR] {message}: {e}", file=sys.stderr)
    traceback.print_exc()
    return jsonify({"success": False, "error": message}), 500


def _denied():
    return jsonify({"success": False, "error": "Permission denied"}), 403


def _not_found():
    return jsonify({"success": False, "error": "Kid not found"}), 404


def register_routes(app, engine):
    """Register all API routes on the Flask *app*."""

    def load_visible_kid(kid_id):
        """(kid, None) when the caller may see it, else (None, error response)."""
        try:
            kid = fetch_kid(engine, kid_id)
        except Exception as e:
            return None, _server_error("Failed to load kid", e)
        if kid is None:
            return None, _not_found()
        if not request.evaluator.can_view_kid(kid):
            return None, _denied()
        return kid, None

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "Rally Access API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "auth": "/api/auth/login",
                "kids": "/api/kids",
                "profile": "/api/user/profile",
                "logout": "/api/auth/logout",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        checks = {"database": False}
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            print(f"[health] Database check failed: {e}", file=sys.stderr)

        all_healthy = all(checks.values())
        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
            "active_sessions": len(sessions),
        }), 200 if all_healthy else 503

    # ── Auth ─────────────────────────────────────────────────────────

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        data = request.get_json(silent=True) or {}
        api_key = str(data.get("api_key", "")).strip()
        if not api_key:
            return jsonify({"error": "api_key is required"}), 400

        cleanup_expired_sessions()

        try:
            caller = load_caller(engine, api_key)
        except ValueError as e:
            return jsonify({"error": f"Authentication failed: {str(e)}"}), 401
        except Exception as e:
            return _server_error("Internal server error during login", e)

        evaluator = build_evaluator(caller)
        token, session = open_session(caller, evaluator)
        print(f"[auth] Logged in: {caller.display_name} (role={caller.role.value})")

        return jsonify({
            "success": True,
            "token": token,
            "user": _user_payload(caller),
            "capabilities": evaluator.capabilities.as_dict(),
            "expires_at": session.expires_at.isoformat(),
        }), 200

    @app.route("/api/auth/logout", methods=["POST"])
    @token_required
    def logout():
        close_session(request.token)
        return jsonify({"success": True, "message": "Logged out successfully"}), 200

    # ── Kids ─────────────────────────────────────────────────────────

    @app.route("/api/kids", methods=["GET"])
    @token_required
    def list_kids():
        if not request.evaluator.can_view:
            return _denied()

        try:
            kids = visible_kids(request.evaluator, fetch_kids(engine))
        except Exception as e:
            return _server_error("Failed to load kids", e)

        return jsonify({
            "success": True,
            "count": len(kids),
            "kids": kids[:MAX_RESULTS_RETURN],
            "truncated": len(kids) > MAX_RESULTS_RETURN,
        }), 200

    @app.route("/api/kids", methods=["POST"])
    @token_required
    def create_kid():
        if not request.evaluator.can_create:
            return _denied()
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        data = request.get_json(silent=True) or {}
        document = data.get("kid")
        if not isinstance(document, dict) or not document:
            return jsonify({"error": "kid must be a non-empty object"}), 400
        kid_id = str(document.get("id") or uuid.uuid4().hex)

        try:
            if fetch_kid(engine, kid_id) is not None:
                return jsonify({"success": False, "error": f"Kid already exists: {kid_id}"}), 409
            insert_kid(engine, kid_id, document)
            kid = fetch_kid(engine, kid_id)
        except Exception as e:
            return _server_error("Failed to create kid", e)

        print(f"[kids] {request.session.caller.user_id} created kid {kid_id}")
        return jsonify({"success": True, "id": kid_id,
                        "kid": request.evaluator.filter_data(kid)}), 201

    @app.route("/api/kids/<kid_id>", methods=["GET"])
    @token_required
    def get_kid(kid_id):
        kid, error = load_visible_kid(kid_id)
        if error:
            return error
        return jsonify({"success": True, "kid": request.evaluator.filter_data(kid)}), 200

    @app.route("/api/kids/<kid_id>/permissions", methods=["GET"])
    @token_required
    def get_kid_permissions(kid_id):
        kid, error = load_visible_kid(kid_id)
        if error:
            return error

        raw = request.args.get("fields", "")
        fields = [f.strip() for f in raw.split(",") if f.strip()]
        if not fields:
            fields = [str(p) for p in iter_leaf_paths(kid)]

        evaluator = request.evaluator
        ctx = EvaluationContext.for_kid(kid)
        return jsonify({
            "success": True,
            "kid_id": kid_id,
            "fields": {
                f: {
                    "view": evaluator.can_view_field(f, ctx),
                    "edit": evaluator.can_edit_field(f, ctx),
                }
                for f in fields
            },
        }), 200

    @app.route("/api/kids/<kid_id>", methods=["PATCH"])
    @token_required
    def update_kid(kid_id):
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        data = request.get_json(silent=True) or {}
        updates = data.get("updates")
        if not isinstance(updates, dict) or not updates:
            return jsonify({"error": "updates must be a non-empty object"}), 400

        evaluator = request.evaluator
        try:
            kid = fetch_kid(engine, kid_id)
        except Exception as e:
            return _server_error("Failed to load kid", e)
        if kid is None:
            return _not_found()

        updated, rejected = evaluator.apply_edits(updates, EvaluationContext.for_kid(kid))
        if rejected:
            return jsonify({
                "success": False,
                "error": "Permission denied",
                "rejected_fields": rejected,
            }), 403

        try:
            save_kid(engine, kid_id, updated)
        except Exception as e:
            return _server_error("Failed to update kid", e)

        return jsonify({"success": True, "kid": evaluator.filter_data(updated)}), 200

    @app.route("/api/kids/<kid_id>", methods=["DELETE"])
    @token_required
    def remove_kid(kid_id):
        if not request.evaluator.can_delete:
            return _denied()
        _kid, error = load_visible_kid(kid_id)
        if error:
            return error

        try:
            delete_kid(engine, kid_id)
        except Exception as e:
            return _server_error("Failed to delete kid", e)

        print(f"[kids] {request.session.caller.user_id} deleted kid {kid_id}")
        return jsonify({"success": True, "id": kid_id}), 200

    # ── Profile ──────────────────────────────────────────────────────

    @app.route("/api/user/profile", methods=["GET"])
    @token_required
    def get_profile():
        session = request.session
        return jsonify({
            "success": True,
            "user": _user_payload(session.caller),
            "capabilities": request.evaluator.capabilities.as_dict(),
            "session": {
                "created_at": session.created_at.isoformat(),
                "last_activity": session.last_activity.isoformat(),
                "expires_at": session.expires_at.isoformat(),
            },
        }), 200

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(500)
    def internal_error(e):
        return jsonify({"error": "Internal server error", "message": str(e)}), 500
