from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from enum import Enum
from functools import wraps

from flask import Flask, g, jsonify, request, session

from ..audit.service import detect_device_type
from ..container import Container
from ..core.context import RequestContext
from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainError,
    InvalidTransitionError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from ..search.model import SearchFilters

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConflictError, 409),
    (UnavailableError, 503),
)


def to_jsonable(value):
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {to_jsonable(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


def error_response(error: DomainError):
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(error, cls):
            return jsonify({"success": False, "error": type(error).__name__, "message": str(error)}), status
    return jsonify({"success": False, "error": type(error).__name__, "message": str(error)}), 400


def _int_arg(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None


def _int_list_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return frozenset(int(x) for x in raw.split(",") if x.strip())
    except ValueError:
        raise ValidationError(f"{name} must be a comma separated list of integers") from None


def _scope_stadium(ctx: RequestContext):
    """Tenant filter for room reads; super admins may omit it."""
    if ctx.is_super_admin:
        return _int_arg("stadium_id")
    return ctx.resolve_stadium(_int_arg("stadium_id"))


def register(app: Flask, container: Container) -> None:
    def context_required(view):
        """Build the request context from the session set by the login layer."""

        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"success": False, "message": "Authentication required"}), 401

            try:
                role = Role(session.get("role"))
            except ValueError:
                return jsonify({"success": False, "message": "Unknown role"}), 403

            user_id = int(session["user_id"])
            room_ids = frozenset()
            if role == Role.HOSTESS:
                room_ids = container.guests_repo.assigned_room_ids(user_id)

            stadium_id = session.get("stadium_id")
            g.request_context = RequestContext(
                user_id=user_id,
                role=role,
                stadium_id=int(stadium_id) if stadium_id is not None else None,
                room_ids=room_ids,
            )
            try:
                return view(*args, **kwargs)
            except DomainError as e:
                return error_response(e)
            except Exception:
                logger.exception("Unhandled error in %s", request.path)
                return jsonify({"success": False, "message": "Internal server error"}), 500

        return wrapper

    @app.route("/api/guests/<int:guest_id>/checkin", methods=["POST"], endpoint="guest_checkin")
    @context_required
    def guest_checkin(guest_id: int):
        data = request.get_json(silent=True) or {}
        result = container.checkin_service.check_in(
            g.request_context,
            guest_id,
            stadium_id=data.get("stadium_id"),
            device_type=detect_device_type(request.headers.get("User-Agent")),
            notes=data.get("notes"),
            companions=data.get("companions", 0),
        )
        return jsonify({"success": True, "data": to_jsonable(result)}), 201

    @app.route("/api/guests/<int:guest_id>/checkout", methods=["POST"], endpoint="guest_checkout")
    @context_required
    def guest_checkout(guest_id: int):
        data = request.get_json(silent=True) or {}
        result = container.checkin_service.check_out(
            g.request_context,
            guest_id,
            stadium_id=data.get("stadium_id"),
            device_type=detect_device_type(request.headers.get("User-Agent")),
            notes=data.get("notes"),
        )
        return jsonify({"success": True, "data": to_jsonable(result)}), 201

    @app.route("/api/guests/<int:guest_id>/status", methods=["GET"], endpoint="guest_status")
    @context_required
    def guest_status(guest_id: int):
        snapshot = container.checkin_service.current_status(
            g.request_context, guest_id, stadium_id=_int_arg("stadium_id")
        )
        return jsonify({"success": True, "data": to_jsonable(snapshot)})

    @app.route("/api/guests/<int:guest_id>/history", methods=["GET"], endpoint="guest_history")
    @context_required
    def guest_history(guest_id: int):
        summary = container.checkin_service.access_summary(
            g.request_context, guest_id, stadium_id=_int_arg("stadium_id")
        )
        return jsonify({"success": True, "data": to_jsonable(summary)})

    @app.route("/api/guests/search", methods=["GET"], endpoint="guest_search")
    @context_required
    def guest_search():
        filters = SearchFilters(
            stadium_id=_int_arg("stadium_id"),
            room_ids=_int_list_arg("room_ids"),
            event_id=_int_arg("event_id"),
            query=request.args.get("q"),
            access_status=request.args.get("access_status"),
            vip_level=request.args.get("vip_level"),
            limit=_int_arg("limit"),
            offset=_int_arg("offset"),
        )
        result = container.search_service.search_for(g.request_context, filters)
        return jsonify({"success": True, "data": to_jsonable(result)})

    @app.route("/api/guests/quick-search", methods=["GET"], endpoint="guest_quick_search")
    @context_required
    def guest_quick_search():
        ctx = g.request_context
        stadium_id = ctx.resolve_stadium(_int_arg("stadium_id"))
        room_ids = ctx.room_ids if ctx.is_hostess else _int_list_arg("room_ids")
        suggestions = container.search_service.quick_suggest(
            request.args.get("q", ""),
            stadium_id,
            room_ids=room_ids,
            limit=_int_arg("limit") or 10,
        )
        return jsonify({"success": True, "data": {"suggestions": to_jsonable(suggestions)}})

    @app.route("/api/rooms/<int:room_id>/stats", methods=["GET"], endpoint="room_stats")
    @context_required
    def room_stats(room_id: int):
        ctx = g.request_context
        if not ctx.can_access_room(room_id):
            raise AuthorizationError("Hostess does not have access to this room")
        stats = container.stats_service.room_stats(room_id, _int_arg("event_id"), stadium_id=_scope_stadium(ctx))
        data = to_jsonable(stats)
        data["check_in_percentage"] = stats.check_in_percentage
        return jsonify({"success": True, "data": data})

    @app.route("/api/rooms/<int:room_id>/occupants", methods=["GET"], endpoint="room_occupants")
    @context_required
    def room_occupants(room_id: int):
        ctx = g.request_context
        if not ctx.can_access_room(room_id):
            raise AuthorizationError("Hostess does not have access to this room")
        occupants = container.presence.room_occupants(room_id, stadium_id=_scope_stadium(ctx))
        return jsonify({"success": True, "data": {"room_id": room_id, "guest_ids": sorted(occupants)}})

    @app.route("/api/access/stats", methods=["GET"], endpoint="access_stats")
    @context_required
    def access_stats():
        ctx = g.request_context
        room_id = _int_arg("room_id")
        if ctx.is_hostess and (room_id is None or not ctx.can_access_room(room_id)):
            raise AuthorizationError("Hostess must name one of the assigned rooms")
        stats = container.stats_service.access_stats(
            ctx.resolve_stadium(_int_arg("stadium_id")),
            room_id=room_id,
            on_date=request.args.get("date") or None,
        )
        return jsonify({"success": True, "data": to_jsonable(stats)})

    @app.route("/api/events/<int:event_id>/stats", methods=["GET"], endpoint="event_stats")
    @context_required
    def event_stats(event_id: int):
        ctx = g.request_context
        if ctx.is_hostess:
            raise AuthorizationError("Event statistics are restricted to administrators")
        stadium_id = _scope_stadium(ctx)
        stats = container.stats_service.event_stats(event_id, stadium_id=stadium_id)
        return jsonify({"success": True, "data": to_jsonable(stats)})
