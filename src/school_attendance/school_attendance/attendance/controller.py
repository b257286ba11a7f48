from __future__ import annotations

from flask import Flask, jsonify, request

from ..core.enums import AppState
from ..container import Container
from .screen import ScreenResult

_STATUS_BY_KIND = {
    None: 200,
    "validation": 400,
    "blocked": 401,
    "session": 401,
    "unavailable": 409,
    "busy": 409,
    "rejected": 409,
}


def register(app: Flask, container: Container) -> None:
    screen = container.screen

    def _respond(result: ScreenResult):
        status = 200 if result.success else _STATUS_BY_KIND.get(result.kind, 502)
        alerts = [a.to_view() for a in screen.pop_alerts()]
        return jsonify({"success": result.success, "alerts": alerts, "view": screen.view()}), status

    @app.before_request
    def _mount_screen():
        if not screen.mounted:
            screen.mount(background=not app.testing)

    def _json_body() -> dict:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}

    def _form_request(update, submit):
        body = _json_body()
        fields = body.get("fields") or {}
        if not isinstance(fields, dict):
            fields = {}
        if fields:
            result = update(**fields)
            if not result.success:
                return _respond(result)
        if body.get("submit", True):
            return _respond(submit())
        return _respond(ScreenResult(True))

    @app.route("/attendance", methods=["GET"], endpoint="attendance_view")
    def attendance_view():
        return _respond(ScreenResult(True))

    @app.route("/attendance/refresh", methods=["POST"], endpoint="attendance_refresh")
    def attendance_refresh():
        return _respond(screen.refresh())

    @app.route("/attendance/app-state", methods=["POST"], endpoint="attendance_app_state")
    def attendance_app_state():
        state = _json_body().get("state") or AppState.ACTIVE.value
        return _respond(screen.handle_app_state(str(state)))

    @app.route("/attendance/location", methods=["POST"], endpoint="attendance_location")
    def attendance_location():
        return _respond(screen.retry_location())

    @app.route("/attendance/check-in", methods=["POST"], endpoint="attendance_check_in")
    def attendance_check_in():
        return _respond(screen.check_in())

    @app.route("/attendance/check-out", methods=["POST"], endpoint="attendance_check_out")
    def attendance_check_out():
        return _respond(screen.check_out())

    @app.route("/attendance/leave/open", methods=["POST"], endpoint="attendance_leave_open")
    def attendance_leave_open():
        screen.open_leave_form()
        return _respond(ScreenResult(True))

    @app.route("/attendance/leave/close", methods=["POST"], endpoint="attendance_leave_close")
    def attendance_leave_close():
        screen.close_leave_form()
        return _respond(ScreenResult(True))

    @app.route("/attendance/leave", methods=["POST"], endpoint="attendance_leave_submit")
    def attendance_leave_submit():
        return _form_request(screen.update_leave_form, screen.submit_leave)

    @app.route("/attendance/regularization/open", methods=["POST"], endpoint="attendance_regularization_open")
    def attendance_regularization_open():
        screen.open_regularization_form()
        return _respond(ScreenResult(True))

    @app.route("/attendance/regularization/close", methods=["POST"], endpoint="attendance_regularization_close")
    def attendance_regularization_close():
        screen.close_regularization_form()
        return _respond(ScreenResult(True))

    @app.route("/attendance/regularization", methods=["POST"], endpoint="attendance_regularization_submit")
    def attendance_regularization_submit():
        return _form_request(screen.update_regularization_form, screen.submit_regularization)
