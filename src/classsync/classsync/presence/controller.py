from __future__ import annotations

import json

from flask import Flask, Response, jsonify, stream_with_context

from ..common.validators import require_int
from ..common.web import current_user, json_api, json_body, login_required
from ..container import Container
from ..core.constants import EVENT_STREAM_HEARTBEAT_SECONDS
from ..core.exceptions import AuthorizationError
from .channel import Connection, ConnectionClosed
from .messages import parse_message


def register(app: Flask, container: Container) -> None:
    channel = container.presence_channel

    def _owned_connection(connection_id: str) -> Connection:
        conn = channel.get_connection(connection_id)
        user = current_user()
        if conn.context.identifier != user.identifier or conn.context.role != user.role:
            raise AuthorizationError("Connection belongs to another user")
        return conn

    @app.route("/api/presence/connect", methods=["POST"], endpoint="presence_connect")
    @login_required
    @json_api
    def presence_connect():
        user = current_user()
        body = json_body()
        context = channel.connect(user.role, user.identifier)
        if body.get("sessionId") is not None:
            channel.observe(context.connection_id, require_int(body["sessionId"], "Session ID"))
        return (
            jsonify(
                {
                    "connectionId": context.connection_id,
                    "role": context.role.value,
                    "identifier": context.identifier,
                    "reconnectDelayMs": channel.reconnect_delay_ms,
                }
            ),
            201,
        )

    @app.route("/api/presence/<connection_id>/messages", methods=["POST"], endpoint="presence_message")
    @login_required
    @json_api
    def presence_message(connection_id: str):
        conn = _owned_connection(connection_id)
        message = parse_message(json_body())
        channel.handle(conn.connection_id, message)
        return jsonify({"success": True, "accepted": message.TYPE}), 202

    @app.route("/api/presence/<connection_id>/events", methods=["GET"], endpoint="presence_events")
    @login_required
    @json_api
    def presence_events(connection_id: str):
        conn = _owned_connection(connection_id)
        heartbeat = float(app.config.get("EVENT_STREAM_HEARTBEAT_SECONDS", EVENT_STREAM_HEARTBEAT_SECONDS))

        def stream():
            conn.stream_opened()
            try:
                # Browsers reconnect after this fixed delay when the stream drops.
                yield f"retry: {channel.reconnect_delay_ms}\n\n"
                while True:
                    try:
                        message = conn.receive(timeout=heartbeat)
                    except ConnectionClosed:
                        return
                    if message is None:
                        yield ": keep-alive\n\n"
                        continue
                    yield f"event: {message['type']}\ndata: {json.dumps(message)}\n\n"
            finally:
                conn.stream_closed()

        return Response(
            stream_with_context(stream()),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.route("/api/presence/<connection_id>", methods=["DELETE"], endpoint="presence_disconnect")
    @login_required
    @json_api
    def presence_disconnect(connection_id: str):
        conn = _owned_connection(connection_id)
        channel.disconnect(conn.connection_id)
        return jsonify({"success": True})
