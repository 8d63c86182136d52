"""HTTP server for the chat pipeline API."""

import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from aiohttp import web

from huddle.application.services.analysis_service import AnalysisService
from huddle.application.services.message_service import MessageService
from huddle.application.services.persona_service import PersonaService
from huddle.application.services.rag_service import RagService
from huddle.config.models import ServerConfig
from huddle.domain.errors import (
    AuthorizationError,
    HuddleError,
    InvalidRequestError,
    NotFoundError,
    UpstreamError,
)
from huddle.presentation.http.realtime import RealtimeGateway

USER_ID_HEADER = "X-User-Id"

# Paths served without an authenticated user
PUBLIC_PATHS = frozenset({"/healthz"})

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _persona_payload(persona: Any) -> dict[str, Any]:
    return persona.model_dump(mode="json")


class HTTPServer:
    """HTTP server for the RAG, analysis, message and realtime endpoints.

    This server provides endpoints for:
    - GET /healthz: Liveness check
    - POST /api/v1/rag/ask, GET /api/v1/rag/stats
    - POST /api/v1/analysis/messages/{message_id}: SSE stream or cached JSON
    - POST /api/v1/messages, PATCH|DELETE /api/v1/messages/{message_id}
    - GET|POST /api/v1/reactions/{message_id}
    - POST /api/v1/persona/generate, GET /api/v1/persona/{user_id},
      POST /api/v1/persona/{user_id}/chat
    - GET /api/v1/realtime: WebSocket

    Authentication happens upstream; the requesting user arrives in the
    ``X-User-Id`` header.

    Args:
        config: Server configuration containing host and port.
        rag: Question answering service.
        analysis: Message analysis service.
        messages: Message and reaction service.
        personas: Persona simulator service.
        gateway: WebSocket gateway.
        logger: Structured logger for logging.
    """

    def __init__(
        self,
        config: ServerConfig,
        rag: RagService,
        analysis: AnalysisService,
        messages: MessageService,
        personas: PersonaService,
        gateway: RealtimeGateway,
        logger: structlog.BoundLogger,
    ) -> None:
        self.config = config
        self._rag = rag
        self._analysis = analysis
        self._messages = messages
        self._personas = personas
        self._gateway = gateway
        self._logger = logger
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the server is running."""
        return self._site is not None

    @property
    def actual_port(self) -> int:
        """Return the actual port the server is listening on.

        Raises:
            RuntimeError: If the server is not running.
        """
        if self._site is None:
            raise RuntimeError("Server is not running")
        server = getattr(self._site, "_server", None)
        if server is None:
            raise RuntimeError("Server is not running")
        sockets = getattr(server, "sockets", None)
        if sockets:
            return sockets[0].getsockname()[1]
        raise RuntimeError("No sockets available")

    def create_app(self) -> web.Application:
        """Create and return the aiohttp Application.

        This method is exposed for testing purposes.

        Returns:
            Configured aiohttp Application.
        """
        app = web.Application(middlewares=[self._error_middleware, self._auth_middleware])
        app.router.add_get("/healthz", self._handle_health_check)
        app.router.add_post("/api/v1/rag/ask", self._handle_ask)
        app.router.add_get("/api/v1/rag/stats", self._handle_stats)
        app.router.add_post(
            "/api/v1/analysis/messages/{message_id}", self._handle_analyze
        )
        app.router.add_post("/api/v1/messages", self._handle_post_message)
        app.router.add_patch("/api/v1/messages/{message_id}", self._handle_edit_message)
        app.router.add_delete("/api/v1/messages/{message_id}", self._handle_delete_message)
        app.router.add_get("/api/v1/reactions/{message_id}", self._handle_list_reactions)
        app.router.add_post("/api/v1/reactions/{message_id}", self._handle_toggle_reaction)
        app.router.add_post("/api/v1/persona/generate", self._handle_generate_persona)
        app.router.add_get("/api/v1/persona/{user_id}", self._handle_get_persona)
        app.router.add_post("/api/v1/persona/{user_id}/chat", self._handle_persona_chat)
        app.router.add_get("/api/v1/realtime", self._handle_realtime)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()
        self._logger.info(
            "HTTP server started",
            host=self.config.host,
            port=self.actual_port,
        )

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner is not None:
            await self._gateway.close()
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            self._app = None
            self._logger.info("HTTP server stopped")

    @web.middleware
    async def _error_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        """Translate domain errors into JSON error responses."""
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except InvalidRequestError as e:
            return web.json_response({"error": str(e)}, status=400)
        except AuthorizationError as e:
            return web.json_response({"error": str(e)}, status=403)
        except NotFoundError as e:
            return web.json_response({"error": str(e)}, status=404)
        except UpstreamError as e:
            self._logger.error(
                "Upstream call failed", path=request.path, error=str(e), detail=e.detail
            )
            return web.json_response({"error": str(e), "details": e.detail}, status=500)
        except HuddleError as e:
            return web.json_response({"error": str(e)}, status=500)
        except Exception as e:
            self._logger.error(
                "Unhandled error", path=request.path, error=str(e), exc_info=True
            )
            return web.json_response(
                {"error": "Internal server error", "details": str(e)}, status=500
            )

    @web.middleware
    async def _auth_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        """Require the upstream-authenticated user on every non-public path."""
        if request.path in PUBLIC_PATHS:
            return await handler(request)

        user_id = request.headers.get(USER_ID_HEADER)
        if not user_id:
            return web.json_response({"error": "Authentication required"}, status=401)
        request["user_id"] = user_id
        return await handler(request)

    async def _read_json(self, request: web.Request) -> dict[str, Any]:
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            raise InvalidRequestError("Invalid JSON") from e
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        return body

    async def _handle_health_check(self, request: web.Request) -> web.Response:
        """Handle GET /healthz requests."""
        return web.json_response({"status": "ok"})

    async def _handle_ask(self, request: web.Request) -> web.Response:
        """Handle POST /api/v1/rag/ask with body ``{query, channel_id?}``."""
        body = await self._read_json(request)
        answer = await self._rag.answer(
            body.get("query"),
            user_id=request["user_id"],
            channel_id=body.get("channel_id"),
        )
        return web.json_response(answer.to_payload())

    async def _handle_stats(self, request: web.Request) -> web.Response:
        stats = await self._rag.stats()
        return web.json_response(stats.to_payload())

    async def _handle_analyze(self, request: web.Request) -> web.StreamResponse:
        """Handle POST /api/v1/analysis/messages/{message_id}.

        A fresh cached analysis is returned as JSON. Otherwise the response
        is an event stream; once it has started, failures arrive as
        ``error`` events since the status line is already sent.
        """
        message_id = request.match_info["message_id"]
        outcome = await self._analysis.start(message_id, request["user_id"])
        if outcome.cached is not None:
            return web.json_response({"data": {"analysis": outcome.cached.to_payload()}})

        events = outcome.events
        if events is None:
            raise HuddleError("Analysis returned neither a cached result nor a stream")

        response = web.StreamResponse(
            status=200,
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )
        await response.prepare(request)
        try:
            async for event in events:
                await response.write(event.encode())
        except ConnectionResetError:
            self._logger.info("Analysis client disconnected", message_id=message_id)
            return response
        finally:
            await events.aclose()  # type: ignore[attr-defined]

        await response.write_eof()
        return response

    async def _handle_post_message(self, request: web.Request) -> web.Response:
        body = await self._read_json(request)
        message = await self._messages.post_message(
            request["user_id"],
            body.get("content"),
            channel_id=body.get("channel_id"),
            dm_id=body.get("dm_id"),
            parent_id=body.get("parent_id"),
            file_id=body.get("file_id"),
        )
        return web.json_response({"message": message.to_payload()}, status=201)

    async def _handle_edit_message(self, request: web.Request) -> web.Response:
        body = await self._read_json(request)
        message = await self._messages.edit_message(
            request["user_id"], request.match_info["message_id"], body.get("content")
        )
        return web.json_response({"message": message.to_payload()})

    async def _handle_delete_message(self, request: web.Request) -> web.Response:
        message_id = request.match_info["message_id"]
        await self._messages.delete_message(request["user_id"], message_id)
        return web.json_response({"messageId": message_id, "deleted": True})

    async def _handle_list_reactions(self, request: web.Request) -> web.Response:
        message_id = request.match_info["message_id"]
        reactions = await self._messages.list_reactions(request["user_id"], message_id)
        return web.json_response(
            {
                "messageId": message_id,
                "reactions": [reaction.model_dump() for reaction in reactions],
            }
        )

    async def _handle_toggle_reaction(self, request: web.Request) -> web.Response:
        """Handle POST /api/v1/reactions/{message_id} with body ``{emoji}``."""
        body = await self._read_json(request)
        message_id = request.match_info["message_id"]
        reactions = await self._messages.toggle_reaction(
            request["user_id"], message_id, body.get("emoji")
        )
        return web.json_response(
            {
                "messageId": message_id,
                "reactions": [reaction.model_dump() for reaction in reactions],
            }
        )

    async def _handle_generate_persona(self, request: web.Request) -> web.Response:
        body = await self._read_json(request)
        user_id = body.get("user_id") or request["user_id"]
        persona = await self._personas.generate(user_id, username=body.get("username"))
        return web.json_response({"persona": _persona_payload(persona)})

    async def _handle_get_persona(self, request: web.Request) -> web.Response:
        persona = await self._personas.get(request.match_info["user_id"])
        return web.json_response({"persona": _persona_payload(persona)})

    async def _handle_persona_chat(self, request: web.Request) -> web.Response:
        body = await self._read_json(request)
        reply = await self._personas.chat(request.match_info["user_id"], body.get("message"))
        return web.json_response({"response": reply})

    async def _handle_realtime(self, request: web.Request) -> web.WebSocketResponse:
        return await self._gateway.handle(request, request["user_id"])
