"""Callback server receiving zone states from panels.

Panels report sensor changes with PUT (V1/V2) or POST (Pro) and ask for the
state they should drive an actuator at with GET, all on
``/api/konnected/device/{id}``. Every request must carry a bearer token
issued while provisioning.
"""

import logging
from collections.abc import Awaitable, Callable, Container, Mapping
from typing import Any

from aiohttp import web

from .const.protocol import CALLBACK_ROUTE
from .exceptions import KonnectedAuthenticationError
from .queue import UpdateQueue

_LOGGER = logging.getLogger(__name__)

REASON_TOKEN_MISSING = "Authorization failed, token missing"
REASON_TOKEN_INVALID = "Authorization failed, token not valid"


def bearer_token(header: str) -> str:
    """Extract the token from an Authorization header."""
    return header.split("Bearer ").pop().strip()


class CallbackServer:
    """Authenticated HTTP endpoint for panel callbacks."""

    def __init__(
        self,
        tokens: Container[str],
        on_update: Callable[[str, dict[str, Any]], Awaitable[None]],
        on_query: Callable[[str, Mapping[str, str]], dict[str, Any]],
        on_auth_failure: Callable[[], None] | None = None,
        host: str = "0.0.0.0",
        port: int = 0,
    ):
        """Initialize callback server.

        Args:
            tokens: Accepted bearer tokens (shared with the provisioning client)
            on_update: Coroutine function handling a zone update (panel_id, body)
            on_query: Builds the reply to an actuator state query (panel_id, query)
            on_auth_failure: Called when a request carries an unknown token
            host: Listen address
            port: Listen port (0 picks a free port)
        """
        self._tokens = tokens
        self._on_query = on_query
        self._on_auth_failure = on_auth_failure
        self.host = host
        self.port = port

        self.queue = UpdateQueue(on_update)
        self.app = self._build_app()
        self._runner: web.AppRunner | None = None

    def _build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("PUT", CALLBACK_ROUTE, self._handle)  # V1/V2 panels
        app.router.add_route("POST", CALLBACK_ROUTE, self._handle)  # Pro panels
        app.router.add_route("GET", CALLBACK_ROUTE, self._handle)  # actuator queries
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, app: web.Application) -> None:
        await self.queue.start()

    async def _on_cleanup(self, app: web.Application) -> None:
        await self.queue.stop()

    async def start(self) -> None:
        """Start listening."""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        addresses = self._runner.addresses
        if addresses:
            self.port = addresses[0][1]
        _LOGGER.info(f"Listening for zone changes on {self.host} port {self.port}")

    async def stop(self) -> None:
        """Stop listening and release the port."""
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        _LOGGER.info(f"Listening port {self.port} closed and released")

    def _authenticate(self, request: web.Request) -> None:
        """Check the bearer token of a request.

        Raises:
            KonnectedAuthenticationError: If the token is missing or unknown
        """
        header = request.headers.get("Authorization")
        if header is None:
            raise KonnectedAuthenticationError(REASON_TOKEN_MISSING)
        if bearer_token(header) not in self._tokens:
            if self._on_auth_failure is not None:
                self._on_auth_failure()
            raise KonnectedAuthenticationError(REASON_TOKEN_INVALID)

    async def _handle(self, request: web.Request) -> web.Response:
        panel_id = request.match_info["id"]

        try:
            self._authenticate(request)
        except KonnectedAuthenticationError as e:
            _LOGGER.error(f"{e} (panel {panel_id})")
            return web.json_response({"success": False, "reason": str(e)}, status=401)

        if request.method in ("PUT", "POST"):
            try:
                body = await request.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                _LOGGER.warning(f"Malformed update from panel {panel_id}")
                return web.json_response(
                    {"success": False, "reason": "Malformed request body"}, status=400
                )
            self.queue.enqueue(panel_id, body)
            return web.json_response({"success": True})

        return web.json_response(self._on_query(panel_id, request.query))
