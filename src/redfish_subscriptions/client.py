"""Single-target Redfish event subscription client.

Every operation runs inside a session opened by ``RedfishClient.connect``,
which always logs out and closes the HTTP client when the block exits.

Usage:
    client = RedfishClient()
    async with client.connect(server) as session:
        existing = await session.list_subscriptions()
        subscription_id = await session.create_subscription(payload)
"""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from enum import Enum
import re
from typing import Any, Protocol

import httpx

from redfish_subscriptions.config import Settings, get_settings
from redfish_subscriptions.errors import BMCConnectionError, QueryError, SubscriptionError
from redfish_subscriptions.logging_config import get_logger
from redfish_subscriptions.schemas import (
    EventDestination,
    LoginType,
    RedfishServer,
    SubscriptionPayload,
)


SERVICE_ROOT_PATH = "/redfish/v1/"
SESSIONS_PATH = "/redfish/v1/SessionService/Sessions"
EVENT_SERVICE_PATH = "/redfish/v1/EventService"

# RegistryPrefixes/ResourceTypes filters replace EventTypes from this version on
MODERN_SUBSCRIPTION_VERSION = (1, 5, 0)

_VERSION_RE = re.compile(r"^\s*(\d+)\.(\d+)(?:\.(\d+))?")

_LEGACY_FIELDS = {"destination", "event_types", "http_headers", "protocol", "context", "oem"}
_MODERN_FIELDS = {
    "destination",
    "registry_prefixes",
    "resource_types",
    "http_headers",
    "protocol",
    "context",
    "delivery_retry_policy",
    "oem",
}


class SubscriptionShape(str, Enum):
    """Request body layout for creating a subscription."""

    LEGACY = "legacy"
    MODERN = "modern"


def parse_redfish_version(version: str | None) -> tuple[int, int, int] | None:
    """Parse a ``RedfishVersion`` string such as ``1.6.0``.

    Returns None when the version is missing or not recognisable.
    """
    match = _VERSION_RE.match(version or "")
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch or 0)


def resolve_subscription_shape(version: str | None, detect: bool = True) -> SubscriptionShape:
    """Pick the request shape a controller advertising ``version`` understands.

    Unknown versions get the legacy shape, which every controller accepts.
    With ``detect`` off the legacy shape is always used.
    """
    if not detect:
        return SubscriptionShape.LEGACY
    parsed = parse_redfish_version(version)
    if parsed is None or parsed < MODERN_SUBSCRIPTION_VERSION:
        return SubscriptionShape.LEGACY
    return SubscriptionShape.MODERN


def build_subscription_body(
    payload: SubscriptionPayload, shape: SubscriptionShape
) -> dict[str, Any]:
    """Build the POST body for ``shape``, omitting unset properties.

    Raises:
        ValueError: If a legacy body would carry no event types.
    """
    if shape is SubscriptionShape.LEGACY:
        if not payload.event_types:
            raise ValueError("at least one event type must be defined for a legacy subscription")
        fields = _LEGACY_FIELDS
    else:
        fields = _MODERN_FIELDS

    dumped = payload.model_dump(mode="json", by_alias=True, include=fields, exclude_none=True)
    body = {key: value for key, value in dumped.items() if value not in ("", [], {})}

    # Redfish models HttpHeaders as an array of single-entry objects
    if "HttpHeaders" in body:
        body["HttpHeaders"] = [{name: value} for name, value in body["HttpHeaders"].items()]
    return body


class SubscriptionSession(Protocol):
    """Operations the fleet orchestrator needs from one connected BMC."""

    async def list_subscriptions(self) -> list[EventDestination]:
        """Return every active subscription on the BMC."""

    async def create_subscription(self, payload: SubscriptionPayload) -> str:
        """Create ``payload`` and return the new subscription identifier."""

    async def delete_subscription(self, subscription_id: str) -> None:
        """Delete the subscription identified by ``subscription_id``."""


Connector = Callable[[RedfishServer], AbstractAsyncContextManager[SubscriptionSession]]


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    """Decode a Redfish resource body, which must be a JSON object."""
    body = resp.json()
    if not isinstance(body, dict):
        raise ValueError(f"expected a JSON object from {resp.request.url}")
    return body


class RedfishSession:
    """An authenticated connection to one BMC."""

    def __init__(
        self,
        server: RedfishServer,
        http: httpx.AsyncClient,
        version_detection: bool = True,
        logger: Any | None = None,
    ):
        self.server = server
        self.version_detection = version_detection
        self.service_root: dict[str, Any] = {}
        self.logger = logger or get_logger(__name__)
        self._http = http
        self._session_uri: str | None = None
        self._subscriptions_uri: str | None = None

    @property
    def redfish_version(self) -> str | None:
        """RedfishVersion advertised by the service root."""
        return self.service_root.get("RedfishVersion")

    @property
    def subscription_shape(self) -> SubscriptionShape:
        return resolve_subscription_shape(self.redfish_version, self.version_detection)

    async def login(self) -> None:
        """Authenticate and read the service root.

        Session logins create a remote session whose token authenticates every
        later request. Basic logins rely on the client's auth instead.
        """
        if self.server.login_type is LoginType.SESSION:
            resp = await self._http.post(
                SESSIONS_PATH,
                json={"UserName": self.server.username, "Password": self.server.password},
            )
            resp.raise_for_status()
            self._session_uri = resp.headers.get("Location")
            if not self._session_uri and resp.content:
                self._session_uri = _json_object(resp).get("@odata.id")
            if not self._session_uri:
                self.logger.warning("redfish_session_uri_missing", server_ip=self.server.ip)
            token = resp.headers.get("X-Auth-Token")
            if not token:
                raise ValueError("no X-Auth-Token in session response")
            self._http.headers["X-Auth-Token"] = token

        resp = await self._http.get(SERVICE_ROOT_PATH)
        resp.raise_for_status()
        self.service_root = _json_object(resp)

    async def close(self) -> None:
        """Log out of the remote session and release the HTTP client."""
        try:
            if self._session_uri:
                try:
                    resp = await self._http.delete(self._session_uri)
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    self.logger.warning(
                        "redfish_logout_failed",
                        server_ip=self.server.ip,
                        error=str(e),
                    )
                self._session_uri = None
        finally:
            await self._http.aclose()

    async def _get_subscriptions_uri(self) -> str:
        if self._subscriptions_uri is None:
            event_service_uri = self.service_root.get("EventService", {}).get(
                "@odata.id", EVENT_SERVICE_PATH
            )
            resp = await self._http.get(event_service_uri)
            resp.raise_for_status()
            subscriptions = _json_object(resp).get("Subscriptions", {}).get("@odata.id")
            if not subscriptions:
                subscriptions = f"{event_service_uri.rstrip('/')}/Subscriptions"
            self._subscriptions_uri = subscriptions
        return self._subscriptions_uri

    async def list_subscriptions(self) -> list[EventDestination]:
        """List every active event subscription.

        Raises:
            QueryError: If the event service or any subscription can't be read.
        """
        ip = self.server.ip
        try:
            collection_uri = await self._get_subscriptions_uri()
            resp = await self._http.get(collection_uri)
            resp.raise_for_status()

            subscriptions = []
            for member in _json_object(resp).get("Members", []):
                member_resp = await self._http.get(member["@odata.id"])
                member_resp.raise_for_status()
                subscriptions.append(EventDestination.model_validate(member_resp.json()))
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            raise QueryError(ip, f"failed to get event subscriptions on server {ip}: {e}") from e

        self.logger.debug("redfish_subscriptions_listed", server_ip=ip, count=len(subscriptions))
        return subscriptions

    async def create_subscription(self, payload: SubscriptionPayload) -> str:
        """Create an event subscription using the shape the BMC supports.

        Returns:
            URI of the new subscription resource.

        Raises:
            SubscriptionError: If the BMC rejects the subscription.
        """
        ip = self.server.ip
        shape = self.subscription_shape
        try:
            body = build_subscription_body(payload, shape)
            collection_uri = await self._get_subscriptions_uri()
            resp = await self._http.post(collection_uri, json=body)
            resp.raise_for_status()
            subscription_uri = resp.headers.get("Location")
            if not subscription_uri and resp.content:
                subscription_uri = _json_object(resp).get("@odata.id")
        except (httpx.HTTPError, ValueError) as e:
            raise SubscriptionError(
                ip, f"failed to create {shape.value} subscription: {e}"
            ) from e

        if not subscription_uri:
            raise SubscriptionError(
                ip, f"failed to create {shape.value} subscription: no URI returned"
            )

        self.logger.debug(
            "redfish_subscription_created",
            server_ip=ip,
            subscription_id=subscription_uri,
            shape=shape.value,
        )
        return subscription_uri

    async def delete_subscription(self, subscription_id: str) -> None:
        """Delete a subscription by its resource URI.

        Raises:
            SubscriptionError: If the BMC refuses or the subscription is gone.
        """
        ip = self.server.ip
        try:
            resp = await self._http.delete(subscription_id)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise SubscriptionError(
                ip, f"failed to delete event subscription {subscription_id} on server {ip}: {e}"
            ) from e


class RedfishClient:
    """Opens sessions to BMCs using the configured transport settings.

    Args:
        settings: Transport settings. Defaults to ``get_settings()``.
        logger: Structured logger shared by every session. Defaults to this
                module's logger.
    """

    def __init__(self, settings: Settings | None = None, logger: Any | None = None):
        self.settings = settings or get_settings()
        self.logger = logger or get_logger(__name__)

    def _http_client(self, server: RedfishServer) -> httpx.AsyncClient:
        auth = None
        if server.login_type is LoginType.BASIC:
            auth = httpx.BasicAuth(server.username, server.password)
        return httpx.AsyncClient(
            base_url=server.base_url,
            auth=auth,
            headers={"Accept": "application/json"},
            verify=self.settings.redfish_verify_tls,
            timeout=self.settings.redfish_request_timeout,
        )

    @asynccontextmanager
    async def connect(self, server: RedfishServer) -> AsyncIterator[RedfishSession]:
        """Open an authenticated session to ``server``.

        The session is logged out and its HTTP client closed however the
        block exits, including when login itself fails or is cancelled.

        Raises:
            BMCConnectionError: If authentication or the service root read fails.
        """
        session = RedfishSession(
            server,
            self._http_client(server),
            version_detection=self.settings.redfish_version_detection,
            logger=self.logger,
        )
        try:
            try:
                await session.login()
            except (httpx.HTTPError, ValueError) as e:
                self.logger.error("redfish_connect_failed", server_ip=server.ip, error=str(e))
                raise BMCConnectionError(
                    server.ip, f"failed to connect to server {server.ip}: {e}"
                ) from e

            self.logger.info(
                "redfish_connected",
                server_ip=server.ip,
                redfish_version=session.redfish_version,
            )
            yield session
        finally:
            await session.close()
