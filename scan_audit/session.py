"""
Authenticated sessions against the remote scanning service.

A session is built once: credentials are resolved, the handshake confirms
them and reports the canonical service URL, and the service version is
fetched. The resulting SessionContext is immutable and shared read-only by
every scenario.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from .common import add_trailing_slash
from .config import Config
from .errors import AuthenticationError, ConfigurationError, CredentialError, VersionFetchError
from .version_gate import ServiceVersion, parse_service_version

logger = logging.getLogger(__name__)

USER_AGENT = "scan-audit/1.0"
PING_PATH = "api/v1/system/ping"
VERSION_PATH = "api/v1/system/version"


@dataclass(frozen=True)
class TokenCredential:
    token: str = field(repr=False)


@dataclass(frozen=True)
class BasicCredential:
    user: str
    password: str = field(repr=False)


Credential = Union[TokenCredential, BasicCredential]


@dataclass(frozen=True)
class ServiceConnection:
    """
    Connection details for the scanning service.

    Attributes:
        base_url: Service URL, always ending in a single "/"
        credential: Either a token or a user/password pair
    """
    base_url: str
    credential: Credential

    def __post_init__(self):
        if not isinstance(self.credential, (TokenCredential, BasicCredential)):
            raise CredentialError(f"Unsupported credential type: {type(self.credential).__name__}")

    def auth_headers(self) -> dict[str, str]:
        """HTTP headers authenticating requests with this connection."""
        if isinstance(self.credential, TokenCredential):
            return {"Authorization": f"Bearer {self.credential.token}"}
        raw = f"{self.credential.user}:{self.credential.password}".encode("utf-8")
        return {"Authorization": "Basic " + base64.b64encode(raw).decode("ascii")}

    def cli_args(self) -> list[str]:
        """Credential flags appended to every invoked command."""
        args = [f"--url={self.base_url}"]
        if isinstance(self.credential, TokenCredential):
            args.append(f"--access-token={self.credential.token}")
        else:
            args.append(f"--user={self.credential.user}")
            args.append(f"--password={self.credential.password}")
        return args

    def with_url(self, url: str) -> ServiceConnection:
        return ServiceConnection(base_url=add_trailing_slash(url), credential=self.credential)


def service_url(platform_url: str, service_path: str) -> str:
    """
    Join the platform URL and the service path.

    Example:
        service_url("https://acme.io", "xray") -> "https://acme.io/xray/"
    """
    if not platform_url:
        raise ConfigurationError(
            "No service URL configured",
            remediation="Set SCAN_AUDIT_URL or service.url in .scan-audit.yml",
        )
    path = service_path.strip("/")
    base = add_trailing_slash(platform_url)
    return add_trailing_slash(base + path) if path else base


class ServiceClient:
    """
    Minimal HTTP client for the scanning service's system endpoints.
    """

    def __init__(self, connection: ServiceConnection, timeout: int = 30):
        self.connection = connection
        self.timeout = timeout

    def _open(self, path: str) -> tuple[str, bytes]:
        url = self.connection.base_url + path
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        headers.update(self.connection.auth_headers())
        req = urllib.request.Request(url, headers=headers)
        with urllib.request.urlopen(req, timeout=self.timeout) as response:
            return response.geturl(), response.read()

    def ping(self) -> str:
        """
        Perform the authentication handshake.

        Returns:
            Canonical service URL as reported after redirects

        Raises:
            AuthenticationError: If the service rejects the credentials or is unreachable
        """
        try:
            final_url, _ = self._open(PING_PATH)
        except urllib.error.HTTPError as e:
            if e.code in (401, 403):
                raise AuthenticationError(
                    f"Service rejected the credentials (HTTP {e.code})",
                    remediation="Check the access token or user/password",
                ) from e
            raise AuthenticationError(f"Handshake failed with HTTP {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise AuthenticationError(f"Service unreachable at {self.connection.base_url}: {e}") from e

        if final_url.endswith(PING_PATH):
            final_url = final_url[: -len(PING_PATH)]
        return add_trailing_slash(final_url)

    def get_version(self) -> ServiceVersion:
        """
        Fetch the service version.

        Raises:
            VersionFetchError: If the version cannot be retrieved
            ConfigurationError: If the reported version is malformed
        """
        try:
            _, body = self._open(VERSION_PATH)
            data: Any = json.loads(body)
        except (urllib.error.URLError, OSError) as e:
            raise VersionFetchError(f"Failed to fetch service version: {e}") from e
        except ValueError as e:
            raise VersionFetchError(f"Service version response is not JSON: {e}") from e

        text = data.get("xray_version", "") if isinstance(data, dict) else ""
        if not text:
            raise VersionFetchError("Service version response has no xray_version field")
        if not isinstance(text, str):
            raise VersionFetchError(
                f"Service version response has a non-string xray_version: {text!r}"
            )
        return parse_service_version(text)


def build_connection(
    endpoint_base: str,
    token: str | None = None,
    user: str | None = None,
    password: str | None = None,
    handshake: Callable[[ServiceConnection], str] | None = None,
    timeout: int = 30,
) -> ServiceConnection:
    """
    Build an authenticated connection to the scanning service.

    Args:
        endpoint_base: Service URL (a trailing slash is added if needed)
        token: Access token, used exclusively when non-empty
        user: User name, required with password when no token is given
        password: Password
        handshake: Callable confirming the credentials and returning the
            canonical URL (defaults to ServiceClient.ping)
        timeout: Request timeout for the default handshake

    Returns:
        ServiceConnection pointing at the canonical URL

    Raises:
        ConfigurationError: If the endpoint is empty
        CredentialError: If no usable credentials were supplied
        AuthenticationError: If the handshake fails
    """
    if not endpoint_base:
        raise ConfigurationError("Service endpoint must not be empty")

    credential: Credential
    if token:
        credential = TokenCredential(token=token)
    elif user and password:
        credential = BasicCredential(user=user, password=password)
    else:
        raise CredentialError(
            "Either an access token or both user and password are required",
            remediation="Set SCAN_AUDIT_ACCESS_TOKEN, or SCAN_AUDIT_USER and SCAN_AUDIT_PASSWORD",
        )

    connection = ServiceConnection(base_url=add_trailing_slash(endpoint_base), credential=credential)
    if handshake is None:
        handshake = lambda conn: ServiceClient(conn, timeout=timeout).ping()  # noqa: E731

    try:
        canonical_url = handshake(connection)
    except AuthenticationError:
        raise
    except Exception as e:
        raise AuthenticationError(f"Failed while attempting to authenticate with the service: {e}") from e

    logger.debug(f"Authenticated with {canonical_url}")
    return connection.with_url(canonical_url)


@dataclass(frozen=True)
class SessionContext:
    """
    Per-run session shared by all scenarios.

    Attributes:
        connection: Authenticated connection
        version: Service version, fetched once when the session opened
    """
    connection: ServiceConnection
    version: ServiceVersion

    def credential_args(self) -> list[str]:
        return self.connection.cli_args()


def open_session(
    config: Config,
    client_factory: Callable[..., ServiceClient] = ServiceClient,
) -> SessionContext:
    """
    Authenticate and fetch the service version.

    Raises:
        ConfigurationError: For missing URL or credentials, or a malformed version
        AuthenticationError: If the handshake fails
        VersionFetchError: If the version cannot be fetched
    """
    endpoint = service_url(config.url, config.service_path)

    connection = build_connection(
        endpoint,
        token=config.access_token,
        user=config.user,
        password=config.password,
        handshake=lambda conn: client_factory(conn, timeout=config.timeout_seconds).ping(),
    )
    version = client_factory(connection, timeout=config.timeout_seconds).get_version()
    logger.info(f"Connected to {connection.base_url} (service version {version})")
    return SessionContext(connection=connection, version=version)
