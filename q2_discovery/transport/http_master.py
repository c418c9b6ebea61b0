"""HTTP master server client.

Fetches a binary server list from an HTTP mirror of the master server.
Mirrors deliver the same endpoint list in one of three encodings:

- raw 6-byte records (4-byte IPv4 + 2-byte big-endian port), the default
- ``+6`` / ``-6`` prefixed records, where the digits give the record size
- OOB-framed raw records (``\\xff\\xff\\xff\\xff`` then 6-byte records)

The mirror is untrusted: responses are size capped, HTML error pages and
textual content types are rejected, and the parsed list is truncated.
"""

import logging
from enum import Enum
from itertools import islice
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from .. import __version__
from ..cancellation import CancellationToken, OperationCancelled
from ..config.schema import DiscoveryConfig
from ..config.validator import is_valid_http_url
from ..models import Endpoint
from ..protocol.byte_reader import (
    ENDPOINT_RECORD_SIZE,
    MAX_SERVERS_PER_RESPONSE,
    iter_endpoints,
)
from ..protocol.packet import has_oob_header, remove_oob_header

MAX_HTTP_RESPONSE_SIZE = 50 * 1024 * 1024
DEFAULT_HTTP_TIMEOUT = 10.0
DOWNLOAD_CHUNK_SIZE = 64 * 1024

_HTML_PREFIXES = (b"<html", b"<!doctype")


class PayloadFormat(str, Enum):
    """Encodings of an HTTP master server list."""
    PREFIXED = "prefixed"
    OOB = "oob"
    RAW = "raw"


def create_http_session(pool_size: int = 4) -> requests.Session:
    """Create the long-lived session shared by every HTTP master query.

    The caller owns the session and closes it at process shutdown; it is
    never torn down per discovery cycle.
    """
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({
        "User-Agent": f"q2-discovery/{__version__}",
        "Accept": "application/octet-stream, */*;q=0.5",
    })
    return session


def looks_like_html(data: bytes) -> bool:
    """Whether a body looks like an HTML page rather than binary data."""
    head = data[:64].lstrip().lower()
    return head.startswith(_HTML_PREFIXES)


def is_unexpected_content_type(content_type: str) -> bool:
    """Whether a declared content type is textual/HTML instead of binary."""
    content_type = (content_type or "").lower()
    if not content_type:
        return False
    if "octet-stream" in content_type or "application/" in content_type:
        return False
    return "text/" in content_type or "html" in content_type


def _digit_run_end(data: bytes, start: int) -> int:
    end = start
    while end < len(data) and 0x30 <= data[end] <= 0x39:
        end += 1
    return end


def classify_payload(data: bytes) -> PayloadFormat:
    """Classify a server list body by its first bytes."""
    if data[:1] in (b"+", b"-") and _digit_run_end(data, 1) > 1:
        return PayloadFormat.PREFIXED
    if has_oob_header(data):
        return PayloadFormat.OOB
    return PayloadFormat.RAW


def parse_server_list(data: bytes, limit: Optional[int] = None) -> list[Endpoint]:
    """Parse a server list body in any supported encoding.

    Args:
        data: Response body.
        limit: Stop after this many endpoints. Default: no limit.

    Returns:
        Endpoints in body order.
    """
    payload_format = classify_payload(data)

    if payload_format is PayloadFormat.PREFIXED:
        prefix_end = _digit_run_end(data, 1)
        chunk_size = int(data[1:prefix_end])
        records = iter_endpoints(data, prefix_end, chunk_size)
    elif payload_format is PayloadFormat.OOB:
        records = iter_endpoints(remove_oob_header(data))
    else:
        records = iter_endpoints(data)

    return list(islice(records, limit))


class HttpMasterServerClient:
    """Fetches server endpoints from an HTTP master server mirror."""

    def __init__(
        self,
        config: DiscoveryConfig,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        """Initialize HTTP master client.

        Args:
            config: Discovery configuration (HTTP master URL).
            session: Shared HTTP session. Default: a private session, closed
                by :meth:`close`.
            logger: Logger for diagnostics. Default: module logger.
            timeout: Request timeout in seconds.
        """
        self.config = config
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._owns_session = session is None
        self._session = session or create_http_session()

    def query_servers(self, cancel: Optional[CancellationToken] = None) -> list[Endpoint]:
        """Fetch and parse the server list.

        Never raises: configuration errors, network errors, timeouts,
        malformed bodies and cancellation all produce an empty list.

        Args:
            cancel: Cancellation token for the current discovery cycle.

        Returns:
            At most MAX_SERVERS_PER_RESPONSE endpoints.
        """
        cancel = cancel or CancellationToken()
        url = (self.config.http_master_url or "").strip()

        if not url:
            self.logger.warning("HTTP master server URL is not configured")
            return []

        if not is_valid_http_url(url):
            self.logger.error("Invalid HTTP master server URL: %s", url)
            return []

        try:
            cancel.raise_if_cancelled()
            self.logger.info("Fetching server list from HTTP master: %s", url)

            data = self._download(url, cancel)
            if data is None:
                return []
            return self._parse(data)

        except OperationCancelled:
            self.logger.info("HTTP master server request cancelled")
        except requests.Timeout:
            self.logger.warning("HTTP master server request timed out after %.0fs", self.timeout)
        except requests.RequestException as e:
            self.logger.error("HTTP error fetching master server: %s", e)
        except Exception as e:
            self.logger.error("Error fetching HTTP master server: %s", e, exc_info=True)

        return []

    def _download(self, url: str, cancel: CancellationToken) -> Optional[bytes]:
        """GET the body, enforcing status, size and content checks.

        Returns:
            The body, or None if the response was rejected.
        """
        with self._session.get(url, timeout=self.timeout, stream=True) as response:
            if not response.ok:
                self.logger.error(
                    "HTTP master server returned status %d %s",
                    response.status_code, response.reason or "",
                )
                return None

            content_type = response.headers.get("Content-Type", "")
            self.logger.debug("Response Content-Type: %s", content_type)

            declared = response.headers.get("Content-Length", "")
            if declared.isdigit() and int(declared) > MAX_HTTP_RESPONSE_SIZE:
                self.logger.error(
                    "HTTP master server response too large: %s bytes (max: %d)",
                    declared, MAX_HTTP_RESPONSE_SIZE,
                )
                return None

            body = bytearray()
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                cancel.raise_if_cancelled()
                body.extend(chunk)
                if len(body) > MAX_HTTP_RESPONSE_SIZE:
                    self.logger.error(
                        "HTTP master server response too large: over %d bytes",
                        MAX_HTTP_RESPONSE_SIZE,
                    )
                    return None

        self.logger.info("Received %d bytes from HTTP master server", len(body))

        if not body:
            self.logger.warning("HTTP master server returned empty response")
            return None

        if looks_like_html(body):
            self.logger.error(
                "HTTP master server returned HTML response (likely an error page). Check the URL."
            )
            return None

        if is_unexpected_content_type(content_type):
            self.logger.error(
                "HTTP master server returned unexpected content type: %s. Expected binary data.",
                content_type,
            )
            return None

        return bytes(body)

    def _parse(self, data: bytes) -> list[Endpoint]:
        payload_format = classify_payload(data)
        self.logger.debug("Parsing server list as %s format", payload_format.value)

        if payload_format is PayloadFormat.PREFIXED:
            chunk_size = int(data[1:_digit_run_end(data, 1)])
            if chunk_size < ENDPOINT_RECORD_SIZE:
                self.logger.warning("Unsupported record size %d in server list prefix", chunk_size)
                return []

        servers = parse_server_list(data, limit=MAX_SERVERS_PER_RESPONSE + 1)
        if len(servers) > MAX_SERVERS_PER_RESPONSE:
            self.logger.warning(
                "HTTP master server returned more than %d servers, limiting to %d",
                MAX_SERVERS_PER_RESPONSE, MAX_SERVERS_PER_RESPONSE,
            )
            servers = servers[:MAX_SERVERS_PER_RESPONSE]

        self.logger.info("Parsed %d server(s) from HTTP master server", len(servers))
        return servers

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
