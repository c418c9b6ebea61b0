"""Transport module - HTTP master server communication."""

from .http_master import (
    HttpMasterServerClient,
    MAX_HTTP_RESPONSE_SIZE,
    PayloadFormat,
    classify_payload,
    create_http_session,
    parse_server_list,
)

__all__ = [
    "HttpMasterServerClient",
    "MAX_HTTP_RESPONSE_SIZE",
    "PayloadFormat",
    "classify_payload",
    "create_http_session",
    "parse_server_list",
]
