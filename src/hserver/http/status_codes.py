"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Reason phrases plus the small status sets the response layer keys off.

=============================================================================
STATUS SETS THE RESPONSE CARES ABOUT
=============================================================================

    ┌────────────────────────────────────────────────────────────────────┐
    │                    STATUS → BODY RULES                             │
    ├──────────────┬─────────────────────────────────────────────────────┤
    │  EMPTY       │ 204 No Content, 205 Reset Content, 304 Not Modified │
    │              │ Assigning one of these clears the response body.   │
    ├──────────────┼─────────────────────────────────────────────────────┤
    │  REDIRECT    │ 300, 301, 302, 303, 305, 307, 308                   │
    │              │ Usually paired with a Location header.             │
    ├──────────────┼─────────────────────────────────────────────────────┤
    │  UNKNOWN     │ Anything without a reason phrase below.            │
    │              │ The error handler downgrades these to 500.         │
    └──────────────┴─────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum
from typing import Optional


class HTTPStatus(IntEnum):
    """
    Named status codes used across the package.

    Behaves like an int, so ``ctx.status = HTTPStatus.NOT_FOUND`` and
    ``ctx.status = 404`` are equivalent.

        >>> HTTPStatus.NO_CONTENT.phrase
        'No Content'
        >>> HTTPStatus.NO_CONTENT.is_empty
        True
    """

    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101

    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204
    RESET_CONTENT = 205
    PARTIAL_CONTENT = 206

    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    GONE = 410
    LENGTH_REQUIRED = 411
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    UNSUPPORTED_MEDIA_TYPE = 415
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        return STATUS_CODES[self.value]

    @property
    def is_empty(self) -> bool:
        return self.value in EMPTY_STATUSES

    @property
    def is_redirect(self) -> bool:
        return self.value in REDIRECT_STATUSES

    @property
    def is_error(self) -> bool:
        return self.value >= 400


# =============================================================================
# REASON PHRASES
# =============================================================================
#
# Keyed by plain int so arbitrary codes coming from user errors can be looked
# up without going through the enum.
#

STATUS_CODES = {
    100: "Continue",
    101: "Switching Protocols",
    102: "Processing",
    103: "Early Hints",
    200: "OK",
    201: "Created",
    202: "Accepted",
    203: "Non-Authoritative Information",
    204: "No Content",
    205: "Reset Content",
    206: "Partial Content",
    207: "Multi-Status",
    208: "Already Reported",
    226: "IM Used",
    300: "Multiple Choices",
    301: "Moved Permanently",
    302: "Found",
    303: "See Other",
    304: "Not Modified",
    305: "Use Proxy",
    307: "Temporary Redirect",
    308: "Permanent Redirect",
    400: "Bad Request",
    401: "Unauthorized",
    402: "Payment Required",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    407: "Proxy Authentication Required",
    408: "Request Timeout",
    409: "Conflict",
    410: "Gone",
    411: "Length Required",
    412: "Precondition Failed",
    413: "Payload Too Large",
    414: "URI Too Long",
    415: "Unsupported Media Type",
    416: "Range Not Satisfiable",
    417: "Expectation Failed",
    418: "I'm a teapot",
    421: "Misdirected Request",
    422: "Unprocessable Entity",
    423: "Locked",
    424: "Failed Dependency",
    425: "Too Early",
    426: "Upgrade Required",
    428: "Precondition Required",
    429: "Too Many Requests",
    431: "Request Header Fields Too Large",
    451: "Unavailable For Legal Reasons",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
    505: "HTTP Version Not Supported",
    506: "Variant Also Negotiates",
    507: "Insufficient Storage",
    508: "Loop Detected",
    510: "Not Extended",
    511: "Network Authentication Required",
}

EMPTY_STATUSES = frozenset({204, 205, 304})

REDIRECT_STATUSES = frozenset({300, 301, 302, 303, 305, 307, 308})


def status_phrase(code: int) -> Optional[str]:
    """Return the reason phrase for ``code``, or None if it is not a known status."""
    return STATUS_CODES.get(code)


def is_empty(code: int) -> bool:
    """True when a response with this status must not carry a body."""
    return code in EMPTY_STATUSES


def is_redirect(code: int) -> bool:
    return code in REDIRECT_STATUSES


def is_known(code) -> bool:
    """True for ints (not bools) that have a registered reason phrase."""
    return isinstance(code, int) and not isinstance(code, bool) and code in STATUS_CODES
