"""
HTTP primitives: status codes, MIME types, headers, dates, negotiation and
the request parser.
"""

from .dates import format_http_date, parse_http_date
from .headers import Headers
from .message import IncomingRequest, SocketInfo
from .mime_types import DEFAULT_MIME_TYPE, get_mime_type, is_text_type, lookup
from .parser import HTTPParseError, RequestParser
from .status_codes import EMPTY_STATUSES, STATUS_CODES, HTTPStatus, is_empty, status_phrase

__all__ = [
    "format_http_date",
    "parse_http_date",
    "Headers",
    "IncomingRequest",
    "SocketInfo",
    "DEFAULT_MIME_TYPE",
    "get_mime_type",
    "is_text_type",
    "lookup",
    "HTTPParseError",
    "RequestParser",
    "EMPTY_STATUSES",
    "STATUS_CODES",
    "HTTPStatus",
    "is_empty",
    "status_phrase",
]
