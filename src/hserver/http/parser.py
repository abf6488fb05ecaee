"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of one request into an ``IncomingRequest``.

        Raw Request Bytes
              │
              ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. Size check               too large → HTTPParseError(413)     │
        │  2. Split at \\r\\n\\r\\n        missing   → HTTPParseError(400)     │
        │  3. Request line             bad       → 400 / 405 / 505         │
        │  4. Header lines             lenient, repeated names joined      │
        │  5. Body                     exactly Content-Length bytes        │
        └───────────────────────────────────────────────────────────────────┘
              │
              ▼
        IncomingRequest

The request target is kept verbatim (``url``); decoding the path and query
is left to the request view so that ``ctx.url`` reflects what the client
actually sent.

=============================================================================
"""

import re
from typing import List, Tuple
from urllib.parse import unquote, urlsplit

from .headers import Headers
from .message import IncomingRequest, SocketInfo


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status the connection should answer with:

        400 Bad Request                 malformed syntax
        405 Method Not Allowed          unknown method
        413 Payload Too Large           over the size limit
        505 HTTP Version Not Supported  anything but 1.0 / 1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class RequestParser:
    """Parses raw HTTP/1.x request bytes."""

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
        encrypted: bool = False,
    ) -> IncomingRequest:
        """
        Parse one complete request.

        Args:
            data: Header block plus body bytes
            client_address: Peer (ip, port)
            encrypted: Whether the connection is TLS

        Returns:
            The parsed request.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        head = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = head.split("\r\n")
        method, url, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        length_header = headers.get("content-length", "0")
        try:
            content_length = int(length_header)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {length_header}")
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {length_header}")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return IncomingRequest(
            method=method,
            url=url,
            version=version,
            headers=headers,
            body=body[:content_length],
            socket=SocketInfo(encrypted=encrypted, remote_address=client_address),
            raw=data,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        """
        Split ``METHOD SP REQUEST-TARGET SP HTTP-VERSION``.

        Rejects paths that climb out of the root ("/../etc/passwd").
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, url, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        path = unquote(urlsplit(url).path)
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..")

        return method, url, version

    def _parse_headers(self, lines: List[str]) -> Headers:
        """
        Parse header lines.

        Continuation lines (leading whitespace) extend the previous header
        and repeated names are joined with ", ". Lines without a colon are
        skipped.
        """
        headers = Headers()
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] = f"{headers[current_name]} {line.strip()}"
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value

        return headers
