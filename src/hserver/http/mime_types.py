"""
=============================================================================
MIME TYPE LOOKUP
=============================================================================

Resolves the short names, extensions and file paths accepted by
``ctx.type = ...`` into canonical MIME types.

    ┌────────────────────────────────────────────────────────────────────┐
    │                    WHAT lookup() ACCEPTS                           │
    ├────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  "html"              → text/html          (bare extension)         │
    │  ".css"              → text/css           (dotted extension)       │
    │  "static/app.js"     → text/javascript    (path, uses suffix)      │
    │  "json"              → application/json                            │
    │  "text"              → text/plain         (alias)                  │
    │  "bin"               → application/octet-stream (alias)            │
    │  "text/html"         → None               (already a MIME type)    │
    │  "nope"              → None               (unknown)                │
    │                                                                     │
    └────────────────────────────────────────────────────────────────────┘

Text-like types get a default charset (utf-8) when they are written to a
Content-Type header.

=============================================================================
"""

import os
from pathlib import Path
from typing import Optional, Union


# =============================================================================
# MIME TYPE DATABASE
# =============================================================================
#
# File extensions (lowercase, with dot) to MIME types.
#

MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".text": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # Audio / video
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    # Binary and documents
    ".bin": "application/octet-stream",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
    ".wasm": "application/wasm",

    # Forms
    ".form": "application/x-www-form-urlencoded",
    ".urlencoded": "application/x-www-form-urlencoded",
    ".multipart": "multipart/form-data",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

DEFAULT_CHARSET = "utf-8"

# application/* types that are still text
_TEXT_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
    "application/x-javascript",
    "application/x-www-form-urlencoded",
    "image/svg+xml",
}


# =============================================================================
# PUBLIC FUNCTIONS
# =============================================================================

def lookup(token: str) -> Optional[str]:
    """
    Resolve a short name, extension or path to a MIME type.

    Args:
        token: "json", ".png", "assets/site.css" and so on

    Returns:
        The MIME type, or None when the token is unknown or is already a
        full MIME type such as "text/html".
    """
    if not token:
        return None

    # Same trick as treating the token as the suffix of "x.<token>": a bare
    # name becomes an extension, a path keeps its own suffix.
    extension = os.path.splitext("x." + token)[1].lower()
    if not extension:
        return None
    return MIME_TYPES.get(extension)


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    MIME type for a file path, falling back to ``default`` or
    application/octet-stream.

        >>> get_mime_type("/srv/www/logo.PNG")
        'image/png'
    """
    if isinstance(path, str):
        path = Path(path)

    return MIME_TYPES.get(path.suffix.lower(), default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    """Check whether a MIME type carries text and therefore a charset."""
    mime_type = mime_type.split(";", 1)[0].strip().lower()
    if mime_type.startswith("text/"):
        return True
    if mime_type.endswith("+json") or mime_type.endswith("+xml"):
        return True
    return mime_type in _TEXT_APPLICATION_TYPES


def charset_for(mime_type: str) -> Optional[str]:
    """Default charset to advertise for ``mime_type`` (None for binary types)."""
    return DEFAULT_CHARSET if is_text_type(mime_type) else None


def content_type(token: str, charset: Optional[str] = None) -> Optional[str]:
    """
    Build a full Content-Type header value.

    Args:
        token: Anything ``lookup`` accepts, or a full MIME type
        charset: Explicit charset; defaults to utf-8 for text types

    Returns:
        e.g. "text/html; charset=utf-8", or the token verbatim when it
        already carries parameters. None for an empty token.
    """
    if not token:
        return None
    if ";" in token:
        return token

    mime_type = lookup(token) or token
    charset = charset or charset_for(mime_type)
    if charset:
        return f"{mime_type}; charset={charset}"
    return mime_type
