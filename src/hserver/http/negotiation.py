"""
=============================================================================
CONTENT NEGOTIATION HELPERS
=============================================================================

Small, quality-less helpers behind ``ctx.accepts()``, ``ctx.is_()`` and the
``accept_*`` request accessors.

    Accept: text/html, application/json;q=0.9, */*;q=0.1
            ─────────  ────────────────        ───
                │              │                └── wildcard matches anything
                │              └── parameters after ';' are dropped
                └── order is the client's preference order

Quality values are ignored: tokens are kept in the order the client sent
them.

=============================================================================
"""

from typing import Iterable, List, Optional, Sequence, Union

from .mime_types import lookup


def parse_tokens(value: Optional[str]) -> List[str]:
    """
    Split a comma-separated header into its tokens.

        >>> parse_tokens("text/html, application/json;q=0.9")
        ['text/html', 'application/json']
    """
    if not value:
        return []

    tokens = []
    for part in value.split(","):
        token = part.split(";", 1)[0].strip()
        if token:
            tokens.append(token)
    return tokens


def first_token(value: Optional[str]) -> str:
    """First comma-separated token, stripped ("" when missing)."""
    if not value:
        return ""
    return value.split(",", 1)[0].strip()


def normalize_type(value: str) -> Optional[str]:
    """
    Turn a short name into a MIME pattern.

    "json" → "application/json", "+json" → "*/*+json", "text/*" stays.
    """
    if not value:
        return None
    if value.startswith("+"):
        return "*/*" + value
    if "/" in value:
        return value.lower()
    return lookup(value)


def mime_match(expected: str, actual: str) -> bool:
    """
    Match a MIME pattern against a concrete MIME type.

    Either side of the slash may be "*"; a subtype pattern of the form
    "*+json" matches any "+json" suffixed subtype.
    """
    expected_parts = expected.split("/")
    actual_parts = actual.split("/")
    if len(expected_parts) != 2 or len(actual_parts) != 2:
        return False

    expected_type, expected_sub = expected_parts
    actual_type, actual_sub = actual_parts

    if expected_type != "*" and expected_type != actual_type:
        return False

    if expected_sub.startswith("*+"):
        return len(expected_sub) <= len(actual_sub) and actual_sub.endswith(expected_sub[1:])

    return expected_sub == "*" or expected_sub == actual_sub


def type_is(value: Optional[str], candidates: Sequence[str]) -> Union[str, bool]:
    """
    Check a content type against candidate types.

    Args:
        value: The declared Content-Type (parameters allowed)
        candidates: Short names, full types, wildcards or "+suffix" forms

    Returns:
        The matching candidate as given, or the actual type when the
        candidate was a wildcard or suffix pattern. False when nothing
        matches.
    """
    if not value:
        return False

    actual = value.split(";", 1)[0].strip().lower()
    if not actual:
        return False

    for candidate in candidates:
        pattern = normalize_type(candidate)
        if pattern and mime_match(pattern, actual):
            if candidate.startswith("+") or "*" in candidate:
                return actual
            return candidate
    return False


def _accepts_type(accepted: str, offer: str) -> bool:
    if accepted == "*":
        accepted = "*/*"
    pattern = normalize_type(accepted)
    return bool(pattern) and mime_match(pattern, offer)


def negotiate_type(accepted: List[str], offers: Iterable[str]) -> Union[str, bool]:
    """
    Pick the first offer the client accepts, in the client's order.

    A client that sent no Accept header accepts everything, so the first
    offer wins.
    """
    offers = list(offers)
    if not offers:
        return False
    if not accepted:
        return offers[0]

    for token in accepted:
        for offer in offers:
            resolved = normalize_type(offer)
            if resolved and _accepts_type(token.lower(), resolved):
                return offer
    return False


def negotiate_token(accepted: List[str], offers: Iterable[str], prefix_match: bool = False) -> Union[str, bool]:
    """
    Plain token negotiation for encodings, charsets and languages.

    Args:
        accepted: Parsed header tokens
        offers: Values the server can produce
        prefix_match: Let "en" accept "en-US" (languages)
    """
    offers = list(offers)
    if not offers:
        return False
    if not accepted:
        return offers[0]

    for token in accepted:
        token = token.lower()
        for offer in offers:
            candidate = offer.lower()
            if token == "*" or token == candidate:
                return offer
            if prefix_match and candidate.split("-", 1)[0] == token:
                return offer
    return False
