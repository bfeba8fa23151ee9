"""
Helpers for building SPARQL/Turtle text and reading SPARQL JSON results.

All caller-supplied text that ends up inside a query or a Turtle document
goes through ``escape_literal`` (string literals) or ``format_iri`` (IRIs).
Result documents go through ``parse_bindings`` before any field access.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from allegro_mcp.errors import MalformedResponseError

logger = logging.getLogger(__name__)

# ECHAR escapes shared by the SPARQL and Turtle grammars. Backslash first.
_LITERAL_ESCAPES = {
    '\\': '\\\\',
    '"': '\\"',
    "'": "\\'",
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
    '\b': '\\b',
    '\f': '\\f',
}

# Characters that may not appear inside <...> in SPARQL or Turtle
_IRI_FORBIDDEN = re.compile(r'[\x00-\x20<>"{}|^`\\]')

_TITLE_RE = re.compile(r'<title>(.*?)</title>', re.IGNORECASE | re.DOTALL)


def escape_literal(value: Any) -> str:
    """
    Escape text for embedding in a quoted SPARQL or Turtle string literal.

    The result is safe between double quotes and between single quotes,
    and stays on one line. Stores parse the escapes back, so the stored
    value equals the original text exactly.
    """
    return ''.join(_LITERAL_ESCAPES.get(ch, ch) for ch in str(value))


def quote_literal(value: Any) -> str:
    """Escape and wrap in double quotes."""
    return f'"{escape_literal(value)}"'


def format_iri(uri: str) -> str:
    """
    Wrap a URI in angle brackets for use in a query.

    Raises:
        ValueError: If the URI is empty or contains characters not allowed in an IRI
    """
    if not uri or _IRI_FORBIDDEN.search(uri):
        raise ValueError(f"Invalid IRI: {uri[:100]!r}")
    return f"<{uri}>"


def is_html(text: Any) -> bool:
    """True if a response body looks like an HTML page."""
    if isinstance(text, bytes):
        text = text.decode('utf-8', errors='replace')
    if not isinstance(text, str):
        return False
    head = text.lstrip()[:20].lower()
    return head.startswith('<!doctype') or head.startswith('<html')


def html_title(text: str) -> str:
    """Extract the <title> of an HTML error page."""
    match = _TITLE_RE.search(text)
    return match.group(1).strip() if match else 'Unknown error'


def parse_bindings(data: Any, operation: str = 'SPARQL query') -> List[Dict[str, Dict[str, str]]]:
    """
    Validate a SPARQL JSON result document and return its bindings.

    Args:
        data: Parsed JSON dict, or raw str/bytes as returned for unexpected
              content types
        operation: Name of the operation, used in error messages

    Raises:
        MalformedResponseError: If the document is HTML, not JSON, or lacks results.bindings
    """
    if isinstance(data, bytes):
        data = data.decode('utf-8', errors='replace')

    if isinstance(data, str):
        if is_html(data):
            raise MalformedResponseError(operation, f"server returned HTML error page: {html_title(data)}")
        try:
            data = json.loads(data)
        except ValueError:
            raise MalformedResponseError(operation, f"response is not JSON: {data[:200]}")

    if not isinstance(data, dict):
        raise MalformedResponseError(operation, f"unexpected response format: {str(data)[:200]}")

    results = data.get('results')
    bindings = results.get('bindings') if isinstance(results, dict) else None
    if not isinstance(bindings, list):
        raise MalformedResponseError(
            operation, f"unexpected response format: {json.dumps(data)[:200]}"
        )
    return bindings


def binding_value(row: Dict[str, Dict[str, str]], var: str) -> Optional[str]:
    """Value of ``var`` in a result row, or None when unbound."""
    cell = row.get(var)
    if isinstance(cell, dict):
        return cell.get('value')
    return None


def require_value(row: Dict[str, Dict[str, str]], var: str, operation: str) -> str:
    """Value of a mandatory variable; a missing one means the result is malformed."""
    value = binding_value(row, var)
    if value is None:
        raise MalformedResponseError(operation, f"result row is missing ?{var}")
    return value
