# aramstats/wiki/lua.py
# ============================================================================
# Lecture des littéraux de table Lua embarqués dans la page d'édition du wiki
# Les blocs sont délimités par comptage de profondeur d'accolades : les stats
# sont imbriquées sur plusieurs niveaux et une regex non récursive les tronque.
# ============================================================================

from __future__ import annotations

import html
import logging
import re
from typing import Iterator, List, Optional, Tuple, Union

from aramstats.errors import ExtractionError

log = logging.getLogger(__name__)

# Blocs qui peuvent envelopper le module : <textarea> (vue edit), <pre>, commentaire
_WRAPPER_RES = (
    re.compile(r"<textarea\b[^>]*>(.*?)</textarea>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<pre\b[^>]*>(.*?)</pre>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<!--(.*?)-->", re.DOTALL),
)
_RETURN_RE = re.compile(r"\breturn\s*(?=\{)")

_BRACKET_KEY_RE = re.compile(
    r"""\[\s*(?:"((?:[^"\\]|\\.)*)"|'((?:[^'\\]|\\.)*)'|([-+]?\d+))\s*\]\s*=\s*""",
    re.DOTALL,
)
_NAME_KEY_RE = re.compile(r"([A-Za-z_]\w*)\s*=(?!=)\s*")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_STRING_RE = re.compile(r"""^(?:"((?:[^"\\]|\\.)*)"|'((?:[^'\\]|\\.)*)')$""", re.DOTALL)
_STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}
# Chaîne ou commentaire long : [[ ... ]], [==[ ... ]==]
_LONG_OPEN_RE = re.compile(r"\[(=*)\[")

Key = Union[str, int]


# ────────────────────────────── Scanner bas niveau ──────────────────────────────
def _skip_string(text: str, i: int) -> int:
    """Return the index just past the quoted string starting at `i`."""
    quote = text[i]
    n = len(text)
    j = i + 1
    while j < n:
        ch = text[j]
        if ch == "\\":
            j += 2
            continue
        if ch == quote or ch == "\n":
            return j + 1
        j += 1
    return n


def _skip_long_bracket(text: str, i: int) -> int:
    """Index just past the long bracket `[==[ ... ]==]` at `i`, -1 when there is none."""
    match = _LONG_OPEN_RE.match(text, i)
    if match is None:
        return -1
    close = "]" + match.group(1) + "]"
    end = text.find(close, match.end())
    return len(text) if end < 0 else end + len(close)


def _skip_comment(text: str, i: int) -> int:
    """Return the index just past the `--` comment starting at `i`."""
    end = _skip_long_bracket(text, i + 2)
    if end >= 0:
        return end
    end = text.find("\n", i)
    return len(text) if end < 0 else end + 1


def find_block_end(text: str, start: int) -> int:
    """
    Return the index of the `}` closing the `{` at `text[start]`.

    Braces inside string literals and comments are ignored.
    Returns -1 when the block never closes.
    """
    if start >= len(text) or text[start] != "{":
        raise ValueError(f"no opening brace at offset {start}")

    depth = 0
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"' or ch == "'":
            i = _skip_string(text, i)
            continue
        if ch == "-" and text.startswith("--", i):
            i = _skip_comment(text, i)
            continue
        if ch == "[":
            end = _skip_long_bracket(text, i)
            if end >= 0:
                i = end
                continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _skip_trivia(text: str, i: int) -> int:
    """Skip whitespace, field separators and comments."""
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace() or ch == "," or ch == ";":
            i += 1
        elif ch == "-" and text.startswith("--", i):
            i = _skip_comment(text, i)
        else:
            break
    return i


def _scalar_end(text: str, i: int) -> int:
    """Index where the scalar value starting at `i` ends (next separator)."""
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"' or ch == "'":
            i = _skip_string(text, i)
            continue
        if ch == "[":
            end = _skip_long_bracket(text, i)
            if end >= 0:
                i = end
                continue
        if ch in ",;}\n":
            return i
        if ch == "-" and text.startswith("--", i):
            return i
        i += 1
    return n


# ────────────────────────────── Extraction ──────────────────────────────────────
def _literal_after_return(text: str) -> Optional[str]:
    for match in _RETURN_RE.finditer(text):
        start = match.end()
        end = find_block_end(text, start)
        if end >= 0:
            return text[start:end + 1]
    return None


def extract_table(page: str) -> str:
    """
    Pull the top-level `return { ... }` table literal out of a wiki page.

    The page may carry the module inside a <textarea>/<pre>/comment block
    (edit view) or as the trailing statement of the document. HTML entities
    are decoded before scanning.

    Raises:
        ExtractionError: When no complete literal is found
    """
    if not page:
        raise ExtractionError("Empty page, no Lua table to extract")

    decoded = html.unescape(page)
    candidates: List[str] = []
    for source in (page, decoded):
        for wrapper in _WRAPPER_RES:
            candidates.extend(html.unescape(m.group(1)) for m in wrapper.finditer(source))
    candidates.append(decoded)

    for candidate in candidates:
        literal = _literal_after_return(candidate)
        if literal is not None:
            log.debug("Extracted Lua table (%d chars): %s", len(literal), literal[:200])
            return literal

    log.warning("No Lua table found in page (%d chars)", len(page))
    raise ExtractionError("No Lua table literal found after a `return` marker")


# ────────────────────────────── Parcours des champs ─────────────────────────────
def iter_fields(table: str) -> Iterator[Tuple[Key, str]]:
    """
    Iterate over the top-level fields of a Lua table.

    Yields (key, raw_value) pairs. Nested tables come back as their full
    brace span, scalars as stripped source text. Positional values get
    1-based integer keys, as in Lua.
    """
    body = table.strip()
    if body.startswith("{"):
        end = find_block_end(body, 0)
        body = body[1:end] if end >= 0 else body[1:]

    n = len(body)
    pos = 0
    index = 0
    while True:
        pos = _skip_trivia(body, pos)
        if pos >= n:
            return

        key: Optional[Key] = None
        match = _BRACKET_KEY_RE.match(body, pos) or _NAME_KEY_RE.match(body, pos)
        if match is not None:
            if match.re is _BRACKET_KEY_RE:
                dq, sq, num = match.groups()
                key = int(num) if num is not None else _unescape(dq if dq is not None else sq)
            else:
                key = match.group(1)
            pos = match.end()
        else:
            index += 1
            key = index

        if pos < n and body[pos] == "{":
            end = find_block_end(body, pos)
            if end < 0:
                log.debug("Unbalanced table for key %r, stopping", key)
                return
            yield key, body[pos:end + 1]
            pos = end + 1
        else:
            end = _scalar_end(body, pos)
            value = body[pos:end].strip()
            if end == pos:
                # Caractère inattendu (ex. "}" orphelin) : on avance
                pos += 1
                continue
            yield key, value
            pos = end


# ────────────────────────────── Scalaires ──────────────────────────────────────
def _unescape(raw: str) -> str:
    return re.sub(r"\\(.)", lambda m: _STRING_ESCAPES.get(m.group(1), m.group(1)), raw, flags=re.DOTALL)


def is_table(value: Optional[str]) -> bool:
    return bool(value) and value.startswith("{")


def lua_string(value: Optional[str]) -> Optional[str]:
    """Decode a quoted or long-bracket Lua string, None for anything else."""
    if not value:
        return None
    long_open = _LONG_OPEN_RE.match(value.strip())
    if long_open is not None:
        text = value.strip()
        close = "]" + long_open.group(1) + "]"
        if len(text) < long_open.end() + len(close) or not text.endswith(close):
            return None
        body = text[long_open.end():len(text) - len(close)]
        # Lua ignore le saut de ligne qui suit immédiatement l'ouverture
        return body[1:] if body.startswith("\n") else body
    match = _STRING_RE.match(value.strip())
    if not match:
        return None
    dq, sq = match.groups()
    return _unescape(dq if dq is not None else sq)


def lua_number(value: Optional[str]) -> Optional[float]:
    """Parse a Lua numeric literal, None when the token is not a number."""
    if not value or not _NUMBER_RE.fullmatch(value.strip()):
        return None
    try:
        return float(value)
    except ValueError:
        return None


def lua_int(value: Optional[str]) -> Optional[int]:
    number = lua_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def lua_string_list(value: Optional[str]) -> List[str]:
    """Strings of a flat Lua list such as `{"Fighter", "Tank"}`."""
    if not is_table(value):
        single = lua_string(value)
        return [single] if single else []
    items = []
    for _, raw in iter_fields(value):
        text = lua_string(raw)
        if text:
            items.append(text)
    return items
