"""
Keyword text to FTS5 MATCH expression.

FTS5 barewords may only contain letters, digits and underscores, so ordinary
text such as ``don't``, ``alpha-beta`` or ``c++`` is a syntax error when passed
to MATCH unchanged. to_match() keeps the FTS5 query syntax that callers rely on
and quotes everything else:

- ``AND``, ``OR``, ``NOT`` and parentheses pass through
- ``"phrases"`` pass through, including a trailing ``*``
- ``column:term`` keeps its column filter
- plain words and ``prefix*`` pass through
- any other word becomes an FTS5 string, which the tokenizer splits like
  document text (``alpha-beta`` matches the phrase "alpha beta")
- words without a single token character (``+``, ``,``) are dropped

Only structurally broken input is rejected here (unterminated phrase, no
search terms). Dangling operators and unknown columns are left for FTS5 to
reject.
"""

import re
from docindex.exceptions import QuerySyntaxError


__all__ = ["to_match", "OPERATORS"]


OPERATORS = frozenset(["AND", "OR", "NOT"])

_BAREWORD = re.compile(r"^\w+\*?$")
_COLUMN = re.compile(r"^([A-Za-z_]\w*):(.*)$", re.DOTALL)
_TOKEN_CHAR = re.compile(r"\w")
_WORD_END = re.compile(r'[\s"()]')


def _string(text, prefix=False):
    # type: (str, bool) -> str
    return '"' + text.replace('"', '""') + '"' + ("*" if prefix else "")


def _term(word):
    # type: (str) -> str|None
    """Translate one bareword, None if it holds nothing searchable."""
    if _BAREWORD.match(word):
        return word
    prefix = word.endswith("*")
    body = word.rstrip("*")
    if not _TOKEN_CHAR.search(body):
        return None
    return _string(body, prefix)


def _read_string(query, start):
    # type: (str, int) -> int
    """Return the index just past the phrase opened at start. Doubled quotes are escapes."""
    i = start + 1
    while i < len(query):
        if query[i] == '"':
            if query[i + 1 : i + 2] == '"':
                i += 2
                continue
            return i + 1
        i += 1
    raise QuerySyntaxError(f"Invalid query '{query}': unterminated phrase")


def to_match(query):
    # type: (str) -> str
    """
    Build an FTS5 MATCH expression from keyword text.

    :param query: Keyword text, optionally using FTS5 operators
    :return: Expression safe to bind to ``MATCH ?``
    :raises QuerySyntaxError: On an unterminated phrase or a query without search terms
    """
    parts = []  # type: list[str]
    terms = 0
    i = 0
    while i < len(query):
        char = query[i]
        if char.isspace():
            i += 1
        elif char in "()":
            parts.append(char)
            i += 1
        elif char == '"':
            end = _read_string(query, i)
            if query[end : end + 1] == "*":
                end += 1
            parts.append(query[i:end])
            terms += 1
            i = end
        else:
            found = _WORD_END.search(query, i)
            end = found.start() if found else len(query)
            word = query[i:end]
            i = end
            if word in OPERATORS:
                parts.append(word)
                continue
            column = _COLUMN.match(word)
            if column:
                parts.append(column.group(1) + " :")
                word = column.group(2)
                if not word:
                    # Filter applies to the phrase or group that follows
                    continue
            term = _term(word)
            if term is not None:
                parts.append(term)
                terms += 1

    if not terms:
        raise QuerySyntaxError(f"Invalid query '{query}': no search terms")
    return " ".join(parts)
