"""Statement shape analysis shared by the validator and the streaming handler.

Both consumers must agree on what a statement looks like (leading keyword,
presence of a WHERE filter, SELECT *, multiple statements), so the facts are
computed in one place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Longer queries are still classified, but advisory extraction is skipped
MAX_ANALYSIS_LENGTH = 50_000

_LEADING_KEYWORD = re.compile(r"^\s*([A-Za-z]+)")
_SELECT_STAR = re.compile(r"\bSELECT\s+(?:TOP\s+\(?\d+\)?\s+)?(?:DISTINCT\s+)?\*", re.IGNORECASE)
_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_STATEMENT_SEPARATOR = re.compile(r";\s*\S")
_BULK_MARKERS = re.compile(r"\b(?:BULK|EXPORT|BACKUP)\s+", re.IGNORECASE)

# String literals are matched first so comment markers inside them survive.
# An unterminated block comment runs to the end of the text.
_LITERAL_OR_COMMENT = re.compile(
    r"'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|--[^\r\n]*"
    r"|/\*[\s\S]*?(?:\*/|\Z)"
)

_TABLE_PATTERNS = [
    re.compile(r"\bFROM\s+([\w.\[\]\"`]+)", re.IGNORECASE),
    re.compile(r"\bJOIN\s+([\w.\[\]\"`]+)", re.IGNORECASE),
    re.compile(r"\bINSERT\s+INTO\s+([\w.\[\]\"`]+)", re.IGNORECASE),
    re.compile(r"\bUPDATE\s+([\w.\[\]\"`]+)", re.IGNORECASE),
]


@dataclass
class QueryShape:
    """Structural facts about a SQL statement."""

    keyword: str | None
    """Leading keyword, upper-cased (None for empty input)."""

    has_where: bool = False
    select_star: bool = False
    multi_statement: bool = False
    bulk_operation: bool = False
    length: int = 0

    tables: list[str] = field(default_factory=list)
    """Referenced tables. Advisory only, empty for oversized queries."""

    truncated_analysis: bool = False
    """True when advisory extraction was skipped because of input size."""

    @property
    def unfiltered_select_star(self) -> bool:
        return self.select_star and not self.has_where


def strip_comments(sql: str) -> str:
    """Replace ``--`` and ``/* */`` comments with a space.

    Comment markers inside quoted literals and identifiers are left alone.
    """

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        return " " if token[0] in "-/" else token

    return _LITERAL_OR_COMMENT.sub(_replace, sql)


def analyze_shape(sql: str) -> QueryShape:
    """Compute the shape of a statement.

    Args:
        sql: Raw SQL text

    Returns:
        QueryShape describing the statement
    """
    stripped = strip_comments(sql).strip()
    if not stripped:
        return QueryShape(keyword=None)

    match = _LEADING_KEYWORD.match(stripped)
    shape = QueryShape(
        keyword=match.group(1).upper() if match else None,
        has_where=bool(_WHERE.search(stripped)),
        select_star=bool(_SELECT_STAR.search(stripped)),
        multi_statement=bool(_STATEMENT_SEPARATOR.search(stripped)),
        bulk_operation=bool(_BULK_MARKERS.search(stripped)),
        length=len(stripped),
    )

    if len(stripped) > MAX_ANALYSIS_LENGTH:
        shape.truncated_analysis = True
        return shape

    shape.tables = extract_tables(stripped)
    return shape


def extract_tables(sql: str) -> list[str]:
    """Extract referenced table names, in order of first appearance.

    Returns an empty list for queries longer than MAX_ANALYSIS_LENGTH.
    """
    if len(sql) > MAX_ANALYSIS_LENGTH:
        return []

    found: list[tuple[int, str]] = []
    for pattern in _TABLE_PATTERNS:
        for match in pattern.finditer(sql):
            name = re.sub(r"[\[\]\"`]", "", match.group(1)).lower()
            if name and not name.startswith("("):
                found.append((match.start(), name))

    tables: list[str] = []
    for _, name in sorted(found):
        if name not in tables:
            tables.append(name)
    return tables
