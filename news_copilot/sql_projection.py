# news_copilot/sql_projection.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from sqlparse import lexer
from sqlparse import tokens as T

from news_copilot.sql_policy import ColumnPolicy


# ----------------------------
# Tokens
# ----------------------------

WORD = "word"          # keyword, name or number
QUOTED = "quoted"      # "double quoted identifier"
STRING = "string"      # 'literal' or $tag$literal$tag$
COMMENT = "comment"
SPACE = "space"
PUNCT = "punct"

_SKIPPABLE = (SPACE, COMMENT)

_QUALIFIER_RE = re.compile(r'^(?:(?:"[^"]*"|[\w$]+)\s*\.\s*)+')


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    start: int
    end: int
    depth: int  # parenthesis depth; "(" and its matching ")" share the outer depth

    def is_keyword(self, name: str) -> bool:
        return self.kind == WORD and self.text.upper() == name


def _kind(ttype) -> str:
    if ttype in T.Comment:
        return COMMENT
    if ttype in T.Whitespace:
        return SPACE
    if ttype in T.String.Symbol:
        return QUOTED
    if ttype in T.Keyword or ttype in T.Name or ttype in T.Number:
        return WORD
    if ttype in T.Literal:
        return STRING
    return PUNCT


def tokenize(sql: str) -> List[Token]:
    """
    sqlparse's lexer stream with offsets and parenthesis depth.

    Lossless: concatenating token texts gives back the input. Never
    raises; characters the lexer does not recognise become PUNCT tokens.
    """
    out: List[Token] = []
    pos = 0
    depth = 0

    for ttype, value in lexer.tokenize(sql):
        kind = _kind(ttype)
        end = pos + len(value)
        if kind == PUNCT and value == ")":
            depth = max(0, depth - 1)
        out.append(Token(kind, value, pos, end, depth))
        if kind == PUNCT and value == "(":
            depth += 1
        pos = end

    return out


def _next_significant(tokens: List[Token], idx: int) -> Optional[int]:
    j = idx + 1
    while j < len(tokens) and tokens[j].kind in _SKIPPABLE:
        j += 1
    return j if j < len(tokens) else None


def _code_text(tokens: Sequence[Token]) -> str:
    # Comments become a single space
    return "".join(" " if t.kind == COMMENT else t.text for t in tokens).strip()


# ----------------------------
# Projection
# ----------------------------

@dataclass(frozen=True)
class ParsedProjection:
    """
    View over the SELECT list of a query.

    select_start..from_end covers "SELECT <projection> FROM"; text is the raw
    projection (modifier and comments included). modifier and expressions
    have comments blanked out and are otherwise verbatim; expressions are
    split on top-level commas.
    """

    select_start: int
    from_end: int
    text: str
    modifier: str
    expressions: Tuple[str, ...]


def _modifier_end(tokens: List[Token], first: int, stop: int) -> int:
    # Returns the token index where column expressions begin.
    tok = tokens[first]
    if tok.is_keyword("ALL"):
        return first + 1
    if not tok.is_keyword("DISTINCT"):
        return first

    nxt = _next_significant(tokens, first)
    if nxt is None or nxt >= stop or not tokens[nxt].is_keyword("ON"):
        return first + 1

    paren = _next_significant(tokens, nxt)
    if paren is None or paren >= stop or tokens[paren].text != "(":
        return first + 1

    depth = tokens[paren].depth
    j = paren + 1
    while j < stop:
        if tokens[j].text == ")" and tokens[j].kind == PUNCT and tokens[j].depth == depth:
            return j + 1
        j += 1
    return first + 1


def extract_projection(sql: str) -> Optional[ParsedProjection]:
    """
    First SELECT keyword and the first FROM after it at the same
    parenthesis depth. None when no such pair exists or the list is empty.
    """
    if not sql:
        return None

    tokens = tokenize(sql)

    select_idx = next((i for i, t in enumerate(tokens) if t.is_keyword("SELECT")), None)
    if select_idx is None:
        return None

    depth = tokens[select_idx].depth
    from_idx = None
    for i in range(select_idx + 1, len(tokens)):
        t = tokens[i]
        if t.depth < depth:
            break
        if t.depth == depth and t.is_keyword("FROM"):
            from_idx = i
            break
    if from_idx is None:
        return None

    first = _next_significant(tokens, select_idx)
    if first is None or first >= from_idx:
        return None

    body_start = _modifier_end(tokens, first, from_idx)
    modifier = _code_text(tokens[first:body_start])

    groups: List[List[Token]] = [[]]
    for t in tokens[body_start:from_idx]:
        if t.kind == PUNCT and t.text == "," and t.depth == depth:
            groups.append([])
        else:
            groups[-1].append(t)
    expressions = [e for e in (_code_text(g) for g in groups) if e]

    text = sql[tokens[select_idx].end:tokens[from_idx].start]
    if not text.strip():
        return None

    return ParsedProjection(
        select_start=tokens[select_idx].start,
        from_end=tokens[from_idx].end,
        text=text,
        modifier=modifier,
        expressions=tuple(expressions),
    )


def split_projection(sql: str) -> Tuple[str, ...]:
    parsed = extract_projection(sql)
    return parsed.expressions if parsed else ()


def outer_limit(tokens: List[Token]) -> Tuple[Optional[int], Optional[int]]:
    """
    (LIMIT keyword index, value token index) of the outermost query.
    LIMITs inside subqueries, strings or comments are not considered.
    """
    for i, t in enumerate(tokens):
        if t.depth == 0 and t.is_keyword("LIMIT"):
            return i, _next_significant(tokens, i)
    return None, None


# ----------------------------
# Target table
# ----------------------------

def _read_dotted_name(tokens: List[Token], idx: int) -> Optional[str]:
    parts: List[str] = []
    j: Optional[int] = idx
    while j is not None and tokens[j].kind in (WORD, QUOTED):
        t = tokens[j]
        parts.append(t.text[1:-1].replace('""', '"') if t.kind == QUOTED else t.text)
        dot = _next_significant(tokens, j)
        if dot is None or tokens[dot].text != ".":
            break
        j = _next_significant(tokens, dot)
    return ".".join(parts) if parts else None


def target_table(sql: str) -> Optional[str]:
    """
    Table named by the outermost FROM clause. FROM keywords are tried by
    ascending depth, then position; one followed by "(" is skipped.
    """
    tokens = tokenize(sql or "")
    candidates = sorted(
        (i for i, t in enumerate(tokens) if t.is_keyword("FROM")),
        key=lambda i: (tokens[i].depth, i),
    )
    for i in candidates:
        nxt = _next_significant(tokens, i)
        if nxt is None:
            continue
        name = _read_dotted_name(tokens, nxt)
        if name:
            return name
    return None


def targets_guarded_table(sql: str, policy: ColumnPolicy) -> bool:
    # Substring match: catches schema-qualified names such as public.articles
    table = target_table(sql)
    if not table:
        return False
    return policy.guarded_table.lower() in table.lower()


# ----------------------------
# Column names
# ----------------------------

def normalize_column_name(expression: str) -> str:
    s = expression.strip()
    s = _QUALIFIER_RE.sub("", s)
    s = s.strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1]
    return s.strip().lower()
