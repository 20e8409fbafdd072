"""Compile styled OpenDocument runs into Jinja template source.

The compiler works on the serialised XML of one part (``content.xml`` or
``styles.xml``).  The text is split into tokens, each tag classified by the
structure it opens or closes.  For every run carrying a template style the
surrounding tokens are inspected to find out whether the run is the only
thing inside its paragraph, list item and table row.  Statements that are the
sole content of a paragraph take the paragraph (and possibly the list item and
table row) with them, so loops and conditionals do not leave empty lines in
the rendered document.
"""

from __future__ import annotations

import enum
import html
import logging
import re
from dataclasses import dataclass
from typing import Mapping

from documatic.jinja_env import BLOCK_END, BLOCK_START, VARIABLE_END, VARIABLE_START
from documatic.opendocument.normalize import unnormalize
from documatic.opendocument.styles import Role

logger = logging.getLogger(__name__)


class TokenKind(enum.Enum):
    ROW_OPEN = "row-open"
    ROW_CLOSE = "row-close"
    CELL_OPEN = "cell-open"
    CELL_CLOSE = "cell-close"
    COVERED_CELL = "covered-cell"
    ITEM_OPEN = "item-open"
    ITEM_CLOSE = "item-close"
    PARA_OPEN = "para-open"
    PARA_CLOSE = "para-close"
    SPAN_OPEN = "span-open"
    SPAN_CLOSE = "span-close"
    INLINE_WS = "inline-ws"
    SPACE = "space"
    TEXT = "text"
    OTHER = "other"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str


_TOKEN_RE = re.compile(
    r"<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>|<[^<>]*>|[^<]+|<",
    re.DOTALL,
)

_OPEN = r"(?:\s[^>]*)?(?<!/)>\Z"
_CLOSE = r"\s*>\Z"
_EMPTY = r"(?:\s[^>]*)?/>\Z"

_TAG_KINDS: tuple[tuple[re.Pattern[str], TokenKind], ...] = tuple(
    (re.compile(pattern), kind)
    for pattern, kind in (
        (r"<table:table-row" + _OPEN, TokenKind.ROW_OPEN),
        (r"</table:table-row" + _CLOSE, TokenKind.ROW_CLOSE),
        (r"<table:table-cell" + _OPEN, TokenKind.CELL_OPEN),
        (r"</table:table-cell" + _CLOSE, TokenKind.CELL_CLOSE),
        (r"<table:covered-table-cell" + _EMPTY, TokenKind.COVERED_CELL),
        (r"<text:list-item" + _OPEN, TokenKind.ITEM_OPEN),
        (r"</text:list-item" + _CLOSE, TokenKind.ITEM_CLOSE),
        (r"<text:p" + _OPEN, TokenKind.PARA_OPEN),
        (r"</text:p" + _CLOSE, TokenKind.PARA_CLOSE),
        (r"<text:span" + _OPEN, TokenKind.SPAN_OPEN),
        (r"</text:span" + _CLOSE, TokenKind.SPAN_CLOSE),
        (r"<text:(?:line-break|tab|s)" + _EMPTY, TokenKind.INLINE_WS),
    )
)

_STYLE_NAME_RE = re.compile(r"""\stext:style-name=(?:"([^"]*)"|'([^']*)')""")

# Token kinds allowed between the opening and closing tag of a styled run.
_RUN_CONTENT = frozenset({TokenKind.TEXT, TokenKind.SPACE, TokenKind.INLINE_WS})


def tokenize(xml: str) -> list[Token]:
    """Split serialised XML into classified tag and text tokens."""

    tokens: list[Token] = []
    for match in _TOKEN_RE.finditer(xml):
        text = match.group(0)
        if text.startswith("<") and len(text) > 1:
            kind = TokenKind.OTHER
            for pattern, tag_kind in _TAG_KINDS:
                if pattern.match(text):
                    kind = tag_kind
                    break
        elif text.isspace():
            kind = TokenKind.SPACE
        else:
            kind = TokenKind.TEXT
        tokens.append(Token(kind, text))
    return tokens


def span_style_name(tag: str) -> str | None:
    """Return the ``text:style-name`` of a span opening tag."""

    match = _STYLE_NAME_RE.search(tag)
    if match is None:
        return None
    return html.unescape(match.group(1) if match.group(1) is not None else match.group(2))


# ----------------------------------------------------------------------
# Match context


@dataclass
class MatchContext:
    """Markup found around one styled run.

    ``start`` and ``end`` delimit the tokens the match consumes.  Each optional
    group holds the exact text it covers (including the whitespace belonging
    to it) so a group that is not collapsed can be emitted unchanged.
    """

    start: int
    end: int
    style_name: str
    code: str
    row_start: str | None = None
    item_start: str | None = None
    para_start: str | None = None
    span_end: str | None = None
    span_start: str | None = None
    para_end: str | None = None
    item_end: str | None = None
    row_end: str | None = None


@dataclass(frozen=True)
class Collapse:
    """Which enclosing structures are removed together with a directive."""

    paragraph: bool = False
    item: bool = False
    row: bool = False


def _join(tokens: list[Token], start: int, end: int) -> str:
    return "".join(token.text for token in tokens[start:end])


def _styled_run(tokens: list[Token], index: int, styles: Mapping[str, Role]) -> int | None:
    """Return the index of the closing tag if a styled run starts at ``index``."""

    token = tokens[index]
    if token.kind is not TokenKind.SPAN_OPEN:
        return None
    name = span_style_name(token.text)
    if name is None or name not in styles:
        return None

    end = index + 1
    has_text = False
    while end < len(tokens) and tokens[end].kind in _RUN_CONTENT:
        has_text = has_text or tokens[end].kind is TokenKind.TEXT
        end += 1
    # Whitespace-only runs carry no code and stay plain text.
    if not has_text or end >= len(tokens) or tokens[end].kind is not TokenKind.SPAN_CLOSE:
        return None
    return end


def _group_before(tokens: list[Token], pos: int, floor: int, *kinds: TokenKind) -> int | None:
    """Match ``kinds`` (each followed by optional whitespace) ending at ``pos``.

    Returns the index of the first token of the group, or ``None``.  Tokens
    below ``floor`` have already been emitted and are never matched.
    """

    index = pos
    for kind in reversed(kinds):
        while index > floor and tokens[index - 1].kind is TokenKind.SPACE:
            index -= 1
        if index <= floor or tokens[index - 1].kind is not kind:
            return None
        index -= 1
    return index


def _skip_space(tokens: list[Token], pos: int) -> int:
    while pos < len(tokens) and tokens[pos].kind is TokenKind.SPACE:
        pos += 1
    return pos


def _close_after(tokens: list[Token], pos: int, kind: TokenKind) -> int | None:
    """Match optional whitespace and a closing tag of ``kind`` starting at ``pos``."""

    index = _skip_space(tokens, pos)
    if index < len(tokens) and tokens[index].kind is kind:
        return index + 1
    return None


def _row_end_after(tokens: list[Token], pos: int) -> int | None:
    """Match the end of a cell, any covered cells and the end of the row."""

    index = _close_after(tokens, pos, TokenKind.CELL_CLOSE)
    if index is None:
        return None
    while True:
        covered = _close_after(tokens, index, TokenKind.COVERED_CELL)
        if covered is None:
            break
        index = covered
    return _close_after(tokens, index, TokenKind.ROW_CLOSE)


def match_context(
    tokens: list[Token],
    run_start: int,
    run_end: int,
    floor: int = 0,
    styles: Mapping[str, Role] | None = None,
) -> MatchContext:
    """Collect the structural markup touching the run ``tokens[run_start:run_end + 1]``.

    Looking backwards: a closing span directly adjacent to the run, then an
    opening paragraph, then an opening list item, then an opening row and its
    first cell.  Looking forwards: an opening span directly adjacent to the
    run, then the closing paragraph, list item and row (with any covered
    cells).  The structural groups may be separated by whitespace.
    """

    context = MatchContext(
        start=run_start,
        end=run_end + 1,
        style_name=span_style_name(tokens[run_start].text) or "",
        code=unnormalize(_join(tokens, run_start + 1, run_end)),
    )

    pos = run_start
    # Whitespace between spans is document text, so a neighbour must touch the run.
    if pos > floor and tokens[pos - 1].kind is TokenKind.SPAN_CLOSE:
        context.span_end = tokens[pos - 1].text
        pos -= 1
    for field, kinds in (
        ("para_start", (TokenKind.PARA_OPEN,)),
        ("item_start", (TokenKind.ITEM_OPEN,)),
        ("row_start", (TokenKind.ROW_OPEN, TokenKind.CELL_OPEN)),
    ):
        found = _group_before(tokens, pos, floor, *kinds)
        if found is not None:
            setattr(context, field, _join(tokens, found, pos))
            pos = found
    context.start = pos

    pos = run_end + 1
    if pos < len(tokens) and tokens[pos].kind is TokenKind.SPAN_OPEN:
        # A following styled run is matched on its own, not swallowed as a neighbour.
        if styles is None or _styled_run(tokens, pos, styles) is None:
            context.span_start = tokens[pos].text
            pos += 1
    for field, finder in (
        ("para_end", lambda at: _close_after(tokens, at, TokenKind.PARA_CLOSE)),
        ("item_end", lambda at: _close_after(tokens, at, TokenKind.ITEM_CLOSE)),
        ("row_end", lambda at: _row_end_after(tokens, at)),
    ):
        found = finder(pos)
        if found is not None:
            setattr(context, field, _join(tokens, pos, found))
            pos = found
    context.end = pos

    return context


def decide_collapse(role: Role, context: MatchContext) -> Collapse:
    """Decide which enclosing structures disappear with the directive.

    Statements take their paragraph when they are its only content, then the
    list item and table row when those hold nothing but that paragraph.
    Output blocks only ever take their paragraph.  Values never collapse.
    """

    paragraph = bool(context.para_start and context.para_end)
    if role is Role.CODE:
        return Collapse(
            paragraph=paragraph,
            item=paragraph and bool(context.item_start and context.item_end),
            row=paragraph and bool(context.row_start and context.row_end),
        )
    if role is Role.BLOCK:
        return Collapse(paragraph=paragraph)
    return Collapse()


def directive(role: Role, code: str) -> str:
    """Return the template directive for ``code`` in the given role."""

    if role is Role.CODE:
        return f"{BLOCK_START} {code} {BLOCK_END}"
    if role is Role.VALUE:
        return f"{VARIABLE_START} ({code})|xml {VARIABLE_END}"
    return f"{VARIABLE_START} {code} {VARIABLE_END}"


def render_match(role: Role, context: MatchContext) -> str:
    """Return the replacement text for one match."""

    collapse = decide_collapse(role, context)
    parts: list[str] = []

    if context.row_start and not collapse.row:
        parts.append(context.row_start)
    if context.item_start and not collapse.item:
        parts.append(context.item_start)
    if context.para_start and not collapse.paragraph:
        parts.append(context.para_start)

    text = directive(role, context.code)
    if role is Role.CODE:
        # Neighbouring spans on both sides are joined into one; a single
        # neighbour stays so the markup remains balanced.
        merge = bool(context.span_end and context.span_start)
        if context.span_end and not merge:
            parts.append(context.span_end)
        parts.append(text)
        if context.span_start and not merge:
            parts.append(context.span_start)
    elif context.span_end:
        # The value continues the preceding span.
        parts.append(text)
        parts.append(context.span_end)
        if context.span_start:
            parts.append(context.span_start)
    elif context.span_start:
        # The value opens the following span.
        parts.append(context.span_start)
        parts.append(text)
    else:
        parts.append(text)

    if context.para_end and not collapse.paragraph:
        parts.append(context.para_end)
    if context.item_end and not collapse.item:
        parts.append(context.item_end)
    if context.row_end and not collapse.row:
        parts.append(context.row_end)

    return "".join(parts)


def compile_source(xml: str, styles: Mapping[str, Role]) -> str:
    """Rewrite every styled run in ``xml`` into a template directive.

    Text outside the matches is copied unchanged, so a part without template
    styles compiles to itself.
    """

    tokens = tokenize(xml)
    result: list[str] = []
    floor = 0
    index = 0
    count = 0

    while index < len(tokens):
        run_end = _styled_run(tokens, index, styles)
        if run_end is None:
            index += 1
            continue

        context = match_context(tokens, index, run_end, floor, styles)
        role = styles[context.style_name]
        result.append(_join(tokens, floor, context.start))
        if isinstance(role, Role):
            result.append(render_match(role, context))
        else:
            logger.warning("Style %r has no template role; leaving it as text", context.style_name)
            result.append(_join(tokens, context.start, context.end))
        floor = index = context.end
        count += 1

    if not count:
        return xml

    result.append(_join(tokens, floor, len(tokens)))
    logger.debug("Compiled %d template directives", count)
    return "".join(result)
