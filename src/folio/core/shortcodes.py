"""Shortcode directive tokenizer.

Recognized forms::

    {{< youtube id="dQw4w9WgXcQ" label="Talk" >}}
    {{% notice warning %}}
    {{< figure src="a.png" />}}
    {{< details summary="More" >}}inner text{{< /details >}}

Positional arguments are keyed by their position (``"0"``, ``"1"``, ...).
Shortcodes inside code (fenced or indented blocks and backtick spans) are
left alone. A token never spans a blank line or another opener, so a
stray ``{{<`` in prose stays plain text.
"""

import re
from typing import NamedTuple

from folio.core.models import ShortcodeDirective

_TOKEN_BODY = r"(?:(?!\{\{[<%]|\n[ \t]*\n).)*?"

TOKEN_PATTERN = re.compile(
    r"\{\{<\s*(?P<angle>" + _TOKEN_BODY + r")\s*>\}\}"
    r"|\{\{%\s*(?P<percent>" + _TOKEN_BODY + r")\s*%\}\}",
    re.DOTALL,
)

KIND_PATTERN = re.compile(r"[A-Za-z_][\w.-]*")

PARAM_PATTERN = re.compile(
    r"""(?:(?P<key>[A-Za-z_][\w.-]*)\s*=\s*)?"""
    r"""(?:"(?P<dq>(?:[^"\\]|\\.)*)"|'(?P<sq>[^']*)'|`(?P<bq>[^`]*)`|(?P<bare>[^\s"'`=]+))""",
    re.DOTALL,
)

FENCE_PATTERN = re.compile(
    r"^[ \t]*(?P<fence>`{3,}|~{3,})[^\n]*\n.*?^[ \t]*(?P=fence)[ \t]*$",
    re.DOTALL | re.MULTILINE,
)

CODE_SPAN_PATTERN = re.compile(
    r"(?<!`)(?P<ticks>`+)(?!`)(?:(?!\n[ \t]*\n).)+?(?<!`)(?P=ticks)(?!`)",
    re.DOTALL,
)

# Lines indented by four spaces or a tab, after a blank line or at the start
INDENTED_CODE_PATTERN = re.compile(
    r"(?:\A|\n[ \t]*\n)"
    r"(?P<code>(?:(?: {4}|\t)[^\n]*(?:\n|\Z)|[ \t]*\n(?=(?: {4}|\t)))+)"
)


class _Token(NamedTuple):
    start: int
    end: int
    kind: str
    params: dict[str, str]
    closing: bool
    self_closing: bool


def parse_params(args: str) -> dict[str, str]:
    """Parse a shortcode argument list into a name -> value mapping."""
    params: dict[str, str] = {}
    position = 0
    for m in PARAM_PATTERN.finditer(args):
        if m.group("dq") is not None:
            value = re.sub(r"\\(.)", r"\1", m.group("dq"))
        elif m.group("sq") is not None:
            value = m.group("sq")
        elif m.group("bq") is not None:
            value = m.group("bq")
        else:
            value = m.group("bare")
        key = m.group("key")
        if key is None:
            key = str(position)
            position += 1
        params[key] = value
    return params


def _code_spans(body: str) -> list[tuple[int, int]]:
    spans = [(m.start(), m.end()) for m in FENCE_PATTERN.finditer(body)]
    spans.extend((m.start(), m.end()) for m in CODE_SPAN_PATTERN.finditer(body))
    spans.extend(
        (m.start("code"), m.end("code")) for m in INDENTED_CODE_PATTERN.finditer(body)
    )
    return spans


def _inside(spans: list[tuple[int, int]], pos: int) -> bool:
    return any(start <= pos < end for start, end in spans)


def _tokenize(body: str) -> list[_Token]:
    spans = _code_spans(body)
    tokens = []
    for m in TOKEN_PATTERN.finditer(body):
        if _inside(spans, m.start()):
            continue
        content = m.group("angle") if m.group("angle") is not None else m.group("percent")
        # {{</* ... */>}} is an escaped shortcode shown literally
        if content.startswith("/*"):
            continue
        closing = content.startswith("/")
        if closing:
            content = content[1:].lstrip()
        self_closing = not closing and content.endswith("/")
        if self_closing:
            content = content[:-1].rstrip()
        kind_match = KIND_PATTERN.match(content)
        if not kind_match:
            continue
        params = {} if closing else parse_params(content[kind_match.end() :])
        tokens.append(
            _Token(
                start=m.start(),
                end=m.end(),
                kind=kind_match.group(0),
                params=params,
                closing=closing,
                self_closing=self_closing,
            )
        )
    return tokens


def _find_closing(tokens: list[_Token], i: int) -> int | None:
    kind = tokens[i].kind
    depth = 0
    for j in range(i + 1, len(tokens)):
        tok = tokens[j]
        if tok.kind != kind or tok.self_closing:
            continue
        if tok.closing:
            if depth == 0:
                return j
            depth -= 1
        else:
            depth += 1
    return None


def find_directives(body: str) -> list[ShortcodeDirective]:
    """Tokenize every shortcode directive in ``body``, in offset order.

    Stray closing tags are left in the markup.
    """
    tokens = _tokenize(body)
    directives = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.closing:
            i += 1
            continue

        end = tok.end
        inner = None
        j = None if tok.self_closing else _find_closing(tokens, i)
        if j is not None:
            end = tokens[j].end
            inner = body[tok.end : tokens[j].start]

        directives.append(
            ShortcodeDirective(
                kind=tok.kind,
                params=tok.params,
                offset=tok.start,
                end=end,
                raw=body[tok.start : end],
                inner=inner,
            )
        )
        i = j + 1 if j is not None else i + 1
    return directives
