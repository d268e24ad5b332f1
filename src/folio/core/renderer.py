"""Body rendering with pluggable shortcode resolution."""

import logging
from collections.abc import Callable, Iterator, Mapping

from markdown import Markdown
from markdown.extensions import Extension
from markdown.inlinepatterns import SimpleTagInlineProcessor
from markdown.preprocessors import Preprocessor
from markupsafe import escape
from pydantic import BaseModel, ConfigDict

from folio.core.errors import UnresolvedDirectiveWarning
from folio.core.models import (
    DirectiveSegment,
    Document,
    MarkupSegment,
    PlaceholderSegment,
    RenderResult,
    Segment,
    ShortcodeDirective,
)
from folio.core.shortcodes import find_directives

logger = logging.getLogger(__name__)

Resolver = Callable[[ShortcodeDirective], str]

# Pattern for strikethrough: ~~text~~
# Group 2 must contain the text (SimpleTagInlineProcessor expectation)
STRIKETHROUGH_PATTERN = r"(~~)(.*?)~~"


class ResolverRegistry(Mapping[str, Resolver]):
    """Maps directive kinds to resolver callables.

    Resolvers receive the directive and return an HTML fragment::

        registry = ResolverRegistry()

        @registry.register("youtube")
        def youtube(directive):
            return f"<iframe src=...{directive.params['id']}>"
    """

    def __init__(self, resolvers: Mapping[str, Resolver] | None = None):
        self._resolvers: dict[str, Resolver] = dict(resolvers or {})

    def register(self, kind: str, resolver: Resolver | None = None):
        """Register ``resolver`` for ``kind``; usable as a decorator."""
        if resolver is not None:
            self._resolvers[kind] = resolver
            return resolver

        def decorator(func: Resolver) -> Resolver:
            self._resolvers[kind] = func
            return func

        return decorator

    def __getitem__(self, kind: str) -> Resolver:
        return self._resolvers[kind]

    def __iter__(self) -> Iterator[str]:
        return iter(self._resolvers)

    def __len__(self) -> int:
        return len(self._resolvers)


def placeholder_html(directive: ShortcodeDirective) -> str:
    """Markup shown in place of a directive that could not be resolved."""
    return (
        f'<div class="shortcode-unresolved" data-kind="{escape(directive.kind)}">'
        f"<em>Embed unavailable: {escape(directive.kind)}</em></div>"
    )


def _resolve(
    directive: ShortcodeDirective, resolvers: Mapping[str, Resolver]
) -> tuple[Segment, UnresolvedDirectiveWarning | None]:
    resolver = resolvers.get(directive.kind)
    if resolver is None:
        warning = UnresolvedDirectiveWarning(directive.kind, directive.offset)
    else:
        try:
            html = resolver(directive)
        except Exception as e:
            warning = UnresolvedDirectiveWarning(
                directive.kind, directive.offset, f"resolver failed: {e}"
            )
        else:
            return DirectiveSegment(directive=directive, html=html), None
    segment = PlaceholderSegment(directive=directive, html=placeholder_html(directive))
    return segment, warning


def render(source: Document | str, resolvers: Mapping[str, Resolver]) -> RenderResult:
    """Split a body into markup and directive segments.

    Directives whose kind has no resolver, or whose resolver raises, become a
    placeholder segment with one ``UnresolvedDirectiveWarning`` each. Markup
    between directives is passed through unchanged.
    """
    body = source.body if isinstance(source, Document) else source
    segments: list[Segment] = []
    warnings: list[UnresolvedDirectiveWarning] = []
    pos = 0
    for directive in find_directives(body):
        if directive.offset > pos:
            segments.append(MarkupSegment(text=body[pos : directive.offset], offset=pos))
        segment, warning = _resolve(directive, resolvers)
        segments.append(segment)
        if warning is not None:
            warnings.append(warning)
        pos = directive.end
    if pos < len(body):
        segments.append(MarkupSegment(text=body[pos:], offset=pos))
    return RenderResult(segments=tuple(segments), warnings=tuple(warnings))


class StrikethroughExtension(Extension):
    """Markdown extension for ~~strikethrough~~ text."""

    def extendMarkdown(self, md: Markdown) -> None:
        """Add strikethrough pattern to markdown parser."""
        md.inlinePatterns.register(
            SimpleTagInlineProcessor(STRIKETHROUGH_PATTERN, "del"),
            "strikethrough",
            50,
        )


class ShortcodePreprocessor(Preprocessor):
    """Replaces shortcode directives with their resolved HTML.

    Directive HTML comes from a ``render`` of the original body, matched to
    the directives found here in order. Markdown has already normalized the
    text at this point, so its offsets differ from the body's.
    """

    def __init__(self, md: Markdown, resolvers: Mapping[str, Resolver], resolved: list[Segment]):
        super().__init__(md)
        self.resolvers = resolvers
        self.resolved = resolved

    def run(self, lines: list[str]) -> list[str]:
        """Process lines, swapping directives for stashed HTML."""
        text = "\n".join(lines)
        if "{{" not in text:
            return lines

        pending = list(self.resolved)
        parts = []
        pos = 0
        for directive in find_directives(text):
            if pending and pending[0].directive.kind == directive.kind:
                segment = pending.pop(0)
            else:
                segment, _ = _resolve(directive, self.resolvers)
            parts.append(text[pos : directive.offset])
            # Stash raw HTML so Markdown leaves it untouched
            parts.append(self.md.htmlStash.store(segment.html))
            pos = directive.end
        parts.append(text[pos:])
        return "".join(parts).split("\n")


class ShortcodeExtension(Extension):
    """Markdown extension for ``{{< kind ... >}}`` directives."""

    def __init__(
        self,
        resolvers: Mapping[str, Resolver] | None = None,
        rendered: RenderResult | None = None,
        **kwargs,
    ):
        self.resolvers = resolvers if resolvers is not None else {}
        self.rendered = rendered if rendered is not None else RenderResult()
        super().__init__(**kwargs)

    def extendMarkdown(self, md: Markdown) -> None:
        """Add shortcode preprocessor ahead of fenced code handling."""
        resolved = [s for s in self.rendered.segments if not isinstance(s, MarkupSegment)]
        md.preprocessors.register(
            ShortcodePreprocessor(md, self.resolvers, resolved), "shortcodes", 28
        )


class HtmlRender(BaseModel):
    """A body rendered to HTML."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    html: str
    toc: str = ""
    warnings: tuple[UnresolvedDirectiveWarning, ...] = ()


def create_parser(shortcodes: ShortcodeExtension) -> Markdown:
    """Create a Markdown parser with shortcode support."""
    return Markdown(
        extensions=[
            "extra",  # Includes: abbreviations, attr_list, def_list, fenced_code, footnotes, md_in_html, tables
            "sane_lists",
            "smarty",
            "toc",
            "pymdownx.tasklist",
            StrikethroughExtension(),
            shortcodes,
        ]
    )


def render_html(source: Document | str, resolvers: Mapping[str, Resolver]) -> HtmlRender:
    """Render a body to HTML with its table of contents.

    Warnings are those of ``render`` for the same body, offsets included.
    """
    body = source.body if isinstance(source, Document) else source
    rendered = render(body, resolvers)
    parser = create_parser(ShortcodeExtension(resolvers=resolvers, rendered=rendered))
    html = parser.convert(body)
    return HtmlRender(
        html=html,
        toc=getattr(parser, "toc", ""),
        warnings=rendered.warnings,
    )
