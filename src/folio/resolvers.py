"""Stock shortcode resolvers for embedded media."""

from markupsafe import escape

from folio.core.models import ShortcodeDirective
from folio.core.renderer import ResolverRegistry


def _param(directive: ShortcodeDirective, *names: str) -> str | None:
    for name in names:
        value = directive.params.get(name)
        if value:
            return value
    return None


def _video_frame(src: str, label: str, kind: str) -> str:
    return (
        f'<div class="video-embed video-embed-{kind}">'
        f'<iframe src="{escape(src)}" title="{escape(label)}" '
        'allow="accelerometer; encrypted-media; fullscreen; picture-in-picture" '
        'allowfullscreen loading="lazy"></iframe></div>'
    )


def youtube(directive: ShortcodeDirective) -> str:
    """``{{< youtube id="..." label="..." >}}`` or ``{{< youtube ID >}}``."""
    video_id = _param(directive, "id", "0")
    if video_id is None:
        raise ValueError("youtube shortcode needs an id")
    label = _param(directive, "label", "title") or "YouTube video"
    return _video_frame(
        f"https://www.youtube-nocookie.com/embed/{video_id}", label, "youtube"
    )


def vimeo(directive: ShortcodeDirective) -> str:
    """``{{< vimeo id="..." >}}`` or ``{{< vimeo ID >}}``."""
    video_id = _param(directive, "id", "0")
    if video_id is None:
        raise ValueError("vimeo shortcode needs an id")
    label = _param(directive, "label", "title") or "Vimeo video"
    return _video_frame(f"https://player.vimeo.com/video/{video_id}", label, "vimeo")


def figure(directive: ShortcodeDirective) -> str:
    """``{{< figure src="..." alt="..." caption="..." >}}``."""
    src = _param(directive, "src", "0")
    if src is None:
        raise ValueError("figure shortcode needs a src")
    alt = _param(directive, "alt") or ""
    caption = _param(directive, "caption", "title")
    parts = [f'<figure><img src="{escape(src)}" alt="{escape(alt)}" loading="lazy">']
    if caption:
        parts.append(f"<figcaption>{escape(caption)}</figcaption>")
    parts.append("</figure>")
    return "".join(parts)


def default_resolvers() -> ResolverRegistry:
    """Registry with the stock media resolvers."""
    return ResolverRegistry({"youtube": youtube, "vimeo": vimeo, "figure": figure})
