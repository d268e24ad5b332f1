"""Atom feed serialization."""

from datetime import date, datetime, time, timezone
from urllib.parse import quote
from xml.etree.ElementTree import Element, SubElement, tostring

from folio.core.index import SiteIndex

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"


def _timestamp(day: date) -> str:
    return datetime.combine(day, time.min, tzinfo=timezone.utc).isoformat()


def post_url(base_url: str, identifier: str) -> str:
    return f"{base_url.rstrip('/')}/posts/{quote(identifier)}"


def build_atom_feed(
    index: SiteIndex,
    *,
    site_title: str,
    base_url: str,
    limit: int = 20,
    updated: datetime | None = None,
) -> str:
    """Serialize the newest published documents as an Atom feed.

    Entries follow the index's chronological order.
    """
    base = base_url.rstrip("/")
    entries = index.list_chronological(page=1, page_size=max(1, limit)).items

    if updated is not None:
        feed_updated = updated.isoformat()
    elif entries:
        feed_updated = _timestamp(entries[0].publish_date)
    else:
        feed_updated = _timestamp(date(1970, 1, 1))

    root = Element("feed", attrib={"xmlns": ATOM_NAMESPACE})
    SubElement(root, "id").text = f"{base}/"
    SubElement(root, "title").text = site_title
    SubElement(root, "updated").text = feed_updated
    SubElement(root, "link", attrib={"rel": "self", "href": f"{base}/feed.xml"})
    SubElement(root, "link", attrib={"rel": "alternate", "href": f"{base}/"})

    for doc in entries:
        url = post_url(base, doc.identifier)
        entry_el = SubElement(root, "entry")
        SubElement(entry_el, "id").text = url
        SubElement(entry_el, "title").text = doc.title
        SubElement(entry_el, "published").text = _timestamp(doc.publish_date)
        SubElement(entry_el, "updated").text = _timestamp(doc.publish_date)
        SubElement(entry_el, "link", attrib={"rel": "alternate", "href": url})
        for category in sorted(doc.categories):
            SubElement(entry_el, "category", attrib={"term": category})
        for tag in sorted(doc.tags):
            SubElement(
                entry_el,
                "category",
                attrib={"term": tag, "scheme": f"{base}/tags/"},
            )
        if doc.summary:
            SubElement(entry_el, "summary").text = doc.summary

    body = tostring(root, encoding="unicode")
    return f'<?xml version="1.0" encoding="utf-8"?>\n{body}'
