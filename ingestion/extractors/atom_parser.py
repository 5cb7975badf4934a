"""
FPDS ATOM page parser.

Turns one feed page body into ``FeedEntry`` records plus an explicit list of
skipped entries. A page that is not well-formed as a whole is not fatal:
each ``<entry>`` fragment is parsed on its own and only the broken ones are
dropped.
"""

import enum
import hashlib
import html
import re
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Any, Dict, List, Optional, Union

from lxml import etree

from core.exceptions import FeedParseError
from ingestion.transformers import normalizer
from ingestion.transformers.parsers import iso8601_millis, parse_datetime
import logging

logger = logging.getLogger(__name__)

_ENTRY_FRAGMENT = re.compile(rb"<(?:[\w.-]+:)?entry\b.*?</(?:[\w.-]+:)?entry\s*>", re.DOTALL)
_FEED_OPEN_TAG = re.compile(rb"<(?:[\w.-]+:)?feed\b[^>]*>")
_LINK_TAG = re.compile(rb"<(?:[\w.-]+:)?link\b[^>]*>")
_TAG_ATTRIBUTE = re.compile(rb"([\w:.-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")


def _strict_parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


def _recovering_parser() -> etree.XMLParser:
    return etree.XMLParser(recover=True, resolve_entities=False, no_network=True, huge_tree=True)


def strip_namespaces(root: etree._Element) -> etree._Element:
    """Rename every element and attribute to its local name in place."""
    for el in root.iter():
        if not isinstance(el.tag, str):
            continue
        el.tag = etree.QName(el).localname
        namespaced = [k for k in el.attrib if k.startswith("{")]
        for key in namespaced:
            value = el.attrib.pop(key)
            el.set(etree.QName(key).localname, value)
    etree.cleanup_namespaces(root)
    return root


def entry_identity(title: str, modified: datetime) -> str:
    """``sha256(title + "-" + modified as ISO-8601 with milliseconds)``"""
    source = f"{title}-{iso8601_millis(modified)}"
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


class SkipReason(str, enum.Enum):
    MALFORMED_XML = "malformed_xml"
    MISSING_TITLE = "missing_title"
    MISSING_MODIFIED = "missing_modified"
    MISSING_CONTENT = "missing_content"
    DUPLICATE_IN_PAGE = "duplicate_in_page"


@dataclass(frozen=True)
class SkippedEntry:
    index: int
    reason: SkipReason
    detail: Optional[str] = None


@dataclass
class FeedEntry:
    """
    One accepted feed entry.

    Normalized field groups are extracted lazily on first access and then
    cached on the instance.
    """
    title: str
    modified: datetime
    content: etree._Element
    entry_id: str = field(init=False)

    def __post_init__(self):
        self.entry_id = entry_identity(self.title, self.modified)

    @property
    def record_type(self) -> str:
        return self.fields["record_type"]

    @cached_property
    def fields(self) -> Dict[str, Any]:
        return normalizer.extract_all_action_fields(self.content)

    @cached_property
    def references(self) -> Dict[str, Any]:
        return normalizer.extract_references(self.content)

    @cached_property
    def vendor_details(self) -> Optional[Dict[str, Any]]:
        return normalizer.extract_vendor_details(self.content)

    @cached_property
    def treasury_accounts(self) -> List[Dict[str, Any]]:
        return normalizer.extract_treasury_accounts(self.content)

    @cached_property
    def content_sha256(self) -> str:
        return hashlib.sha256(etree.tostring(self.content, with_tail=False)).hexdigest()

    @cached_property
    def document(self) -> Dict[str, Any]:
        return normalizer.content_document(self.content)


@dataclass
class PageParseResult:
    entries: List[FeedEntry] = field(default_factory=list)
    skipped: List[SkippedEntry] = field(default_factory=list)
    next_href: Optional[str] = None
    recovered: bool = False

    @property
    def entry_count(self) -> int:
        """Entries seen on the page, accepted or not."""
        return len(self.entries) + len(self.skipped)


def _child_text(el: etree._Element, name: str) -> Optional[str]:
    child = el.find(name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def read_entry(el: etree._Element, index: int) -> Union[FeedEntry, SkippedEntry]:
    """Validate one namespace-stripped ``<entry>`` element."""
    title = _child_text(el, "title")
    if title is None:
        return SkippedEntry(index, SkipReason.MISSING_TITLE)

    raw_modified = _child_text(el, "modified") or _child_text(el, "updated")
    modified = parse_datetime(raw_modified)
    if modified is None:
        return SkippedEntry(index, SkipReason.MISSING_MODIFIED, raw_modified)

    content = el.find("content")
    document = None
    if content is not None:
        document = next((c for c in content if isinstance(c.tag, str)), None)
    if document is None:
        return SkippedEntry(index, SkipReason.MISSING_CONTENT, title)

    return FeedEntry(title=title, modified=modified, content=document)


def _next_href(root: Optional[etree._Element]) -> Optional[str]:
    if root is None:
        return None
    # Feed-level links only; entries carry their own rel="alternate" links
    for link in root.findall("link"):
        if link.get("rel") == "next" and link.get("href"):
            return link.get("href").strip()
    return None


def _raw_next_href(body: bytes) -> Optional[str]:
    """
    Read the feed's ``rel="next"`` link straight from the bytes.

    Used when the page is not well-formed: the recovering parser drops
    broken entities such as a bare ``&`` inside the href, which would turn
    the next link into a different URL.
    """
    feed_level = _ENTRY_FRAGMENT.sub(b"", body)
    for tag in _LINK_TAG.finditer(feed_level):
        attrs = {}
        for match in _TAG_ATTRIBUTE.finditer(tag.group(0)):
            value = match.group(2) if match.group(2) is not None else match.group(3)
            attrs[match.group(1).decode("ascii", "replace")] = value
        href = attrs.get("href")
        if attrs.get("rel") == b"next" and href and href.strip():
            return html.unescape(href.decode("utf-8", "replace")).strip()
    return None


def _recover_root(body: bytes) -> Optional[etree._Element]:
    if not body.strip():
        return None
    try:
        root = etree.fromstring(body, _recovering_parser())
    except etree.XMLSyntaxError:
        return None
    return strip_namespaces(root) if root is not None else None


def _entry_elements_strict(body: bytes) -> Optional[etree._Element]:
    try:
        root = etree.fromstring(body, _strict_parser())
    except etree.XMLSyntaxError:
        return None
    return strip_namespaces(root)


def _fragment_roots(body: bytes):
    """Yield ``(index, element_or_error)`` for every ``<entry>`` fragment."""
    open_tag = _FEED_OPEN_TAG.search(body)
    # Re-wrap each fragment in the page's own root tag so prefixes stay bound
    prefix = open_tag.group(0) if open_tag else b"<feed>"
    closing = b"</" + re.match(rb"<([\w.:-]+)", prefix).group(1) + b">"

    for index, match in enumerate(_ENTRY_FRAGMENT.finditer(body)):
        try:
            wrapper = etree.fromstring(prefix + match.group(0) + closing, _strict_parser())
        except etree.XMLSyntaxError as e:
            yield index, str(e)
            continue
        strip_namespaces(wrapper)
        yield index, wrapper.find("entry")


def parse_page(body: Union[bytes, str], url: Optional[str] = None) -> PageParseResult:
    """
    Parse a feed page.

    Raises:
        FeedParseError: when the body holds no readable XML and no entry
            fragments at all
    """
    if isinstance(body, str):
        body = body.encode("utf-8")

    result = PageParseResult()
    seen = set()

    def accept(index: int, item: Union[FeedEntry, SkippedEntry]):
        if isinstance(item, SkippedEntry):
            result.skipped.append(item)
        elif item.entry_id in seen:
            result.skipped.append(SkippedEntry(index, SkipReason.DUPLICATE_IN_PAGE, item.entry_id))
        else:
            seen.add(item.entry_id)
            result.entries.append(item)

    root = _entry_elements_strict(body)
    if root is not None:
        for index, el in enumerate(root.iter("entry")):
            accept(index, read_entry(el, index))
        result.next_href = _next_href(root)
    else:
        result.recovered = True
        for index, el in _fragment_roots(body):
            if el is None or isinstance(el, str):
                result.skipped.append(SkippedEntry(index, SkipReason.MALFORMED_XML, el))
                continue
            accept(index, read_entry(el, index))

        recovered_root = _recover_root(body)
        if recovered_root is None and not result.entry_count:
            raise FeedParseError("Feed page is not readable as XML", context={"url": url})
        result.next_href = _raw_next_href(body)

    for skipped in result.skipped:
        logger.warning(
            f"Skipped entry #{skipped.index} ({skipped.reason.value})"
            + (f": {skipped.detail}" if skipped.detail else "")
        )
    return result
