"""
XML helper utilities shared by the XLIFF and DOCX adapters

lxml validates the document and yields unescaped values; the span helpers
locate the same elements in the raw text so edits can be spliced in
without re-serializing (and thereby reformatting) the whole document.
"""
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

from lxml import etree

from ..exceptions import FormatParseError

_SECTION_RE = re.compile(r'<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>', re.DOTALL)


def secure_parser() -> etree.XMLParser:
    """Parser that never resolves external entities or touches the network."""
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def parse_xml(raw: str, what: str) -> etree._Element:
    try:
        return etree.fromstring(raw.encode('utf-8'), secure_parser())
    except etree.XMLSyntaxError as e:
        raise FormatParseError(f"Invalid {what}: {e}")


def local_name(element: etree._Element) -> str:
    """Tag name without namespace; empty for comments and processing instructions."""
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element).localname


def iter_local(element: etree._Element, name: str) -> Iterator[etree._Element]:
    """Descendants (document order) whose local name matches."""
    for child in element.iter():
        if local_name(child) == name:
            yield child


def find_child(element: etree._Element, name: str) -> Optional[etree._Element]:
    for child in element:
        if local_name(child) == name:
            return child
    return None


def element_text(element: Optional[etree._Element]) -> Optional[str]:
    if element is None:
        return None
    return "".join(element.itertext())


def escape_xml_text(text: str) -> str:
    return (text.replace("&", "&amp;")
                .replace("<", "&lt;")
                .replace(">", "&gt;")
                .replace('"', "&quot;"))


def mask_sections(raw: str) -> str:
    """Blank out comments, CDATA and PIs while keeping every offset intact."""
    return _SECTION_RE.sub(lambda m: " " * len(m.group(0)), raw)


@dataclass
class ElementSpan:
    """Offsets of one element in the raw text.

    ``inner_start == inner_end`` for an empty element; for a self-closing
    element both equal ``end`` and ``self_closing`` is set.
    """
    start: int
    end: int
    open_tag: str
    inner_start: int
    inner_end: int
    self_closing: bool = False


def _open_tag_re(tag: str) -> re.Pattern:
    return re.compile(r'<' + re.escape(tag) + r'(?=[\s/>])[^>]*>')


def find_elements(masked: str, raw: str, tag: str, start: int = 0,
                  end: Optional[int] = None) -> List[ElementSpan]:
    """Non-nested elements named ``tag`` between start and end."""
    end = len(masked) if end is None else end
    open_re = _open_tag_re(tag)
    close_tag = f"</{tag}>"
    spans = []
    pos = start
    while True:
        match = open_re.search(masked, pos, end)
        if not match:
            break
        open_tag = raw[match.start():match.end()]
        if open_tag.endswith("/>"):
            spans.append(ElementSpan(match.start(), match.end(), open_tag,
                                     match.end(), match.end(), self_closing=True))
            pos = match.end()
            continue
        close = masked.find(close_tag, match.end(), end)
        if close < 0:
            raise FormatParseError(f"Unclosed <{tag}> element at offset {match.start()}")
        spans.append(ElementSpan(match.start(), close + len(close_tag), open_tag,
                                 match.end(), close))
        pos = close + len(close_tag)
    return spans


def find_element(masked: str, raw: str, tag: str, start: int, end: int) -> Optional[ElementSpan]:
    spans = find_elements(masked, raw, tag, start, end)
    return spans[0] if spans else None


def expanded_open_tag(span: ElementSpan) -> str:
    """Opening tag usable with a closing tag (``<x/>`` becomes ``<x>``)."""
    if span.self_closing:
        return re.sub(r'\s*/>$', '>', span.open_tag)
    return span.open_tag


def apply_splices(raw: str, splices: List[tuple]) -> str:
    """Apply (start, end, replacement) splices; ranges must not overlap."""
    if not splices:
        return raw
    parts = []
    pos = 0
    for start, end, replacement in sorted(splices, key=lambda s: (s[0], s[1])):
        parts.append(raw[pos:start])
        parts.append(replacement)
        pos = end
    parts.append(raw[pos:])
    return "".join(parts)
