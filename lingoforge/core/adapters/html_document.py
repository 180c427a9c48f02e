"""
HTML segment extraction with lossless serialization.

The page is scanned with ``html.parser.HTMLParser``; for every leaf block
element and every translatable attribute the absolute character offsets
in the original text are recorded. ``serialize_html`` splices translated
values into those ranges, so markup outside the segments is never touched.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Dict, List, Optional, Tuple

from .html_sanitizer import escape_attribute, sanitize_fragment
from .upload import strip_bom

logger = logging.getLogger(__name__)

# Block-level elements whose content is a text segment
BLOCK_TAGS = frozenset({
    'p', 'div', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'li', 'td', 'th', 'dt',
    'dd', 'figcaption', 'blockquote', 'caption', 'summary', 'label', 'option',
    'title', 'button',
})

# Nothing inside these is extracted
SKIP_TAGS = frozenset({'script', 'style', 'svg', 'pre', 'code', 'noscript'})

# Inline tags kept literally inside a segment's source text
INLINE_TAGS = frozenset({
    'b', 'i', 'em', 'strong', 'a', 'span', 'code', 'sub', 'sup', 'mark',
    'small', 'abbr', 'time', 'cite', 'q', 'u', 's', 'del', 'ins', 'br',
})

TRANSLATABLE_ATTRIBUTES = ('alt', 'title', 'placeholder', 'aria-label')

VOID_TAGS = frozenset({
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input', 'link',
    'meta', 'param', 'source', 'track', 'wbr',
})

_P_CLOSERS = frozenset({
    'p', 'div', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'ul', 'ol', 'dl', 'pre',
    'table', 'blockquote', 'form', 'section', 'article', 'aside', 'header',
    'footer', 'nav', 'figure', 'hr', 'address', 'fieldset', 'main', 'details',
})

# Opening tag -> open tags it closes implicitly
IMPLIED_END: Dict[str, frozenset] = {
    'li': frozenset({'li', 'p'}),
    'dt': frozenset({'dt', 'dd', 'p'}),
    'dd': frozenset({'dt', 'dd', 'p'}),
    'td': frozenset({'td', 'th'}),
    'th': frozenset({'td', 'th'}),
    'tr': frozenset({'tr', 'td', 'th'}),
    'option': frozenset({'option'}),
    'body': frozenset({'head'}),
}

_FULL_DOCUMENT_RE = re.compile(r'<!doctype\s|<html[\s>]', re.IGNORECASE)
_ATTRIBUTE_RE = re.compile(
    r'([^\s"\'>/=]+)(?:\s*=\s*(?:"([^"]*)"|\'([^\']*)\'|([^\s"\'>]+)))?')
_TAG_NAME_RE = re.compile(r'<\s*[^\s/>]+')
_WHITESPACE_RE = re.compile(r'\s+')

TEXT = "text"
ATTRIBUTE = "attribute"


@dataclass
class HtmlSegment:
    """One translatable piece of a page.

    ``start``/``end`` delimit the inner markup of a text segment or the
    whole ``name="value"`` pair of an attribute segment.
    """
    index: int
    source_text: str
    kind: str
    tag_name: str
    marker_id: str
    start: int
    end: int
    attribute_name: Optional[str] = None


@dataclass
class ParsedHtml:
    original_html: str
    bom: str
    body: str
    segments: List[HtmlSegment] = field(default_factory=list)
    head_content: Optional[str] = None
    is_full_document: bool = False


def clean_inner_html(markup: str) -> str:
    """Collapse runs of whitespace; inline tags stay as written."""
    return _WHITESPACE_RE.sub(' ', markup).strip()


@dataclass
class _Open:
    tag: str
    start: int
    inner_start: int
    nested_block: bool = False
    has_text: bool = False


class _SegmentScanner(HTMLParser):
    def __init__(self, text: str):
        super().__init__(convert_charrefs=False)
        self.text = text
        self.line_starts = [0] + [m.end() for m in re.finditer('\n', text)]
        self.stack: List[_Open] = []
        self.text_spans: List[Tuple[str, int, int]] = []
        self.attribute_spans: List[Tuple[str, str, str, int, int]] = []
        self.head_span: Optional[Tuple[int, int]] = None

    def _offset(self) -> int:
        line, column = self.getpos()
        return self.line_starts[line - 1] + column

    def _in_skipped(self) -> bool:
        return any(item.tag in SKIP_TAGS for item in self.stack)

    def _close(self, item: _Open, inner_end: int) -> None:
        if item.tag == 'head' and self.head_span is None:
            self.head_span = (item.inner_start, inner_end)
        if item.tag not in BLOCK_TAGS or item.nested_block or not item.has_text:
            return
        if self._in_skipped():
            return
        self.text_spans.append((item.tag, item.inner_start, inner_end))

    def _pop_until(self, index: int, inner_end: int) -> None:
        while len(self.stack) > index:
            self._close(self.stack.pop(), inner_end)

    def _collect_attributes(self, tag: str, start: int, raw_tag: str) -> None:
        if tag in SKIP_TAGS or self._in_skipped():
            return
        name_match = _TAG_NAME_RE.match(raw_tag)
        position = name_match.end() if name_match else 0
        for match in _ATTRIBUTE_RE.finditer(raw_tag, position):
            name = match.group(1).lower()
            if name not in TRANSLATABLE_ATTRIBUTES:
                continue
            raw_value = next((g for g in match.group(2, 3, 4) if g is not None), None)
            if raw_value is None:
                continue
            value = html.unescape(raw_value)
            if not value.strip():
                continue
            self.attribute_spans.append((tag, name, value, start + match.start(), start + match.end()))

    def handle_starttag(self, tag, attrs):
        start = self._offset()
        raw_tag = self.get_starttag_text() or ''
        closes = IMPLIED_END.get(tag, frozenset())
        if tag in _P_CLOSERS:
            closes = closes | {'p'}
        while self.stack and self.stack[-1].tag in closes:
            self._close(self.stack.pop(), start)

        self._collect_attributes(tag, start, raw_tag)
        if tag in BLOCK_TAGS:
            for item in self.stack:
                if item.tag in BLOCK_TAGS:
                    item.nested_block = True
        if tag not in VOID_TAGS:
            self.stack.append(_Open(tag, start, start + len(raw_tag)))

    def handle_startendtag(self, tag, attrs):
        start = self._offset()
        self._collect_attributes(tag, start, self.get_starttag_text() or '')

    def handle_endtag(self, tag):
        start = self._offset()
        for index in range(len(self.stack) - 1, -1, -1):
            if self.stack[index].tag == tag:
                self._pop_until(index, start)
                return

    def _mark_text(self):
        if self._in_skipped():
            return
        for item in self.stack:
            item.has_text = True

    def handle_data(self, data):
        if data.strip():
            self._mark_text()

    def handle_entityref(self, name):
        if name != 'nbsp':
            self._mark_text()

    def handle_charref(self, name):
        if name.lower() not in ('160', 'xa0'):
            self._mark_text()

    def finish(self) -> None:
        self.close()
        self._pop_until(0, len(self.text))


def parse_html(source: str) -> ParsedHtml:
    """Extract text segments (numbered first) and attribute segments."""
    bom, body = strip_bom(source)
    parsed = ParsedHtml(original_html=source, bom=bom, body=body)
    if not body.strip():
        return parsed
    parsed.is_full_document = _FULL_DOCUMENT_RE.search(body) is not None

    scanner = _SegmentScanner(body)
    scanner.feed(body)
    scanner.finish()
    if scanner.head_span:
        parsed.head_content = body[scanner.head_span[0]:scanner.head_span[1]]

    index = 1
    for tag, start, end in sorted(scanner.text_spans, key=lambda s: s[1]):
        parsed.segments.append(HtmlSegment(
            index=index, source_text=clean_inner_html(body[start:end]), kind=TEXT,
            tag_name=tag, marker_id=f"seg-{index}", start=start, end=end))
        index += 1
    for tag, name, value, start, end in scanner.attribute_spans:
        parsed.segments.append(HtmlSegment(
            index=index, source_text=value, kind=ATTRIBUTE, tag_name=tag,
            marker_id=f"attr-{index}", start=start, end=end, attribute_name=name))
        index += 1
    return parsed


def _fold_attribute(splice: Tuple[int, int, str], segment: HtmlSegment, value: str) -> Tuple[int, int, str]:
    """Apply an attribute translation inside the rewritten markup of its enclosing block.

    The block translation must still carry the original ``name="value"`` pair
    exactly once; otherwise the attribute keeps whatever the block says.
    """
    start, end, replacement = splice
    original = f'{segment.attribute_name}="{escape_attribute(segment.source_text)}"'
    if replacement.count(original) != 1:
        logger.warning(f"Dropped translation of {segment.attribute_name} on <{segment.tag_name}> "
                       f"(segment {segment.index}): the enclosing block translation no longer contains it")
        return splice
    translated = f'{segment.attribute_name}="{escape_attribute(value)}"'
    return start, end, replacement.replace(original, translated)


def serialize_html(parsed: ParsedHtml, translations: Dict[int, str]) -> str:
    """Splice translations (segment index -> text) into the original page.

    Text goes through the inline sanitizer; attribute values are escaped
    and written double-quoted. Values equal to the source are skipped.
    """
    if not translations:
        return parsed.original_html

    splices = []
    for segment in parsed.segments:
        value = translations.get(segment.index)
        if value is None or value == segment.source_text:
            continue
        if segment.kind == TEXT:
            splices.append((segment.start, segment.end, sanitize_fragment(value)))
            continue
        block = next((i for i, (start, end, _) in enumerate(splices) if start <= segment.start < end), None)
        if block is not None:
            splices[block] = _fold_attribute(splices[block], segment, value)
            continue
        original_name = parsed.body[segment.start:segment.end].split('=', 1)[0].strip()
        splices.append((segment.start, segment.end, f'{original_name}="{escape_attribute(value)}"'))

    if not splices:
        return parsed.original_html
    out = []
    cursor = 0
    for start, end, replacement in sorted(splices):
        out.append(parsed.body[cursor:start])
        out.append(replacement)
        cursor = end
    out.append(parsed.body[cursor:])
    return parsed.bom + ''.join(out)
