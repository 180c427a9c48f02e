"""
Paragraph extraction for plain text, Markdown and Word documents.

Each block remembers its span in the original text (for DOCX, in
``word/document.xml``) so an edited paragraph is spliced back in place and
everything else is written out unchanged.
"""

import html
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .upload import strip_bom
from .xml_helpers import escape_xml_text, parse_xml

TXT = "txt"
MD = "md"
DOCX = "docx"

HEADING = "heading"
CODE_BLOCK = "code-block"
LIST = "list"
PARAGRAPH = "paragraph"

_PARAGRAPH_BREAK_RE = re.compile(r'(?:[ \t]*\r?\n){2,}')
_FENCE_OPEN_RE = re.compile(r'^```')
_FENCE_CLOSE_RE = re.compile(r'^```\s*$')
_HEADING_RE = re.compile(r'^#{1,6}\s')
_LIST_RE = re.compile(r'^(?:[-*+]|\d+\.)\s', re.MULTILINE)

_DOCX_PARAGRAPH_RE = re.compile(r'<w:p(?:\s[^>]*?)?(?<!/)>[\s\S]*?</w:p>')
_DOCX_TEXT_RE = re.compile(r'<w:t(\s[^>]*?)?(?<!/)>([\s\S]*?)</w:t>')


@dataclass
class DocumentBlock:
    """A paragraph and its [start, end) span in ``ParsedDocument.body``."""
    index: int
    text: str
    start: int
    end: int
    kind: Optional[str] = None

    @property
    def translatable(self) -> bool:
        return self.kind != CODE_BLOCK


@dataclass
class ParsedDocument:
    sub_type: str
    bom: str
    body: str
    newline: str = "\n"
    blocks: List[DocumentBlock] = field(default_factory=list)
    frontmatter: Optional[str] = None


def _trimmed_span(body: str, start: int, end: int):
    while start < end and body[start].isspace():
        start += 1
    while end > start and body[end - 1].isspace():
        end -= 1
    return start, end


def _normalize(text: str) -> str:
    return text.replace('\r\n', '\n')


def _newline_of(text: str) -> str:
    return '\r\n' if '\r\n' in text else '\n'


def parse_txt(source: str) -> ParsedDocument:
    """Paragraphs are separated by one or more blank lines."""
    bom, body = strip_bom(source)
    doc = ParsedDocument(sub_type=TXT, bom=bom, body=body, newline=_newline_of(body))
    cursor = 0
    spans = []
    for match in _PARAGRAPH_BREAK_RE.finditer(body):
        spans.append((cursor, match.start()))
        cursor = match.end()
    spans.append((cursor, len(body)))

    for start, end in spans:
        start, end = _trimmed_span(body, start, end)
        if start < end:
            doc.blocks.append(DocumentBlock(
                index=len(doc.blocks) + 1, text=_normalize(body[start:end]), start=start, end=end))
    return doc


def classify_markdown_block(block: str) -> str:
    if _FENCE_OPEN_RE.match(block):
        return CODE_BLOCK
    if _HEADING_RE.match(block):
        return HEADING
    if _LIST_RE.search(block):
        return LIST
    return PARAGRAPH


def parse_markdown(source: str) -> ParsedDocument:
    """Blocks split on blank lines; front matter and code fences stay intact."""
    bom, body = strip_bom(source)
    doc = ParsedDocument(sub_type=MD, bom=bom, body=body, newline=_newline_of(body))

    offset = len(body) - len(body.lstrip())
    if body.startswith('---', offset):
        closing = body.find('\n---', offset + 3)
        if closing > 0:
            doc.frontmatter = _normalize(body[offset:closing + 4])
            offset = closing + 4

    line_spans = []
    position = offset
    for line in body[offset:].splitlines(keepends=True):
        line_spans.append((position, position + len(line.rstrip('\r\n'))))
        position += len(line)

    groups = []  # (start, end, is_code)
    current: List[tuple] = []
    in_fence = False

    def flush(is_code=False):
        if current:
            groups.append((current[0][0], current[-1][1], is_code))
            current.clear()

    for start, end in line_spans:
        line = body[start:end]
        if not in_fence and _FENCE_OPEN_RE.match(line):
            flush()
            in_fence = True
            current.append((start, end))
        elif in_fence and _FENCE_CLOSE_RE.match(line):
            current.append((start, end))
            flush(is_code=True)
            in_fence = False
        elif in_fence:
            current.append((start, end))
        elif not line.strip():
            flush()
        else:
            current.append((start, end))
    flush(is_code=in_fence)

    for start, end, is_code in groups:
        if not is_code:
            start, end = _trimmed_span(body, start, end)
        if start >= end:
            continue
        text = _normalize(body[start:end])
        doc.blocks.append(DocumentBlock(
            index=len(doc.blocks) + 1, text=text, start=start, end=end,
            kind=CODE_BLOCK if is_code else classify_markdown_block(text)))
    return doc


def _docx_text_runs(paragraph_xml: str) -> List[re.Match]:
    return list(_DOCX_TEXT_RE.finditer(paragraph_xml))


def parse_docx_xml(xml: str) -> ParsedDocument:
    """Paragraphs of ``word/document.xml``; ones without text are skipped."""
    parse_xml(xml, "word/document.xml")
    doc = ParsedDocument(sub_type=DOCX, bom="", body=xml)
    for match in _DOCX_PARAGRAPH_RE.finditer(xml):
        runs = _docx_text_runs(match.group(0))
        text = html.unescape("".join(run.group(2) for run in runs))
        if text.strip():
            doc.blocks.append(DocumentBlock(
                index=len(doc.blocks) + 1, text=text, start=match.start(), end=match.end()))
    return doc


def _rewrite_docx_paragraph(paragraph_xml: str, text: str) -> str:
    """First ``<w:t>`` receives the whole text, later ones are emptied."""
    runs = _docx_text_runs(paragraph_xml)
    out = []
    cursor = 0
    for position, run in enumerate(runs):
        attrs = run.group(1) or ''
        out.append(paragraph_xml[cursor:run.start()])
        if position == 0:
            if 'xml:space="preserve"' not in attrs:
                attrs = ' xml:space="preserve"' + attrs
            out.append(f'<w:t{attrs}>{escape_xml_text(text)}</w:t>')
        else:
            out.append(f'<w:t{attrs}></w:t>')
        cursor = run.end()
    out.append(paragraph_xml[cursor:])
    return ''.join(out)


def serialize_document(doc: ParsedDocument, translations: Dict[int, str]) -> str:
    """Splice translations (block index -> text) into the original body."""
    splices = []
    for block in doc.blocks:
        value = translations.get(block.index)
        if value is None or value == block.text or not block.translatable:
            continue
        if doc.sub_type == DOCX:
            replacement = _rewrite_docx_paragraph(doc.body[block.start:block.end], value)
        else:
            replacement = value.replace('\n', doc.newline) if doc.newline != '\n' else value
        splices.append((block.start, block.end, replacement))

    if not splices:
        return doc.bom + doc.body
    out = []
    cursor = 0
    for start, end, replacement in splices:
        out.append(doc.body[cursor:start])
        out.append(replacement)
        cursor = end
    out.append(doc.body[cursor:])
    return doc.bom + ''.join(out)
