"""
Gettext PO document with lossless serialization.

polib provides the entries and header metadata. A line scanner walks the
same text and records which lines hold each entry's msgstr (or each
msgstr[n]) so that ``serialize_po`` can rewrite only the values that
changed, keeping comments, wrapping, obsolete entries and newlines intact.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import polib

from ..exceptions import FormatParseError
from .upload import strip_bom

_QUOTED_RE = re.compile(r'^"(.*)"\s*$')
_MSGSTR_RE = re.compile(r'^msgstr(?:\[(\d+)\])?\s*"')
_NPLURALS_RE = re.compile(r'nplurals\s*=\s*(\d+)')

DEFAULT_NPLURALS = 2

# (message index, plural form or None for a singular msgstr)
ValueKey = Tuple[int, Optional[int]]


@dataclass
class PoMessage:
    """A non-obsolete polib entry plus the line spans of its msgstr values"""
    entry: polib.POEntry
    msgstr_lines: Dict[Optional[int], Tuple[int, int]] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Lookup key; msgctxt scopes the msgid with an EOT separator."""
        if self.entry.msgctxt:
            return f"{self.entry.msgctxt}\x04{self.entry.msgid}"
        return self.entry.msgid

    @property
    def is_plural(self) -> bool:
        return bool(self.entry.msgid_plural)

    @property
    def msgid(self) -> str:
        return self.entry.msgid

    @property
    def msgstr(self) -> str:
        return self.entry.msgstr or ""

    @property
    def msgstr_plural(self) -> Dict[int, str]:
        return {int(k): v for k, v in (self.entry.msgstr_plural or {}).items()}

    def value(self, form: Optional[int]) -> str:
        if form is None:
            return self.msgstr
        return self.msgstr_plural.get(form, "")


@dataclass
class PoDocument:
    bom: str
    lines: List[str]
    newline: str
    metadata: Dict[str, str]
    nplurals: int
    messages: List[PoMessage]

    @property
    def language(self) -> str:
        return self.metadata.get('Language', '')


class _Block:
    """Lines of one entry as seen by the scanner"""

    def __init__(self):
        self.has_msgid = False
        self.msgid_parts: List[str] = []
        self.has_msgstr = False
        self.obsolete = False
        self.keyword = None
        self.msgstr_lines: Dict[Optional[int], Tuple[int, int]] = {}
        self.current_form: Optional[int] = None

    @property
    def empty_msgid(self) -> bool:
        return all(part == "" for part in self.msgid_parts)


def _scan_blocks(lines: List[str]) -> List[_Block]:
    """Split the catalog into entries and record msgstr line spans.

    Obsolete entries are dropped; the caller removes the header.
    """
    blocks: List[_Block] = []
    current = _Block()

    def finish():
        nonlocal current
        if current.has_msgid and not current.obsolete:
            blocks.append(current)
        current = _Block()

    for index, raw_line in enumerate(lines):
        line = raw_line.strip()
        if not line:
            finish()
            continue
        if line.startswith('#~'):
            current.obsolete = True
            continue
        if line.startswith('#'):
            if current.has_msgid:
                finish()
            continue
        if line.startswith('msgctxt'):
            if current.has_msgid:
                finish()
            current.keyword = 'msgctxt'
            continue
        if line.startswith('msgid_plural'):
            current.keyword = 'msgid_plural'
            continue
        if line.startswith('msgid'):
            if current.has_msgstr:
                finish()
            current.has_msgid = True
            current.keyword = 'msgid'
            quoted = line[len('msgid'):].strip()
            match = _QUOTED_RE.match(quoted)
            current.msgid_parts.append(match.group(1) if match else quoted)
            continue
        msgstr_match = _MSGSTR_RE.match(line)
        if msgstr_match:
            form = int(msgstr_match.group(1)) if msgstr_match.group(1) is not None else None
            current.has_msgstr = True
            current.keyword = 'msgstr'
            current.current_form = form
            current.msgstr_lines[form] = (index, index + 1)
            continue
        if line.startswith('"'):
            if current.keyword == 'msgid':
                match = _QUOTED_RE.match(line)
                current.msgid_parts.append(match.group(1) if match else line)
            elif current.keyword == 'msgstr':
                start, _ = current.msgstr_lines[current.current_form]
                current.msgstr_lines[current.current_form] = (start, index + 1)
    finish()
    return blocks


def _detect_newline(text: str) -> str:
    return '\r\n' if '\r\n' in text else '\n'


def parse_po(text: str) -> PoDocument:
    """Parse PO text; raises FormatParseError on syntax errors."""
    bom, body = strip_bom(text)
    try:
        catalog = polib.pofile(body)
    except (OSError, ValueError) as e:
        raise FormatParseError(f"Invalid PO file: {e}", "po")

    entries = [entry for entry in catalog if not entry.obsolete]
    lines = body.splitlines(keepends=True)
    blocks = _scan_blocks(lines)
    for position, block in enumerate(blocks):
        if block.empty_msgid:
            del blocks[position]
            break

    if len(blocks) != len(entries):
        raise FormatParseError(
            f"Unsupported PO layout: parsed {len(entries)} entries "
            f"but located {len(blocks)} in the text", "po")

    metadata = dict(catalog.metadata)
    nplurals = DEFAULT_NPLURALS
    match = _NPLURALS_RE.search(metadata.get('Plural-Forms', ''))
    if match:
        nplurals = int(match.group(1))

    messages = [PoMessage(entry=entry, msgstr_lines=block.msgstr_lines)
                for entry, block in zip(entries, blocks)]
    return PoDocument(
        bom=bom,
        lines=lines,
        newline=_detect_newline(body),
        metadata=metadata,
        nplurals=nplurals,
        messages=messages,
    )


def format_msgstr(keyword: str, value: str) -> List[str]:
    """Lines for ``keyword "value"``; multi-line values use the ``""`` lead-in form."""
    if '\n' not in value:
        return [f'{keyword} "{polib.escape(value)}"']
    lines = [f'{keyword} ""']
    pieces = value.split('\n')
    for position, piece in enumerate(pieces):
        part = polib.escape(piece) + ('\\n' if position < len(pieces) - 1 else '')
        if part:
            lines.append(f'"{part}"')
    return lines


def _line_ending(line: str) -> str:
    return line[len(line.rstrip('\r\n')):]


def serialize_po(doc: PoDocument, values: Dict[ValueKey, str]) -> str:
    """Return the catalog text with ``values`` written into their msgstr lines.

    Values equal to the parsed ones are skipped, so an empty map returns the
    input unchanged. Missing plural forms are appended after the entry's
    last msgstr line.
    """
    by_message: Dict[int, List[Tuple[Optional[int], str]]] = {}
    for (message_index, form), value in values.items():
        by_message.setdefault(message_index, []).append((form, value))

    splices: List[Tuple[int, int, str]] = []
    for message_index, message_values in by_message.items():
        if not 0 <= message_index < len(doc.messages):
            continue
        message = doc.messages[message_index]
        missing_forms = []
        for form, value in message_values:
            if value == message.value(form):
                continue
            keyword = 'msgstr' if form is None else f'msgstr[{form}]'
            if form in message.msgstr_lines:
                start, end = message.msgstr_lines[form]
                ending = _line_ending(doc.lines[end - 1])
                rendered = doc.newline.join(format_msgstr(keyword, value)) + ending
                splices.append((start, end, rendered))
            elif value:
                missing_forms.append((form if form is not None else -1, keyword, value))

        if missing_forms and message.msgstr_lines:
            last_end = max(end for _, end in message.msgstr_lines.values())
            at_eof = not _line_ending(doc.lines[last_end - 1])
            rendered = []
            for _, keyword, value in sorted(missing_forms):
                rendered.extend(format_msgstr(keyword, value))
            text = doc.newline.join(rendered)
            text = doc.newline + text if at_eof else text + doc.newline
            splices.append((last_end, last_end, text))

    if not splices:
        return doc.bom + ''.join(doc.lines)

    out = []
    position = 0
    for start, end, rendered in sorted(splices, key=lambda s: (s[0], s[1])):
        out.extend(doc.lines[position:start])
        out.append(rendered)
        position = end
    out.extend(doc.lines[position:])
    return doc.bom + ''.join(out)
