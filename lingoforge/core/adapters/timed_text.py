"""
WebVTT and SRT cue parsing with lossless serialization.

The text is split into blank-line separated blocks. Cue blocks record the
line range of their text so that an edited cue only rewrites those lines;
every other block (header, NOTE, STYLE, REGION, unedited cues) is written
back verbatim.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .upload import strip_bom

VTT = "vtt"
SRT = "srt"

_TS = r'(?:\d{2,}:)?\d{2}:\d{2}[.,]\d{3}'
TIMESTAMP_RE = re.compile(r'^\s*(' + _TS + r')\s*-->\s*(' + _TS + r')')
SKIPPED_BLOCKS = ('NOTE', 'STYLE', 'REGION')


def timestamp_to_ms(timestamp: str) -> int:
    """``HH:MM:SS.mmm`` or ``MM:SS.mmm`` (``,`` accepted) to milliseconds."""
    clock, _, millis = timestamp.strip().replace(',', '.').partition('.')
    parts = [int(p) for p in clock.split(':')]
    if len(parts) == 3:
        hours, minutes, seconds = parts
    else:
        hours, (minutes, seconds) = 0, parts
    return hours * 3600000 + minutes * 60000 + seconds * 1000 + int(millis or 0)


def ms_to_timestamp(ms: int, separator: str = '.') -> str:
    hours, rest = divmod(ms, 3600000)
    minutes, rest = divmod(rest, 60000)
    seconds, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}{separator}{millis:03d}"


@dataclass
class Cue:
    """One subtitle cue.

    ``text_lines`` is the half-open line range holding the cue text; it is
    empty (start == end) for a cue with a timing line only.
    """
    index: int
    cue_id: Optional[str]
    start_timestamp: str
    end_timestamp: str
    settings: str
    text: str
    timing_line: int
    text_lines: Tuple[int, int]

    @property
    def start_ms(self) -> int:
        return timestamp_to_ms(self.start_timestamp)

    @property
    def end_ms(self) -> int:
        return timestamp_to_ms(self.end_timestamp)


@dataclass
class TimedTextDocument:
    kind: str
    bom: str
    lines: List[str]
    newline: str
    header: str = ""
    cues: List[Cue] = field(default_factory=list)


def _content(line: str) -> str:
    return line.rstrip('\r\n')


def _blocks(lines: List[str]) -> List[List[int]]:
    """Line indices of each block; whitespace-only lines separate blocks."""
    blocks: List[List[int]] = []
    current: List[int] = []
    for index, line in enumerate(lines):
        if line.strip():
            current.append(index)
        elif current:
            blocks.append(current)
            current = []
    if current:
        blocks.append(current)
    return blocks


def parse_timed_text(text: str, kind: str = VTT) -> TimedTextDocument:
    bom, body = strip_bom(text)
    lines = body.splitlines(keepends=True)
    doc = TimedTextDocument(kind=kind, bom=bom, lines=lines,
                            newline='\r\n' if '\r\n' in body else '\n')

    blocks = _blocks(lines)
    if kind == VTT and blocks and _content(lines[blocks[0][0]]).lstrip().startswith('WEBVTT'):
        doc.header = '\n'.join(_content(lines[i]) for i in blocks[0])
        blocks = blocks[1:]

    for block in blocks:
        first = _content(lines[block[0]]).strip()
        if first.startswith(SKIPPED_BLOCKS):
            continue

        cue_id = None
        match = TIMESTAMP_RE.match(_content(lines[block[0]]))
        timing_position = 0
        if not match and len(block) >= 2:
            match = TIMESTAMP_RE.match(_content(lines[block[1]]))
            if match:
                cue_id = first
                timing_position = 1
        if not match:
            continue

        timing_line = block[timing_position]
        text_indices = block[timing_position + 1:]
        if text_indices:
            text_range = (text_indices[0], text_indices[-1] + 1)
        else:
            text_range = (timing_line + 1, timing_line + 1)
        doc.cues.append(Cue(
            index=len(doc.cues) + 1,
            cue_id=cue_id,
            start_timestamp=match.group(1),
            end_timestamp=match.group(2),
            settings=_content(lines[timing_line])[match.end():].strip(),
            text='\n'.join(_content(lines[i]) for i in text_indices).strip(),
            timing_line=timing_line,
            text_lines=text_range,
        ))
    return doc


def serialize_timed_text(doc: TimedTextDocument, texts: Dict[int, str]) -> str:
    """Rewrite the text lines of cues whose text changed.

    ``texts`` maps a cue position in ``doc.cues`` to its new text.
    """
    splices: List[Tuple[int, int, str]] = []
    for position, new_text in texts.items():
        if not 0 <= position < len(doc.cues):
            continue
        cue = doc.cues[position]
        if new_text == cue.text:
            continue
        start, end = cue.text_lines
        rendered = doc.newline.join(new_text.split('\n')) if new_text else ''
        if start < end:
            ending = doc.lines[end - 1][len(_content(doc.lines[end - 1])):]
            splices.append((start, end, rendered + ending if rendered else ''))
        elif rendered:
            timing = doc.lines[cue.timing_line]
            if _content(timing) == timing:
                splices.append((start, start, doc.newline + rendered))
            else:
                splices.append((start, start, rendered + doc.newline))

    if not splices:
        return doc.bom + ''.join(doc.lines)
    out = []
    cursor = 0
    for start, end, rendered in sorted(splices):
        out.extend(doc.lines[cursor:start])
        out.append(rendered)
        cursor = end
    out.extend(doc.lines[cursor:])
    return doc.bom + ''.join(out)
