"""
XLIFF 1.2 document model with lossless serialization.

``parse_xliff`` validates the document with lxml and records, for every
trans-unit, where its source, target and note live in the raw text.
``serialize_xliff`` rewrites only the targets and notes that changed, so
element order, attribute order, whitespace and the tool block are kept
byte for byte.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..exceptions import FormatParseError
from .xml_helpers import (
    ElementSpan,
    apply_splices,
    element_text,
    escape_xml_text,
    expanded_open_tag,
    find_child,
    find_element,
    find_elements,
    iter_local,
    local_name,
    mask_sections,
    parse_xml,
)

UnitKey = Tuple[int, int]  # (file index, unit index within file)


@dataclass
class XliffTool:
    tool_id: str
    name: str
    version: str
    build_num: str


@dataclass
class XliffUnit:
    """One trans-unit and its location in the raw text"""
    id: str
    source: str
    target: Optional[str]
    note: Optional[str]
    state: Optional[str]
    span: ElementSpan
    source_span: ElementSpan
    target_span: Optional[ElementSpan] = None
    note_span: Optional[ElementSpan] = None
    indent: str = ""


@dataclass
class XliffFile:
    original: str
    source_language: str
    target_language: str
    datatype: str
    tool: Optional[XliffTool] = None
    units: List[XliffUnit] = field(default_factory=list)


@dataclass
class XliffDocument:
    version: str
    files: List[XliffFile]
    raw: str


def _line_indent(raw: str, position: int) -> str:
    """Whitespace between the previous tag and ``position``."""
    start = position
    while start > 0 and raw[start - 1].isspace():
        start -= 1
    return raw[start:position]


def parse_xliff(raw: str) -> XliffDocument:
    root = parse_xml(raw, "XLIFF")
    if local_name(root) != "xliff":
        raise FormatParseError(f"Expected <xliff> root element, found <{local_name(root)}>", "xcloc")

    files: List[XliffFile] = []
    parsed_units = []
    for file_el in iter_local(root, "file"):
        tool = None
        for tool_el in iter_local(file_el, "tool"):
            tool = XliffTool(
                tool_id=tool_el.get("tool-id", ""),
                name=tool_el.get("tool-name", ""),
                version=tool_el.get("tool-version", ""),
                build_num=tool_el.get("build-num", ""),
            )
            break
        xliff_file = XliffFile(
            original=file_el.get("original", ""),
            source_language=file_el.get("source-language", ""),
            target_language=file_el.get("target-language", ""),
            datatype=file_el.get("datatype") or "plaintext",
            tool=tool,
        )
        files.append(xliff_file)
        for unit_el in iter_local(file_el, "trans-unit"):
            parsed_units.append((xliff_file, unit_el))

    masked = mask_sections(raw)
    unit_spans = find_elements(masked, raw, "trans-unit")
    if len(unit_spans) != len(parsed_units):
        raise FormatParseError(
            f"Unsupported XLIFF layout: found {len(parsed_units)} trans-units "
            f"but located {len(unit_spans)} in the text", "xcloc")

    for (xliff_file, unit_el), span in zip(parsed_units, unit_spans):
        target_el = find_child(unit_el, "target")
        note_el = find_child(unit_el, "note")

        body_end = masked.find("<alt-trans", span.inner_start, span.inner_end)
        if body_end < 0:
            body_end = span.inner_end
        source_span = find_element(masked, raw, "source", span.inner_start, body_end)
        if source_span is None:
            raise FormatParseError(f"trans-unit {unit_el.get('id')!r} has no <source>", "xcloc")
        target_span = find_element(masked, raw, "target", span.inner_start, body_end) \
            if target_el is not None else None
        note_span = find_element(masked, raw, "note", span.inner_start, body_end) \
            if note_el is not None else None

        xliff_file.units.append(XliffUnit(
            id=unit_el.get("id", ""),
            source=element_text(find_child(unit_el, "source")) or "",
            target=element_text(target_el),
            note=element_text(note_el),
            state=target_el.get("state") if target_el is not None else None,
            span=span,
            source_span=source_span,
            target_span=target_span,
            note_span=note_span,
            indent=_line_indent(raw, source_span.start),
        ))

    return XliffDocument(version=root.get("version", "1.2"), files=files, raw=raw)


def _element(open_tag: str, name: str, value: str) -> str:
    return f"{open_tag}{escape_xml_text(value)}</{name}>"


def _unit_splices(raw: str, unit: XliffUnit, target: Optional[str], note: Optional[str]) -> List[tuple]:
    splices = []
    inserted_after_source = []

    if target is not None and target != (unit.target or ""):
        if unit.target_span is not None:
            span = unit.target_span
            if target:
                splices.append((span.start, span.end, _element(expanded_open_tag(span), "target", target)))
            else:
                gap = _line_indent(raw, span.start)
                splices.append((span.start - len(gap), span.end, ""))
        elif target:
            inserted_after_source.append(unit.indent + _element("<target>", "target", target))

    if note is not None and note != (unit.note or ""):
        if unit.note_span is not None:
            span = unit.note_span
            splices.append((span.start, span.end, _element(expanded_open_tag(span), "note", note)))
        elif note:
            new_note = unit.indent + _element("<note>", "note", note)
            if unit.target_span is not None and not inserted_after_source:
                splices.append((unit.target_span.end, unit.target_span.end, new_note))
            else:
                inserted_after_source.append(new_note)

    if inserted_after_source:
        position = unit.source_span.end
        splices.append((position, position, "".join(inserted_after_source)))
    return splices


def serialize_xliff(doc: XliffDocument,
                    targets: Optional[Dict[UnitKey, str]] = None,
                    notes: Optional[Dict[UnitKey, str]] = None) -> str:
    """Return the raw document with the given targets and notes applied.

    An empty target removes the ``<target>`` element: its absence marks the
    unit as untranslated. Keys not present in the maps are left untouched.
    """
    targets = targets or {}
    notes = notes or {}
    splices: List[tuple] = []
    for file_index, xliff_file in enumerate(doc.files):
        for unit_index, unit in enumerate(xliff_file.units):
            key = (file_index, unit_index)
            if key in targets or key in notes:
                splices.extend(_unit_splices(doc.raw, unit, targets.get(key), notes.get(key)))
    return apply_splices(doc.raw, splices)
