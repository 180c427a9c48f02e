"""
Plain document adapter (.txt, .md, .docx).

Paragraphs become entries with ids ``"1"``, ``"2"``... Markdown code blocks
are numbered like other blocks but are not offered for translation.
"""

from typing import Dict, Optional

from ..exceptions import ExportError, FormatParseError
from ..models import (
    ArchivePayload,
    ExportArtifact,
    SingleFilePayload,
    Term,
    TranslationEntry,
    TranslationResource,
    UploadPayload,
    VirtualFile,
)
from .document_parser import (
    DOCX,
    MD,
    TXT,
    ParsedDocument,
    parse_docx_xml,
    parse_markdown,
    parse_txt,
    serialize_document,
)
from .format_adapter import FormatAdapter
from .upload import decode_text, write_zip

RESOURCE_ID = "doc-main"
DOCUMENT_XML_PATH = "word/document.xml"
MARKDOWN_EXTENSIONS = ('.md', '.markdown')

_EXPORT = {
    TXT: ('.txt', 'text/plain; charset=utf-8'),
    MD: ('.md', 'text/markdown; charset=utf-8'),
    DOCX: ('.docx', 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'),
}


def _find_document_xml(payload: ArchivePayload) -> Optional[VirtualFile]:
    return next((f for f in payload.tree.visible_files() if f.path.endswith(DOCUMENT_XML_PATH)), None)


class DocumentAdapter(FormatAdapter):
    """Adapter for text, Markdown and Word documents."""

    FORMAT_ID = "document"
    DISPLAY_NAME = "Document"
    EXTENSIONS = ('.txt', '.md', '.markdown', '.docx')

    def __init__(self):
        super().__init__()
        self.document: Optional[ParsedDocument] = None
        self.document_xml_path = ""

    @property
    def format_name(self) -> str:
        return self.FORMAT_ID

    @property
    def sub_type(self) -> Optional[str]:
        return self.document.sub_type if self.document else None

    @classmethod
    def detect(cls, payload: UploadPayload) -> float:
        if isinstance(payload, SingleFilePayload):
            name = payload.name.lower()
            return 0.9 if name.endswith(('.txt',) + MARKDOWN_EXTENSIONS) else 0.0
        return 0.95 if _find_document_xml(payload) else 0.0

    def _load(self, payload: UploadPayload) -> None:
        if isinstance(payload, SingleFilePayload):
            text = decode_text(payload.content)
            if payload.name.lower().endswith(MARKDOWN_EXTENSIONS):
                self.document = parse_markdown(text)
            else:
                self.document = parse_txt(text)
            if not any(block.translatable for block in self.document.blocks):
                raise FormatParseError("No translatable content found in the file", self.FORMAT_ID)
        else:
            xml_file = _find_document_xml(payload)
            if xml_file is None:
                raise FormatParseError("No word/document.xml found in the archive", self.FORMAT_ID)
            self.document_xml_path = xml_file.path
            self.document = parse_docx_xml(decode_text(xml_file.content))
            if not self.document.blocks:
                raise FormatParseError("No translatable content found in the Word document", self.FORMAT_ID)

        entries = [
            TranslationEntry(
                id=str(block.index),
                source_text=block.text,
                metadata={'paragraphIndex': block.index, 'kind': block.kind},
            )
            for block in self.document.blocks if block.translatable
        ]
        self.project.resources = [TranslationResource(
            id=RESOURCE_ID,
            label=self.original_file_name or "Document",
            entries=entries,
            source_language=self.source_language or None,
            target_language=self.target_language or None,
        )]
        self.project.metadata = {'subType': self.document.sub_type}
        if self.document.frontmatter:
            self.project.metadata['frontmatter'] = self.document.frontmatter

    def _export(self, terms_by_slug: Dict[str, Term]) -> ExportArtifact:
        resource = self.project.find_resource(RESOURCE_ID)
        if self.document is None or resource is None:
            raise ExportError("No resource found to export", {'format': self.FORMAT_ID})

        translations = {
            int(entry.id): self.resolved_target(entry, terms_by_slug)
            for entry in resource.entries if entry.target_text
        }
        content = serialize_document(self.document, translations).encode('utf-8')
        extension, mime_type = _EXPORT[self.document.sub_type]

        if self.document.sub_type == DOCX:
            files = [(f.path, content if f.path == self.document_xml_path else f.content)
                     for f in self._payload.tree.visible_files()]
            content = write_zip(files)
        return ExportArtifact(
            content=content,
            file_name=self._export_name(extension, 'document', also_strip=('.markdown',)),
            mime_type=mime_type,
        )
