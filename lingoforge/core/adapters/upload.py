"""
Upload payload helpers.

Turns raw uploaded bytes into an ``UploadPayload``, encodes payloads into
the JSON-safe format-data blob, and writes archives back out.
"""

import base64
import io
import zipfile
from typing import Any, Dict, List, Tuple

from ..exceptions import FormatParseError
from ..models import (
    ArchivePayload,
    SingleFilePayload,
    UploadPayload,
    VirtualFile,
    VirtualFileTree,
)

ARCHIVE_SUFFIXES = ('.zip', '.docx')


def payload_from_upload(file_name: str, content: bytes) -> UploadPayload:
    """Build a payload; zip containers are unpacked into a virtual tree."""
    if file_name.lower().endswith(ARCHIVE_SUFFIXES) and zipfile.is_zipfile(io.BytesIO(content)):
        return ArchivePayload(original_file_name=file_name, tree=read_zip(content))
    return SingleFilePayload(name=file_name, content=content)


def read_zip(content: bytes) -> VirtualFileTree:
    files: List[VirtualFile] = []
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                files.append(VirtualFile(path=info.filename, content=archive.read(info)))
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise FormatParseError(f"Failed to read archive: {e}")
    return VirtualFileTree(files=files)


def write_zip(files: List[Tuple[str, bytes]]) -> bytes:
    """Zip (path, content) pairs in the given order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for path, data in files:
            archive.writestr(path, data)
    return buffer.getvalue()


def payload_file_name(payload: UploadPayload) -> str:
    if isinstance(payload, SingleFilePayload):
        return payload.name
    return payload.original_file_name


def decode_text(content: bytes) -> str:
    """Decode UTF-8 keeping a leading BOM as U+FEFF so output can restore it."""
    try:
        return content.decode('utf-8')
    except UnicodeDecodeError as e:
        raise FormatParseError(f"File is not valid UTF-8: {e}")


def strip_bom(text: str) -> Tuple[str, str]:
    """Return (bom, rest)."""
    if text.startswith('\ufeff'):
        return '\ufeff', text[1:]
    return '', text


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


def encode_payload(payload: UploadPayload) -> Dict[str, Any]:
    if isinstance(payload, SingleFilePayload):
        return {'kind': 'single-file', 'name': payload.name, 'content': _b64(payload.content)}
    return {
        'kind': 'archive',
        'originalFileName': payload.original_file_name,
        'files': [{'path': f.path, 'content': _b64(f.content)} for f in payload.tree.files],
    }


def decode_payload(data: Dict[str, Any]) -> UploadPayload:
    try:
        if data['kind'] == 'single-file':
            return SingleFilePayload(name=data['name'], content=base64.b64decode(data['content']))
        files = [VirtualFile(path=f['path'], content=base64.b64decode(f['content']))
                 for f in data['files']]
        return ArchivePayload(original_file_name=data['originalFileName'], tree=VirtualFileTree(files=files))
    except (KeyError, TypeError, ValueError) as e:
        raise FormatParseError(f"Stored format data is corrupt: {e}")
