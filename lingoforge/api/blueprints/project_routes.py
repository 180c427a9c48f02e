"""
Project routes: upload (file or URL), read, entry updates, PO tools, glossary and export
"""
import io
import logging

from flask import Blueprint, request, jsonify, send_file

from lingoforge.config import MAX_UPLOAD_BYTES
from lingoforge.api.services.url_fetch import fetch_html
from lingoforge.core.adapters import HtmlAdapter, PoAdapter, create_adapter, payload_from_upload, resolve
from lingoforge.core.adapters.upload import decode_text
from lingoforge.core.exceptions import EntryNotFoundError, FormatParseError, UnsupportedPayloadError, UrlFetchError
from lingoforge.core.models import BatchUpdate, EntryUpdate, SingleFilePayload, Term

logger = logging.getLogger(__name__)


def _error(message, status=400):
    return jsonify({"error": message}), status


def _project_response(project_id, store):
    record = store.get_project(project_id)
    return jsonify({
        "projectId": project_id,
        "formatId": record['format_id'],
        "project": record['project'],
        "terms": record['terms'],
        "hashBasedMsgids": record['format_data'].get('hashBasedMsgids', False),
    })


def _read_upload(field_name):
    """(file name, bytes) of a multipart file field, or None"""
    uploaded = request.files.get(field_name)
    if uploaded is None or not uploaded.filename:
        return None
    return uploaded.filename, uploaded.read()


def create_project_blueprint(store):
    """
    Create and configure the project blueprint

    Args:
        store: ProjectStore instance
    """
    bp = Blueprint('projects', __name__)

    def _restore(project_id):
        """(adapter, None) or (None, error response)"""
        restored = store.load_adapter(project_id)
        if restored is None:
            return None, _error("Project not found", 404)
        if restored.is_err():
            logger.error(f"Could not restore project {project_id}: {restored.message}")
            return None, _error(restored.message, 500)
        return restored.unwrap(), None

    def _busy(project_id):
        """409 response while a translation run or chat owns the project, else None"""
        if store.is_running(project_id):
            return _error("A translation or chat is running for this project; wait for it to finish or cancel it", 409)
        return None

    def _store_new_project(adapter, source_language, target_language):
        """Apply requested languages, store the loaded adapter and answer 201"""
        if source_language or target_language:
            adapter.set_languages(source_language or adapter.get_source_language() or '',
                                  target_language or next(iter(adapter.get_target_languages()), ''))
        project_id = store.create_project(adapter)
        logger.info(f"Created project {project_id} ({adapter.format_name}, "
                    f"{adapter.get_project().entry_count()} entries)")
        return _project_response(project_id, store), 201

    @bp.route('/api/projects', methods=['POST'])
    def upload_project():
        """Upload a file, detect its format and create a project"""
        upload = _read_upload('file')
        if upload is None:
            return _error("No file provided")
        file_name, content = upload
        if len(content) > MAX_UPLOAD_BYTES:
            return _error(f"File too large (limit {MAX_UPLOAD_BYTES} bytes)", 413)

        payload = payload_from_upload(file_name, content)
        format_id = request.form.get('formatId')
        if not format_id:
            descriptor = resolve(payload)
            if descriptor is None:
                return _error(f"Unsupported file format: {file_name}")
            format_id = descriptor.format_id

        try:
            adapter = create_adapter(format_id)
        except UnsupportedPayloadError as e:
            return _error(e.message)

        result = adapter.load(payload)
        if result.is_err():
            return _error(result.message)

        return _store_new_project(adapter, request.form.get('sourceLanguage'), request.form.get('targetLanguage'))

    @bp.route('/api/projects/from-url', methods=['POST'])
    def import_url():
        """Fetch an HTML page and create a project from it: {"url", "sourceLanguage"?, "targetLanguage"?}"""
        data = request.get_json(silent=True) or {}
        url = data.get('url')
        if not isinstance(url, str) or not url.strip():
            return _error("Missing or invalid field: url")

        try:
            page = fetch_html(url)
        except UrlFetchError as e:
            logger.warning(f"Import from {url} refused: {e.message}")
            return _error(e.message)

        adapter = HtmlAdapter()
        result = adapter.load(SingleFilePayload(page.file_name, page.html.encode('utf-8')))
        if result.is_err():
            return _error(result.message)
        return _store_new_project(adapter, data.get('sourceLanguage'), data.get('targetLanguage'))

    @bp.route('/api/projects/<project_id>', methods=['GET'])
    def get_project(project_id):
        if not store.exists(project_id):
            return _error("Project not found", 404)
        return _project_response(project_id, store)

    @bp.route('/api/projects/<project_id>', methods=['DELETE'])
    def delete_project(project_id):
        if not store.delete_project(project_id):
            return _error("Project not found", 404)
        return jsonify({"success": True})

    @bp.route('/api/projects/<project_id>/entries', methods=['PATCH'])
    def update_entries(project_id):
        """Bulk update: {"updates": [{"resourceId", "entryId", "targetText"?, "comment"?}]}"""
        data = request.get_json(silent=True) or {}
        items = data.get('updates')
        if not isinstance(items, list):
            return _error("Missing or invalid field: updates")
        try:
            updates = [BatchUpdate(str(item['resourceId']), str(item['entryId']), EntryUpdate.from_dict(item))
                       for item in items]
        except (KeyError, TypeError) as e:
            return _error(f"Invalid update item: {e}")

        busy = _busy(project_id)
        if busy:
            return busy
        adapter, failure = _restore(project_id)
        if failure:
            return failure
        result = adapter.update_entries(updates)
        if result.is_err():
            status = 404 if isinstance(result.error, EntryNotFoundError) else 400
            return _error(result.message, status)
        store.save_adapter(project_id, adapter)
        return jsonify({"success": True, "updated": len(updates)})

    @bp.route('/api/projects/<project_id>/reference', methods=['POST'])
    def apply_reference(project_id):
        """Remap hash msgids of a PO project through a source-language PO"""
        upload = _read_upload('file')
        if upload is None:
            return _error("No reference file provided")

        busy = _busy(project_id)
        if busy:
            return busy
        adapter, failure = _restore(project_id)
        if failure:
            return failure
        if not isinstance(adapter, PoAdapter):
            return _error("Reference documents are only supported for PO projects")

        try:
            reference_text = decode_text(upload[1])
        except FormatParseError as e:
            return _error(e.message)
        result = adapter.apply_reference_document(reference_text)
        if result.is_err():
            return _error(result.message)
        store.save_adapter(project_id, adapter)
        return jsonify({"success": True, "matched": result.unwrap()})

    @bp.route('/api/projects/<project_id>/po-update', methods=['POST'])
    def update_po(project_id):
        """Merge a newer PO catalog, keeping existing translations"""
        upload = _read_upload('file')
        if upload is None:
            return _error("No PO file provided")
        reference = _read_upload('reference')

        busy = _busy(project_id)
        if busy:
            return busy
        adapter, failure = _restore(project_id)
        if failure:
            return failure
        if not isinstance(adapter, PoAdapter):
            return _error("Catalog updates are only supported for PO projects")

        try:
            new_text = decode_text(upload[1])
            reference_text = decode_text(reference[1]) if reference else None
        except FormatParseError as e:
            return _error(e.message)
        result = adapter.update_from_po(new_text, reference_text)
        if result.is_err():
            return _error(result.message)
        store.save_adapter(project_id, adapter)
        return jsonify({"success": True, "stats": result.unwrap().to_dict()})

    @bp.route('/api/projects/<project_id>/terms', methods=['GET'])
    def get_terms(project_id):
        if not store.exists(project_id):
            return _error("Project not found", 404)
        return jsonify({"terms": [t.to_dict() for t in store.get_terms(project_id)]})

    @bp.route('/api/projects/<project_id>/terms', methods=['PUT'])
    def put_terms(project_id):
        """Merge terms into the glossary by slug"""
        data = request.get_json(silent=True) or {}
        items = data.get('terms')
        if not isinstance(items, list):
            return _error("Missing or invalid field: terms")
        try:
            terms = [Term.from_dict(item) for item in items]
        except (KeyError, TypeError) as e:
            return _error(f"Invalid term: {e}")

        merged = store.merge_terms(project_id, terms)
        if merged is None:
            return _error("Project not found", 404)
        return jsonify({"terms": [t.to_dict() for t in merged]})

    @bp.route('/api/projects/<project_id>/export', methods=['GET'])
    def export_project(project_id):
        """Download the original format with translations applied"""
        adapter, failure = _restore(project_id)
        if failure:
            return failure
        result = adapter.export_file(store.get_terms(project_id))
        if result.is_err():
            return _error(result.message)
        artifact = result.unwrap()
        return send_file(io.BytesIO(artifact.content), mimetype=artifact.mime_type,
                         as_attachment=True, download_name=artifact.file_name)

    return bp
