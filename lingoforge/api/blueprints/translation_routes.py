"""
Batch translation routes (SSE stream and cancellation)
"""
import logging

from flask import Blueprint, Response, request, jsonify

from lingoforge.config import TranslationConfig
from lingoforge.core.llm_providers import create_llm_provider
from lingoforge.core.models import Term
from lingoforge.core.translation import (
    EventType,
    SSE_DONE,
    TranslationRequest,
    apply_translation_events,
    format_sse,
    iterate_in_new_loop,
    translate_entries,
)
from lingoforge.core.translation import events

logger = logging.getLogger(__name__)

# Format id -> prompt flavour
FORMAT_CONTEXTS = {
    'srt': 'subtitle',
    'vtt': 'subtitle',
    'po': 'po-localization',
    'document': 'document',
    'html': 'html',
}


def _select_entries(adapter, requested):
    """Requested {resourceId, id} pairs in project order, or every untranslated entry"""
    entries = adapter.flatten_entries()
    if not requested:
        return [e for e in entries if not e.target_text]
    wanted = {(str(item.get('resourceId')), str(item.get('id', item.get('entryId')))) for item in requested}
    return [e for e in entries if (e.resource_id, e.id) in wanted]


def create_translation_blueprint(store):
    """
    Create and configure the translation blueprint

    Args:
        store: ProjectStore instance
    """
    bp = Blueprint('translation', __name__)

    @bp.route('/api/projects/<project_id>/translate', methods=['POST'])
    def translate_project(project_id):
        """Stream a translation run as Server-Sent Events"""
        data = request.get_json(silent=True) or {}
        requested = data.get('entries')
        if requested is not None and not isinstance(requested, list):
            return jsonify({"error": "Invalid field: entries"}), 400

        restored = store.load_adapter(project_id)
        if restored is None:
            return jsonify({"error": "Project not found"}), 404
        if restored.is_err():
            return jsonify({"error": restored.message}), 500
        adapter = restored.unwrap()

        record = store.get_project(project_id)
        try:
            config = TranslationConfig.from_web_request({
                'sourceLanguage': adapter.get_source_language(),
                'targetLanguage': next(iter(adapter.get_target_languages()), None),
                'formatContext': FORMAT_CONTEXTS.get(record['format_id']),
                **data,
            })
        except (TypeError, ValueError) as e:
            return jsonify({"error": f"Invalid translation settings: {e}"}), 400
        if config.batch_size < 1:
            return jsonify({"error": "batch_size must be at least 1"}), 400
        adapter.set_languages(config.source_language, config.target_language)

        translation_request = TranslationRequest(
            entries=_select_entries(adapter, requested),
            source_language=config.source_language,
            target_language=config.target_language,
            format_context=config.format_context,
            glossary=store.get_terms(project_id),
            batch_size=config.batch_size,
            max_tool_steps=config.max_tool_steps,
            timeout=config.timeout,
        )
        try:
            provider = create_llm_provider(config.llm_provider, model=config.model,
                                           api_endpoint=data.get('llm_api_endpoint'), api_key=config.api_key)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        token = store.start_run(project_id)
        if token is None:
            return jsonify({"error": "A translation is already running for this project"}), 409
        logger.info(f"Starting translation of {len(translation_request.entries)} entries "
                    f"for project {project_id}: {config.to_dict()}")

        def checkpoint():
            if not store.save_adapter(project_id, adapter):
                raise RuntimeError("Project no longer exists")

        def generate():
            run = apply_translation_events(translate_entries(translation_request, provider, token),
                                           adapter, checkpoint)
            try:
                for event in iterate_in_new_loop(run, cleanup=provider.close):
                    if event.type is EventType.TERMINOLOGY_FOUND:
                        store.merge_terms(project_id, [Term.from_dict(t) for t in event.get('terms', [])])
                    yield format_sse(event)
                yield SSE_DONE
            except Exception as e:
                logger.exception(f"Translation stream for project {project_id} failed")
                yield format_sse(events.error(str(e)))
            finally:
                store.finish_run(project_id)

        return Response(generate(), mimetype='text/event-stream', headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        })

    @bp.route('/api/projects/<project_id>/translate/cancel', methods=['POST'])
    def cancel_translation(project_id):
        """Ask the running translation to stop after the current chunk"""
        if not store.exists(project_id):
            return jsonify({"error": "Project not found"}), 404
        cancelled = store.cancel_run(project_id)
        return jsonify({"success": True, "cancelled": cancelled})

    return bp
