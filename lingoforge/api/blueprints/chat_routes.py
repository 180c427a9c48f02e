"""
Project chat route (SSE stream of an editing assistant)
"""
import logging

from flask import Blueprint, Response, request, jsonify

from lingoforge.config import DEFAULT_SOURCE_LANGUAGE, DEFAULT_TARGET_LANGUAGE, TranslationConfig
from lingoforge.core.llm_providers import create_llm_provider
from lingoforge.core.translation import (
    SSE_DONE,
    ChatToolRegistry,
    chat_with_project,
    format_sse,
    iterate_in_new_loop,
    validate_chat_messages,
)
from lingoforge.core.translation import events

logger = logging.getLogger(__name__)


def create_chat_blueprint(store):
    """
    Create and configure the chat blueprint

    Args:
        store: ProjectStore instance
    """
    bp = Blueprint('chat', __name__)

    @bp.route('/api/projects/<project_id>/chat', methods=['POST'])
    def chat(project_id):
        """Stream the assistant's answer to {"messages": [...]} as Server-Sent Events"""
        data = request.get_json(silent=True) or {}
        try:
            messages = validate_chat_messages(data.get('messages'))
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        restored = store.load_adapter(project_id)
        if restored is None:
            return jsonify({"error": "Project not found"}), 404
        if restored.is_err():
            return jsonify({"error": restored.message}), 500
        adapter = restored.unwrap()

        source_language = adapter.get_source_language() or DEFAULT_SOURCE_LANGUAGE
        target_language = next(iter(adapter.get_target_languages()), None) or DEFAULT_TARGET_LANGUAGE
        try:
            config = TranslationConfig.from_web_request({
                'sourceLanguage': source_language,
                'targetLanguage': target_language,
                **data,
            })
            provider = create_llm_provider(config.llm_provider, model=config.model,
                                           api_endpoint=data.get('llm_api_endpoint'), api_key=config.api_key)
        except (TypeError, ValueError) as e:
            return jsonify({"error": str(e)}), 400

        # The chat edits entries, so it owns the project like a translation run does
        token = store.start_run(project_id)
        if token is None:
            return jsonify({"error": "A translation or chat is already running for this project"}), 409

        def save():
            if not store.save_adapter(project_id, adapter):
                raise RuntimeError("Project no longer exists")

        tools = ChatToolRegistry(adapter, store.get_terms(project_id), on_update=save)

        def generate():
            run = chat_with_project(messages, provider, tools, config.source_language, config.target_language,
                                    cancel_token=token, timeout=config.timeout)
            try:
                for event in iterate_in_new_loop(run, cleanup=provider.close):
                    yield format_sse(event)
                yield SSE_DONE
            except Exception as e:
                logger.exception(f"Chat stream for project {project_id} failed")
                yield format_sse(events.error(str(e)))
            finally:
                store.finish_run(project_id)

        return Response(generate(), mimetype='text/event-stream', headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        })

    return bp
