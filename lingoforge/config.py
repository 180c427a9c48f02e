"""
Centralized configuration
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import Optional
from dotenv import load_dotenv

_config_logger = logging.getLogger('config')

# Check for DEBUG_MODE early (before .env is loaded, check environment)
_debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'
if _debug_mode:
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    _config_logger.setLevel(logging.DEBUG)

_env_file = Path.cwd() / '.env'
if _env_file.exists():
    load_dotenv(_env_file)
    _config_logger.debug(f"Loaded .env from: {_env_file.absolute()}")
else:
    _config_logger.info(".env not found, using environment and built-in defaults")

# LLM provider configuration
LLM_PROVIDER = os.getenv('LLM_PROVIDER', 'openai')  # 'openai' or 'ollama'
API_ENDPOINT = os.getenv('API_ENDPOINT', 'https://api.openai.com/v1/chat/completions')
DEFAULT_MODEL = os.getenv('DEFAULT_MODEL', 'gpt-4o-mini')
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '300'))
MAX_TRANSLATION_ATTEMPTS = int(os.getenv('MAX_TRANSLATION_ATTEMPTS', '2'))
RETRY_DELAY_SECONDS = int(os.getenv('RETRY_DELAY_SECONDS', '2'))
OLLAMA_API_ENDPOINT = os.getenv('OLLAMA_API_ENDPOINT', 'http://localhost:11434/api/chat')
OLLAMA_NUM_CTX = int(os.getenv('OLLAMA_NUM_CTX', '8192'))

# Batch translation
BATCH_SIZE = int(os.getenv('BATCH_SIZE', '20'))
MAX_TOOL_STEPS = int(os.getenv('MAX_TOOL_STEPS', '5'))
TEXT_DELTA_THROTTLE_MS = int(os.getenv('TEXT_DELTA_THROTTLE_MS', '300'))
CONTEXT_LOOKUP_COUNT = 5
SEARCH_RESULT_LIMIT = 10

# Default languages
DEFAULT_SOURCE_LANGUAGE = os.getenv('DEFAULT_SOURCE_LANGUAGE', 'en')
DEFAULT_TARGET_LANGUAGE = os.getenv('DEFAULT_TARGET_LANGUAGE', 'zh-Hans')

# Server configuration
HOST = os.getenv('HOST', '127.0.0.1')
PORT = int(os.getenv('PORT', '5000'))
MAX_UPLOAD_BYTES = int(os.getenv('MAX_UPLOAD_BYTES', str(50 * 1024 * 1024)))

# Importing pages from a URL
URL_FETCH_TIMEOUT = int(os.getenv('URL_FETCH_TIMEOUT', '15'))
URL_FETCH_MAX_BYTES = int(os.getenv('URL_FETCH_MAX_BYTES', str(10 * 1024 * 1024)))
URL_FETCH_MAX_REDIRECTS = 5

# Project chat
CHAT_MAX_STEPS = int(os.getenv('CHAT_MAX_STEPS', '20'))

# Debug mode (reload after .env is loaded)
DEBUG_MODE = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

if DEBUG_MODE or _debug_mode:
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug(f"   API_ENDPOINT: {API_ENDPOINT}")
    _config_logger.debug(f"   LLM_PROVIDER: {LLM_PROVIDER}")
    _config_logger.debug(f"   DEFAULT_MODEL: {DEFAULT_MODEL}")
    _config_logger.debug(f"   BATCH_SIZE: {BATCH_SIZE}")
    _config_logger.debug(f"   OPENAI_API_KEY: {'***' + OPENAI_API_KEY[-4:] if OPENAI_API_KEY else '(not set)'}")


@dataclass
class TranslationConfig:
    """Per-request settings for a batch translation run"""

    source_language: str = DEFAULT_SOURCE_LANGUAGE
    target_language: str = DEFAULT_TARGET_LANGUAGE
    model: str = DEFAULT_MODEL
    api_endpoint: str = API_ENDPOINT
    llm_provider: str = LLM_PROVIDER
    api_key: str = OPENAI_API_KEY
    timeout: int = REQUEST_TIMEOUT
    batch_size: int = BATCH_SIZE
    max_tool_steps: int = MAX_TOOL_STEPS
    format_context: Optional[str] = None

    @classmethod
    def from_web_request(cls, request_data: dict) -> 'TranslationConfig':
        """Create config from web request data"""
        api_key = request_data.get('api_key')
        if not api_key or api_key == '__USE_ENV__':
            api_key = OPENAI_API_KEY
        return cls(
            source_language=request_data.get('sourceLanguage') or DEFAULT_SOURCE_LANGUAGE,
            target_language=request_data.get('targetLanguage') or DEFAULT_TARGET_LANGUAGE,
            model=request_data.get('model') or DEFAULT_MODEL,
            api_endpoint=request_data.get('llm_api_endpoint') or API_ENDPOINT,
            llm_provider=request_data.get('llm_provider') or LLM_PROVIDER,
            api_key=api_key,
            timeout=int(request_data.get('timeout', REQUEST_TIMEOUT)),
            batch_size=int(request_data.get('batch_size', BATCH_SIZE)),
            max_tool_steps=int(request_data.get('max_tool_steps', MAX_TOOL_STEPS)),
            format_context=request_data.get('formatContext'),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary, masking the API key"""
        data = asdict(self)
        data['api_key'] = '***' + self.api_key[-4:] if self.api_key else ''
        return data

