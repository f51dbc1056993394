import os
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv


def load_env(env_file: Optional[str] = None) -> None:
    """
    Load environment variables from ENV_FILE if specified, or .env.local, or .env.

    Variables already present in the process environment are kept.
    """
    env_file = env_file or os.getenv('ENV_FILE')
    if env_file:
        load_dotenv(Path(env_file))
        return

    # Try .env.local first, then fall back to .env
    env_local = Path.cwd() / '.env.local'
    if env_local.exists():
        load_dotenv(env_local)
    else:
        load_dotenv()


def _number_from_env(key: str, fallback: Optional[int]) -> Optional[int]:
    """Extract integer from environment variable with fallback."""
    raw = os.getenv(key)
    if raw is None:
        return fallback

    try:
        return int(raw)
    except ValueError:
        return fallback


def _bool_from_env(key: str, fallback: bool = False) -> bool:
    """Extract a boolean flag (1/true/yes/on) from environment variable."""
    raw = os.getenv(key)
    if raw is None:
        return fallback
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def get_option(config: Optional[Dict[str, Any]], *keys: str, default: Any = None) -> Any:
    """
    Return the first option found under any of the given keys.

    Options come from embedding applications written against either
    spelling, so `apikey`, `apiKey` and `api_key` can all be looked up at once.
    """
    if not config:
        return default
    for key in keys:
        if key in config and config[key] is not None:
            return config[key]
    return default


def load_config(env_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Build a dispatcher configuration from the environment.

    Example:
        >>> config = load_config()
        >>> dispatcher = create_dispatcher(config)
    """
    load_env(env_file)

    adapter_config = {
        'apikey': os.getenv('VOILAB_SEND_API_KEY'),
        'globalDataSurround': os.getenv('VOILAB_SEND_GLOBAL_DATA_SURROUND', '%'),
        'cciAsEmail': _bool_from_env('VOILAB_SEND_CCI_AS_EMAIL'),
        'endpoint': os.getenv('VOILAB_SEND_ENDPOINT'),
        'host': os.getenv('SMTP_HOST'),
        'port': _number_from_env('SMTP_PORT', None),
        'secure': _bool_from_env('SMTP_SECURE'),
        'user': os.getenv('SMTP_USER'),
        'pass': os.getenv('SMTP_PASS'),
    }

    return {
        'adapter': os.getenv('VOILAB_SEND_ADAPTER'),
        'adapterConfig': {k: v for k, v in adapter_config.items() if v is not None},
        'debug': _bool_from_env('VOILAB_SEND_DEBUG'),
        'debugEmail': os.getenv('VOILAB_SEND_DEBUG_EMAIL'),
    }
