"""Environment variable utilities.

Provides expansion of ${VAR_NAME} patterns in configuration values
and loading of .env files.

Uses python-dotenv for .env file loading.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

__all__ = ["expand_env_vars", "expand_options", "load_env_file"]

# ${VAR_NAME} only. A bare $NAME is left alone ($TSLA is a cashtag in queries)
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Load environment variables from a .env file.

    Args:
        path: Path to .env file. If None, searches for .env in current
              directory and parent directories.
        override: If True, override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    return load_dotenv(dotenv_path=path, override=override)


def expand_env_vars(value: str, *, strict: bool = False) -> str:
    """Expand environment variables in a string.

    Only the ${VAR_NAME} form is expanded.

    Args:
        value: String potentially containing env var references
        strict: If True, raise KeyError for missing variables

    Returns:
        String with environment variables expanded

    Example:
        >>> os.environ["TWITTER_API_KEY"] = "abc"
        >>> expand_env_vars("${TWITTER_API_KEY}")
        'abc'
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            if strict:
                raise KeyError(f"Environment variable not set: {var_name}")
            return str(match.group(0))
        return env_value

    return ENV_VAR_PATTERN.sub(replacer, value)


def expand_options(options: Dict[str, Any], *, strict: bool = False) -> Dict[str, Any]:
    """Recursively expand environment variables in an options dict.

    Strings nested in dicts and lists are expanded; other values are
    returned unchanged.
    """
    result: Dict[str, Any] = {}

    for key, value in options.items():
        result[key] = _expand_value(value, strict=strict)

    return result


def _expand_value(value: Any, *, strict: bool) -> Any:
    if isinstance(value, str):
        return expand_env_vars(value, strict=strict)
    if isinstance(value, dict):
        return expand_options(value, strict=strict)
    if isinstance(value, list):
        return [_expand_value(item, strict=strict) for item in value]
    return value
