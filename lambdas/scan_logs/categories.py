# lambdas/scan_logs/categories.py
import os
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .models import CategoryKeywordSet

STORAGE_KEYWORDS = ['storage', 'disk', 'space', 'full', 'no space', 'enospc', 'volume']
ERROR_KEYWORDS = ['error', 'failed', 'exception', 'critical', 'fatal', 'timeout', 'denied']
SES_KEYWORDS = ['ses', 'email', 'smtp', 'bounce', 'complaint', 'delivery', 'sendmail']
EMAIL_ACTIVITY_KEYWORDS = ['forgot', 'password', 'email', 'smtp', 'ses', 'send', 'mail']

# Presets used when no categories file is available.
DEFAULT_CATEGORIES: Tuple[CategoryKeywordSet, ...] = (
    CategoryKeywordSet("storage", tuple(STORAGE_KEYWORDS)),
    CategoryKeywordSet("error", tuple(ERROR_KEYWORDS)),
    CategoryKeywordSet("ses-error", tuple(SES_KEYWORDS), qualifiers=tuple(ERROR_KEYWORDS)),
    CategoryKeywordSet("email-activity", tuple(EMAIL_ACTIVITY_KEYWORDS)),
)


class CategoryConfigError(ValueError):
    """Raised when a categories document is malformed."""
    pass


def parse_categories(config: Optional[Dict[str, Any]]) -> List[CategoryKeywordSet]:
    """
    Builds keyword sets from a parsed config document of the form
    {"categories": [{"name": ..., "keywords": [...], "qualifiers": [...]}]}.
    An empty or missing list is a valid (empty) configuration.
    """
    if config is None:
        return []
    if not isinstance(config, dict):
        raise CategoryConfigError("Categories config must be a mapping with a 'categories' list.")

    raw_categories = config.get('categories') or []
    if not isinstance(raw_categories, list):
        raise CategoryConfigError("'categories' must be a list.")

    categories = []
    seen_names = set()
    for i, raw in enumerate(raw_categories):
        if not isinstance(raw, dict):
            raise CategoryConfigError(f"Category #{i + 1} must be a mapping.")

        name = str(raw.get('name') or '').strip()
        if not name:
            raise CategoryConfigError(f"Category #{i + 1} is missing a name.")
        if name in seen_names:
            raise CategoryConfigError(f"Duplicate category name: '{name}'.")
        seen_names.add(name)

        keywords = _keyword_list(raw, 'keywords', name)
        qualifiers = _keyword_list(raw, 'qualifiers', name)
        categories.append(CategoryKeywordSet(name, tuple(keywords), tuple(qualifiers)))

    return categories


def _keyword_list(raw: Dict[str, Any], key: str, name: str) -> List[str]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise CategoryConfigError(f"'{key}' of category '{name}' must be a list.")
    for item in value:
        if not isinstance(item, str):
            raise CategoryConfigError(f"'{key}' of category '{name}' must contain only strings, got {item!r}.")
    return list(value)


def load_config(path: str) -> Dict[str, Any]:
    """Reads the YAML categories document."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CategoryConfigError(f"Could not parse categories file '{path}': {e}") from e
    return config or {}


def load_categories(path: Optional[str]) -> List[CategoryKeywordSet]:
    """
    Loads keyword sets from a YAML file, falling back to DEFAULT_CATEGORIES
    when no path is given or the file does not exist.
    """
    if not path or not os.path.exists(path):
        print(f"ℹ️ Categories file '{path}' not found. Using built-in categories.")
        return list(DEFAULT_CATEGORIES)
    return parse_categories(load_config(path))


def load_top_k(path: Optional[str], default: int) -> int:
    """Returns top_k from the categories file when it sets one."""
    if not path or not os.path.exists(path):
        return default
    value = load_config(path).get('top_k', default)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise CategoryConfigError(f"'top_k' must be a non-negative integer, got {value!r}.")
    return value
