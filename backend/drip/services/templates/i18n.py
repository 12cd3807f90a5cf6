"""Email translations - per-locale JSON files with dot-path lookup and {var} interpolation"""
import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional

from drip.services.preferences_service import DEFAULT_LOCALE, SUPPORTED_LOCALES

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).resolve().parent.parent.parent / "locales"
RTL_LOCALES = ("ar", "ckb")

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

Translator = Callable[..., str]


@lru_cache(maxsize=None)
def load_translations(locale: str) -> dict:
    """Load locales/<locale>/email.json once per process; missing files fall back to English"""
    path = LOCALES_DIR / locale / "email.json"
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not load email translations for locale '{locale}': {e}")
        if locale != DEFAULT_LOCALE:
            return load_translations(DEFAULT_LOCALE)
        return {}


def resolve_key(translations: dict, key: str) -> Optional[str]:
    current = translations
    for part in key.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current if isinstance(current, str) else None


def interpolate(template: str, variables: Optional[dict] = None) -> str:
    """Replace {name} placeholders; unknown placeholders are left as-is"""
    if not variables:
        return template
    return _PLACEHOLDER.sub(
        lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0),
        template
    )


def get_translator(locale: str) -> Translator:
    """Return t(key, **variables) for a locale.

    Lookup order: locale, English, then the key itself.
    """
    if locale not in SUPPORTED_LOCALES:
        locale = DEFAULT_LOCALE
    translations = load_translations(locale)

    def t(key: str, **variables) -> str:
        value = resolve_key(translations, key)
        if value is None and locale != DEFAULT_LOCALE:
            value = resolve_key(load_translations(DEFAULT_LOCALE), key)
        if value is None:
            return key
        return interpolate(value, variables)

    return t


def is_rtl_locale(locale: str) -> bool:
    return locale in RTL_LOCALES
