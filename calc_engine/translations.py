"""
Calculation Engine — Subsystem 7b: Locale Adapter
===================================================
Translation bundles are external data keyed by (locale, calculator id).
Every storage medium implements the same one-method loader interface:

    loader.load(locale, calculator_id) -> dict | None

``LocaleAdapter.translate`` walks requested locale -> language -> default
locale -> the supplied default / raw key. It never raises for a missing
translation; loader faults are logged and treated as "no bundle".

``required_keys(config)`` lists every key a calculator's renderer contract
asks for; ``LocaleAdapter.validate_bundle`` reports which of them a locale
still leaves to the default-locale fallback.
"""

import json
import logging
import os
import re
import threading
from concurrent.futures import Future
from typing import Dict, List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")
_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class TranslationLoader:
    def load(self, locale: str, calculator_id: str) -> Optional[Dict]:
        raise NotImplementedError


class DictTranslationLoader(TranslationLoader):
    """In-memory bundles: ``{locale: {calculator_id: {...}}}``."""

    def __init__(self, bundles: Dict[str, Dict[str, Dict]]):
        self.bundles = bundles

    def load(self, locale, calculator_id):
        return self.bundles.get(locale, {}).get(calculator_id)


class JsonFileTranslationLoader(TranslationLoader):
    """Reads ``<base_dir>/<locale>/<calculator_id>.json``."""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir

    def path_for(self, locale: str, calculator_id: str) -> Optional[str]:
        if not (_SAFE_NAME.match(locale) and _SAFE_NAME.match(calculator_id)):
            return None
        return os.path.join(self.base_dir, locale, f"{calculator_id}.json")

    def load(self, locale, calculator_id):
        path = self.path_for(locale, calculator_id)
        if not path or not os.path.isfile(path):
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read translation bundle {path}: {e}")
            return None


class RemoteTranslationLoader(TranslationLoader):
    """Fetches ``<base_url>/<locale>/<calculator_id>.json`` over HTTP."""

    def __init__(self, base_url: str, timeout: float = 5, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests

    def load(self, locale, calculator_id):
        if not (_SAFE_NAME.match(locale) and _SAFE_NAME.match(calculator_id)):
            return None
        url = f"{self.base_url}/{locale}/{calculator_id}.json"
        try:
            resp = self.session.get(url, timeout=self.timeout)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            logger.warning(f"Translation fetch failed for {locale}/{calculator_id}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Translation bundle {url} is not valid JSON: {e}")
            return None


def language_of(locale: str) -> str:
    """'pt-BR' -> 'pt'."""
    return (locale or "").replace("_", "-").split("-")[0].lower()


def _lookup(bundle: Optional[Dict], key: str):
    node = bundle
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _substitute(text: str, params: Dict) -> str:
    if not params:
        return text
    return _PLACEHOLDER.sub(
        lambda m: str(params[m.group(1)]) if m.group(1) in params else m.group(0), text
    )


class LocaleAdapter:
    def __init__(self, loader: TranslationLoader, default_locale: str = "en",
                 executor=None):
        self.loader = loader
        self.default_locale = default_locale
        self.executor = executor
        self._cache: Dict[Tuple[str, str], Optional[Dict]] = {}
        self._lock = threading.Lock()

    def chain(self, locale: str) -> List[str]:
        out = []
        for candidate in (locale, language_of(locale), self.default_locale):
            if candidate and candidate not in out:
                out.append(candidate)
        return out

    def bundle(self, locale: str, calculator_id: str) -> Optional[Dict]:
        key = (locale, calculator_id)
        with self._lock:
            if key in self._cache:
                return self._cache[key]
        try:
            data = self.loader.load(locale, calculator_id)
        except Exception as e:
            # Not cached, so a later call retries
            logger.error(f"Translation loader failed for {locale}/{calculator_id}: {e}")
            return None
        if data is not None and not isinstance(data, dict):
            logger.warning(f"Ignoring non-object bundle for {locale}/{calculator_id}")
            data = None
        with self._lock:
            self._cache[key] = data
        return data

    def translate(self, locale: str, calculator_id: str, key: str,
                  default: Optional[str] = None, **params) -> str:
        for candidate in self.chain(locale):
            value = _lookup(self.bundle(candidate, calculator_id), key)
            if isinstance(value, str):
                return _substitute(value, params)
        if default is None:
            logger.debug(f"Missing translation {calculator_id}:{key} for {locale}")
            return key
        return _substitute(default, params)

    def translator(self, locale: str, calculator_id: str):
        """``(key, default) -> str`` bound to one locale and calculator."""
        def t(key, default=None):
            return self.translate(locale, calculator_id, key, default)
        return t

    def prefetch(self, locale: str, calculator_id: str, executor=None) -> Future:
        """Load the bundle chain in the background; the future resolves to the requested bundle."""
        pool = executor or self.executor
        if pool is None:
            done = Future()
            done.set_result(self._warm(locale, calculator_id))
            return done
        return pool.submit(self._warm, locale, calculator_id)

    def _warm(self, locale, calculator_id):
        bundles = [self.bundle(c, calculator_id) for c in self.chain(locale)]
        return bundles[0]

    def clear(self):
        with self._lock:
            self._cache.clear()

    # ------------------------------------------------------------------
    # Bundle coverage
    # ------------------------------------------------------------------

    def own_chain(self, locale: str) -> List[str]:
        """The chain without the default-locale fallback, unless *locale* is that language."""
        if language_of(locale) == language_of(self.default_locale):
            return self.chain(locale)
        return [c for c in self.chain(locale) if c != self.default_locale]

    def _own_value(self, locale: str, calculator_id: str, key: str):
        for candidate in self.own_chain(locale):
            value = _lookup(self.bundle(candidate, calculator_id), key)
            if isinstance(value, str):
                return value
        return None

    def missing_keys(self, locale: str, config) -> List[str]:
        """Required keys with no non-blank string in *locale*'s own bundles."""
        missing = []
        for key in required_keys(config):
            value = self._own_value(locale, config.id, key)
            if value is None or not value.strip():
                missing.append(key)
        return missing

    def validate_bundle(self, locale: str, config) -> Dict:
        keys = required_keys(config)
        missing, empty = [], []
        for key in keys:
            value = self._own_value(locale, config.id, key)
            if value is None:
                missing.append(key)
            elif not value.strip():
                empty.append(key)
        if missing or empty:
            logger.debug(f"[{config.id}] {locale} bundle lacks {len(missing) + len(empty)} of {len(keys)} keys")
        return {
            "calculator_id": config.id,
            "locale": locale,
            "complete": not missing and not empty,
            "total_keys": len(keys),
            "completed_keys": len(keys) - len(missing) - len(empty),
            "missing_keys": missing,
            "empty_keys": empty,
        }

    def progress(self, config, locales) -> List[Dict]:
        return [self.validate_bundle(locale, config) for locale in locales]


def required_keys(config) -> List[str]:
    """Translation keys read when *config* is described, in display order."""
    keys = ["title"]

    def field_keys(field):
        keys.append(f"inputs.{field.id}.label")
        for option in field.options:
            keys.append(f"inputs.{field.id}.options.{option['value']}")
        for sub in field.row_fields:
            field_keys(sub)

    for section in config.sections:
        keys.append(f"sections.{section.id}")
        for field in section.fields:
            field_keys(field)
    for spec in config.results:
        keys.append(f"results.{spec.id}.label")
    for name in config.presets:
        keys.append(f"presets.{name}")
    return keys
