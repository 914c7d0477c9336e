"""
Calculator Routes Blueprint.

JSON API over the calculation engine:
- Catalog and per-calculator config shape (translated)
- One-shot calculate (validate -> normalize -> calculate -> format)
- Unit conversion
- Related calculators
- Share links
- Translation coverage per locale
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
import logging

from flask import Blueprint, jsonify, request

from calc_engine import (
    CalculatorNotFoundError,
    CalculatorSession,
    DEFAULT_REGISTRY,
    JsonFileTranslationLoader,
    LocaleAdapter,
    RemoteTranslationLoader,
    ResultFormatter,
    session_from_token,
    token_for_session,
)
from calculators import RECOMMENDER, REGISTRY
from config import Config
from rate_provider import ExchangeRateProvider

logger = logging.getLogger(__name__)

calculators_bp = Blueprint('calculators_bp', __name__)

# Collaborators shared by all requests; sessions themselves are per request
executor = ThreadPoolExecutor(max_workers=Config.ASYNC_WORKERS, thread_name_prefix='calc-io')

if Config.TRANSLATIONS_URL:
    _loader = RemoteTranslationLoader(Config.TRANSLATIONS_URL)
else:
    _loader = JsonFileTranslationLoader(Config.TRANSLATIONS_DIR)
translations = LocaleAdapter(_loader, default_locale=Config.DEFAULT_LOCALE, executor=executor)
formatter = ResultFormatter(DEFAULT_REGISTRY, translations)
rate_provider = ExchangeRateProvider(
    api_url=Config.EXCHANGE_RATE_API_URL,
    api_key=Config.EXCHANGE_RATE_API_KEY,
    ttl=Config.RATE_CACHE_TTL,
    timeout=Config.RATE_REQUEST_TIMEOUT,
)


# ====================================================================
# Helpers
# ====================================================================

def _locale(data=None):
    return (data or {}).get('locale') or request.args.get('locale') or Config.DEFAULT_LOCALE


def _build_session(calculator_id, data):
    """Create a session for *calculator_id* and load the request body into it."""
    config = REGISTRY.get(calculator_id)
    values = data.get('values') or {}
    units = data.get('units') or {}
    if not isinstance(values, dict) or not isinstance(units, dict):
        raise ValueError("'values' and 'units' must be objects")

    session = CalculatorSession(
        config, DEFAULT_REGISTRY,
        unit_system=data.get('unit_system') or Config.DEFAULT_UNIT_SYSTEM,
        locale=_locale(data),
        formatter=formatter,
        executor=executor,
    )
    try:
        session.load(values, units)
    except KeyError as e:
        raise ValueError(e.args[0]) from None

    if config.needs_rates:
        _await_rates(session)
    return session


def _await_rates(session):
    """Wait for exchange rates; a slow provider leaves the session disabled."""
    future = session.request_rates(rate_provider)
    try:
        status = future.result(timeout=Config.RATE_REQUEST_TIMEOUT + 1)
    except FuturesTimeout:
        # Late arrivals are discarded by the disposed session
        session.dispose()
        status = 'timeout'
    if status != 'applied':
        logger.warning(f"[{session.config.id}] calculated without exchange rates ({status})")
    return status


def _session_response(session):
    snap = session.snapshot()
    snap['labels'] = formatter.labels(session.config, session.locale)
    return snap


# ====================================================================
# Catalog
# ====================================================================

@calculators_bp.route('/api/calculators')
def list_calculators():
    locale = _locale()
    try:
        catalog = []
        for config in REGISTRY:
            t = translations.translator(locale, config.id)
            catalog.append({
                'id': config.id,
                'slug': config.slug,
                'category': config.category,
                'title': t('title', config.meta.get('title', config.id)),
                'needs_rates': config.needs_rates,
                'fields': [f.id for f in config.fields],
            })
        return jsonify({'calculators': catalog, 'categories': REGISTRY.categories()})
    except Exception as e:
        logger.error(f"Error listing calculators: {e}")
        return jsonify({'error': str(e)}), 500


@calculators_bp.route('/api/calculators/<calculator_id>')
def describe_calculator(calculator_id):
    locale = _locale()
    try:
        config = REGISTRY.get(calculator_id)
        shape = config.describe(DEFAULT_REGISTRY, translations.translator(locale, config.id))
        shape['locale'] = locale
        return jsonify(shape)
    except CalculatorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        logger.error(f"Error describing calculator {calculator_id}: {e}")
        return jsonify({'error': str(e)}), 500


@calculators_bp.route('/api/calculators/<calculator_id>/translations')
def translation_coverage(calculator_id):
    """Per-locale translation progress; ?locale= narrows to one locale."""
    try:
        config = REGISTRY.get(calculator_id)
        locales = [request.args['locale']] if request.args.get('locale') else Config.SUPPORTED_LOCALES
        return jsonify({'calculator_id': config.id, 'locales': translations.progress(config, locales)})
    except CalculatorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        logger.error(f"Error checking translations for {calculator_id}: {e}")
        return jsonify({'error': str(e)}), 500


# ====================================================================
# Calculate
# ====================================================================

@calculators_bp.route('/api/calculators/<calculator_id>/calculate', methods=['POST'])
def calculate(calculator_id):
    data = request.get_json(force=True, silent=True) or {}
    try:
        session = _build_session(calculator_id, data)
        return jsonify(_session_response(session))
    except CalculatorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error calculating {calculator_id}: {e}")
        return jsonify({'error': str(e)}), 500


@calculators_bp.route('/api/units/convert', methods=['POST'])
def convert_units():
    data = request.get_json(force=True, silent=True) or {}
    value = data.get('value')
    from_unit = data.get('from_unit')
    to_unit = data.get('to_unit')
    try:
        if value is None or not from_unit or not to_unit:
            raise ValueError("'value', 'from_unit' and 'to_unit' are required")
        source = DEFAULT_REGISTRY.get(from_unit)
        rates = rate_provider.get_rates() if source.dynamic else None
        if not isinstance(value, dict):
            value = float(value)
        converted = DEFAULT_REGISTRY.convert(value, from_unit, to_unit, rates=rates)
        return jsonify({
            'value': converted,
            'unit': DEFAULT_REGISTRY.resolve(to_unit),
            'dimension': source.dimension,
        })
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error converting units: {e}")
        return jsonify({'error': str(e)}), 500


# ====================================================================
# Related calculators
# ====================================================================

@calculators_bp.route('/api/calculators/<calculator_id>/related')
def related_calculators(calculator_id):
    try:
        config = REGISTRY.get(calculator_id)
        count = int(request.args.get('count', Config.RELATED_DEFAULT_COUNT))
        return jsonify({'related': RECOMMENDER.related(config.slug, count)})
    except CalculatorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error getting related calculators for {calculator_id}: {e}")
        return jsonify({'error': str(e)}), 500


# ====================================================================
# Share links
# ====================================================================

@calculators_bp.route('/api/calculators/<calculator_id>/share', methods=['POST'])
def create_share_link(calculator_id):
    data = request.get_json(force=True, silent=True) or {}
    try:
        session = _build_session(calculator_id, data)
        token = token_for_session(session)
        if len(token) > Config.SHARE_TOKEN_MAX_LENGTH:
            token = token_for_session(session, include_results=False)
        return jsonify({'token': token, 'state': session.state})
    except CalculatorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error creating share link for {calculator_id}: {e}")
        return jsonify({'error': str(e)}), 500


@calculators_bp.route('/api/share/<token>')
def open_share_link(token):
    try:
        session = session_from_token(
            token, REGISTRY, locale=_locale(), formatter=formatter,
            executor=executor, max_length=Config.SHARE_TOKEN_MAX_LENGTH,
        )
        if session.config.needs_rates:
            _await_rates(session)
        return jsonify(_session_response(session))
    except CalculatorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error opening share link: {e}")
        return jsonify({'error': str(e)}), 500
