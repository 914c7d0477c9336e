"""
Exchange-rate collaborator for rate-dependent calculators.

Fetches the latest USD-based table from an open exchange-rate API and
returns it as ``{code: USD per 1 unit}``, the shape the unit kernel's
currency dimension expects. Results are cached for a TTL. On failure a
stale cached table is served, then the static fallback table (if any),
then None, in which case rate-dependent calculators are disabled.
"""
import logging
import math
import threading
import time
from typing import Dict, Optional

import requests

from calc_engine.unit_catalog import CURRENCIES

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://open.er-api.com/v6/latest/USD"

# USD per 1 unit; used only when no live or cached table exists
FALLBACK_RATES = {
    "USD": 1.0,
    "EUR": 1.08,
    "GBP": 1.27,
    "BRL": 0.19,
    "MXN": 0.058,
    "ARS": 0.0011,
    "CLP": 0.0011,
    "COP": 0.00025,
    "CAD": 0.73,
    "JPY": 0.0067,
    "CHF": 1.12,
    "INR": 0.012,
    "AUD": 0.66,
}


def parse_rates(data: Dict) -> Dict[str, float]:
    """Invert an API payload (``1 USD = X code``) into USD per unit.

    Codes the app does not know and non-positive rates are skipped.
    """
    raw = data.get('rates') or data.get('conversion_rates') or {}
    rates = {"USD": 1.0}
    for code, per_usd in raw.items():
        if code not in CURRENCIES or code == "USD":
            continue
        try:
            per_usd = float(per_usd)
        except (TypeError, ValueError):
            continue
        if per_usd > 0 and math.isfinite(per_usd):
            rates[code] = 1.0 / per_usd
    return rates


class ExchangeRateProvider:
    def __init__(self, api_url: str = DEFAULT_API_URL, api_key: Optional[str] = None,
                 ttl: int = 3600, timeout: float = 5,
                 fallback: Optional[Dict[str, float]] = FALLBACK_RATES):
        self.api_url = api_url
        self.api_key = api_key
        self.ttl = ttl
        self.timeout = timeout
        self.fallback = dict(fallback) if fallback else None
        self._lock = threading.Lock()
        self._rates: Optional[Dict[str, float]] = None
        self._fetched_at = 0.0

    def fetch(self) -> Optional[Dict[str, float]]:
        """One HTTP round trip. Returns None on any failure."""
        headers = {'Authorization': f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = requests.get(self.api_url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"Exchange rate request failed: {e}")
            return None
        except ValueError as e:
            logger.error(f"Exchange rate response is not JSON: {e}")
            return None

        if data.get('result', 'success') != 'success':
            logger.error(f"Exchange rate API returned an error: {data.get('error-type', data.get('result'))}")
            return None
        rates = parse_rates(data)
        if len(rates) < 2:
            logger.warning("Exchange rate response had no usable rates")
            return None
        return rates

    def get_rates(self) -> Optional[Dict[str, float]]:
        """Cached table, refreshed after the TTL. Never raises."""
        with self._lock:
            if self._rates and time.monotonic() - self._fetched_at < self.ttl:
                return dict(self._rates)

        rates = self.fetch()
        with self._lock:
            if rates:
                self._rates = rates
                self._fetched_at = time.monotonic()
                logger.info(f"Exchange rates refreshed ({len(rates)} currencies)")
                return dict(rates)
            if self._rates:
                logger.warning("Serving stale exchange rates")
                return dict(self._rates)
        if self.fallback:
            logger.warning("Serving fallback exchange rates")
            return dict(self.fallback)
        return None

    def clear(self):
        with self._lock:
            self._rates = None
            self._fetched_at = 0.0
