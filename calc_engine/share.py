"""
Share links.

A token is URL-safe base64 (unpadded) of zlib-compressed compact JSON:

    {"v": 1, "c": calculator_id, "i": inputs, "u": units, "s": unit_system, "r": results}

Inputs are display values as the user entered them; dates travel as ISO
strings. Decoding a token and loading it into a fresh session reproduces
the same Results because calculate functions are deterministic.
"""

import base64
import binascii
import json
import logging
import zlib
from typing import Dict, Optional

from calc_engine.errors import ConversionError, ShareTokenError
from calc_engine.orchestrator import CalculatorSession
from calc_engine.results import serialize_value
from calc_engine.units import UNIT_SYSTEMS

logger = logging.getLogger(__name__)

TOKEN_VERSION = 1
DEFAULT_MAX_LENGTH = 4096
MAX_PAYLOAD_BYTES = 64 * 1024


def encode_share_token(calculator_id: str, inputs: Dict, units: Optional[Dict] = None,
                       unit_system: str = "metric", results: Optional[Dict] = None) -> str:
    payload = {
        "v": TOKEN_VERSION,
        "c": calculator_id,
        "i": serialize_value({k: v for k, v in inputs.items() if v is not None}),
        "u": dict(units or {}),
        "s": unit_system,
    }
    if results:
        payload["r"] = serialize_value(results)
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(zlib.compress(raw, 9)).decode("ascii").rstrip("=")


def decode_share_token(token: str, max_length: int = DEFAULT_MAX_LENGTH) -> Dict:
    if not token or not isinstance(token, str):
        raise ShareTokenError("Share token is empty")
    if len(token) > max_length:
        raise ShareTokenError(f"Share token is longer than {max_length} characters")
    try:
        compressed = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
        inflater = zlib.decompressobj()
        raw = inflater.decompress(compressed, MAX_PAYLOAD_BYTES)
        if inflater.unconsumed_tail:
            raise ShareTokenError("Share token payload is too large")
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, zlib.error, UnicodeDecodeError, ValueError) as e:
        if isinstance(e, ShareTokenError):
            raise
        raise ShareTokenError(f"Malformed share token: {e}") from None

    if not isinstance(payload, dict) or payload.get("v") != TOKEN_VERSION:
        raise ShareTokenError("Unsupported share token version")
    if not isinstance(payload.get("c"), str) or not isinstance(payload.get("i"), dict):
        raise ShareTokenError("Share token is missing the calculator or its inputs")
    if payload.get("s", "metric") not in UNIT_SYSTEMS:
        raise ShareTokenError(f"Unknown unit system '{payload.get('s')}'")
    return {
        "calculator_id": payload["c"],
        "inputs": payload["i"],
        "units": payload.get("u") or {},
        "unit_system": payload.get("s", "metric"),
        "results": payload.get("r"),
    }


def token_for_session(session: CalculatorSession, include_results: bool = True) -> str:
    snap = session.snapshot()
    results = snap["results"]["values"] if include_results and snap["results"] else None
    units = {fid: unit for fid, unit in snap["units"].items() if snap["values"].get(fid) is not None}
    return encode_share_token(session.config.id, snap["values"], units,
                              session.unit_system, results)


def session_from_token(token: str, registry, locale: str = "en", rates=None,
                       formatter=None, executor=None,
                       max_length: int = DEFAULT_MAX_LENGTH) -> CalculatorSession:
    """Rebuild a pre-filled, recalculated session from a share token."""
    payload = decode_share_token(token, max_length)
    config = registry.get(payload["calculator_id"])

    inputs = {}
    for field_id, value in payload["inputs"].items():
        if config.has_field(field_id):
            inputs[field_id] = value
        else:
            logger.warning(f"Share token for '{config.id}' has unknown field '{field_id}'; ignored")
    units = {k: v for k, v in payload["units"].items() if config.has_field(k)}

    session = CalculatorSession(config, registry.units, payload["unit_system"], locale,
                                rates=rates, formatter=formatter, executor=executor)
    try:
        session.load(inputs, units)
    except ConversionError as e:
        raise ShareTokenError(f"Share token carries an invalid unit: {e}") from None
    return session
