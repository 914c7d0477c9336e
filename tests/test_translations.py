"""Tests for translations.py — locale fallback chain and bundle loaders."""

import os
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import requests

from calc_engine import (
    DictTranslationLoader,
    JsonFileTranslationLoader,
    LocaleAdapter,
    RemoteTranslationLoader,
    required_keys,
)
from calc_engine.translations import language_of
from calculators import REGISTRY
from calculators.finance import LOAN
from calculators.health import BMI

TRANSLATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                                "translations")


def _adapter():
    return LocaleAdapter(DictTranslationLoader({
        "en": {"loan": {"title": "Loan Calculator",
                        "results": {"payoff_months": {"label": "Months to pay off"}},
                        "messages": {"payoff": "Paid off in {months} months"}}},
        "pt": {"loan": {"title": "Calculadora de Empréstimo",
                        "messages": {"payoff": "Quitado em {months} meses"}}},
        "pt-BR": {"loan": {"title": "Calculadora de Financiamento"}},
    }))


# ── Fallback chain ──

class TestLocaleAdapter:
    def test_chain(self):
        assert _adapter().chain("pt-BR") == ["pt-BR", "pt", "en"]
        assert _adapter().chain("en") == ["en"]

    def test_region_bundle_wins(self):
        assert _adapter().translate("pt-BR", "loan", "title") == "Calculadora de Financiamento"

    def test_language_fallback(self):
        assert _adapter().translate("pt-PT", "loan", "title") == "Calculadora de Empréstimo"

    def test_default_locale_fallback(self):
        adapter = _adapter()
        assert adapter.translate("pt", "loan", "results.payoff_months.label") == "Months to pay off"

    def test_placeholders(self):
        assert _adapter().translate("pt", "loan", "messages.payoff", months=24) == "Quitado em 24 meses"

    def test_unknown_placeholder_left_alone(self):
        assert _adapter().translate("en", "loan", "messages.payoff") == "Paid off in {months} months"

    def test_missing_key_returns_default(self):
        assert _adapter().translate("es", "loan", "inputs.term.label", "Term") == "Term"

    def test_missing_key_without_default_returns_key(self):
        assert _adapter().translate("es", "loan", "inputs.term.label") == "inputs.term.label"

    def test_non_string_node_is_not_a_translation(self):
        assert _adapter().translate("en", "loan", "results", "fallback") == "fallback"

    def test_translator_binds_locale(self):
        t = _adapter().translator("pt", "loan")
        assert t("title") == "Calculadora de Empréstimo"
        assert t("presets.car_loan", "Car loan") == "Car loan"

    def test_loader_failure_is_logged_and_retried(self, caplog):
        loader = MagicMock()
        loader.load.side_effect = [RuntimeError("backend down"), {"title": "Loan"}]
        adapter = LocaleAdapter(loader)
        assert adapter.translate("en", "loan", "title", "Default") == "Default"
        assert "backend down" in caplog.text
        assert adapter.translate("en", "loan", "title") == "Loan"

    def test_bundles_are_cached(self):
        loader = MagicMock()
        loader.load.return_value = {"title": "Loan"}
        adapter = LocaleAdapter(loader)
        adapter.translate("en", "loan", "title")
        adapter.translate("en", "loan", "title")
        assert loader.load.call_count == 1
        adapter.clear()
        adapter.translate("en", "loan", "title")
        assert loader.load.call_count == 2

    def test_prefetch(self):
        adapter = _adapter()
        with ThreadPoolExecutor(max_workers=1) as pool:
            bundle = adapter.prefetch("pt", "loan", executor=pool).result(timeout=5)
        assert bundle["title"] == "Calculadora de Empréstimo"

    def test_language_of(self):
        assert language_of("pt_BR") == "pt"
        assert language_of("") == ""


# ── Loaders ──

class TestJsonFileLoader:
    def test_shipped_bundles(self):
        adapter = LocaleAdapter(JsonFileTranslationLoader(TRANSLATIONS_DIR))
        assert adapter.translate("pt-BR", "loan", "title") == "Calculadora de Empréstimo"
        assert adapter.translate("pt-BR", "loan", "results.payoff_months.label") == "Months to pay off"
        assert adapter.translate("es", "bmi", "title") != "title"

    def test_missing_file(self):
        assert JsonFileTranslationLoader(TRANSLATIONS_DIR).load("fr", "loan") is None

    def test_path_traversal_rejected(self):
        loader = JsonFileTranslationLoader(TRANSLATIONS_DIR)
        assert loader.load("..", "loan") is None
        assert loader.load("en", "../secrets") is None

    def test_invalid_json(self, tmp_path):
        (tmp_path / "en").mkdir()
        (tmp_path / "en" / "loan.json").write_text("{not json", encoding="utf-8")
        assert JsonFileTranslationLoader(str(tmp_path)).load("en", "loan") is None


class TestRemoteLoader:
    def _session(self, status=200, payload=None, error=None):
        resp = MagicMock()
        resp.status_code = status
        resp.json.return_value = payload
        if status >= 400:
            resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
        session = MagicMock()
        if error:
            session.get.side_effect = error
        else:
            session.get.return_value = resp
        return session

    def test_fetches_bundle(self):
        session = self._session(payload={"title": "Loan"})
        loader = RemoteTranslationLoader("https://cdn.example.test/i18n/", timeout=3, session=session)
        assert loader.load("en", "loan") == {"title": "Loan"}
        session.get.assert_called_once_with("https://cdn.example.test/i18n/en/loan.json", timeout=3)

    def test_not_found_is_none(self):
        loader = RemoteTranslationLoader("https://cdn.example.test", session=self._session(status=404))
        assert loader.load("en", "loan") is None

    def test_server_error_is_none(self):
        loader = RemoteTranslationLoader("https://cdn.example.test", session=self._session(status=500))
        assert loader.load("en", "loan") is None

    def test_connection_error_is_none(self):
        session = self._session(error=requests.ConnectionError("refused"))
        assert RemoteTranslationLoader("https://cdn.example.test", session=session).load("en", "loan") is None

    def test_invalid_json_is_none(self):
        session = self._session()
        session.get.return_value.json.side_effect = ValueError("bad json")
        assert RemoteTranslationLoader("https://cdn.example.test", session=session).load("en", "loan") is None


# ── Bundle coverage ──

LOAN_GAPS_IN_PT = [
    "sections.extras",
    "inputs.extra_payment.label",
    "results.payoff_months.label",
    "results.interest_saved.label",
]


class TestRequiredKeys:
    def test_loan_keys_in_display_order(self):
        keys = required_keys(LOAN)
        assert keys[:3] == ["title", "sections.loan", "inputs.principal.label"]
        assert "inputs.term_unit.options.years" in keys
        assert keys.index("sections.extras") < keys.index("results.monthly_payment.label")
        assert keys[-2:] == ["presets.car_loan", "presets.mortgage"]
        assert len(keys) == 17

    def test_row_fields_are_included(self):
        keys = required_keys(REGISTRY.get("gpa"))
        assert any(k.startswith("inputs.") and ".options." in k for k in keys)


class TestBundleValidation:
    def setup_method(self):
        self.adapter = LocaleAdapter(JsonFileTranslationLoader(TRANSLATIONS_DIR))

    def test_english_loan_is_complete(self):
        report = self.adapter.validate_bundle("en", LOAN)
        assert report["complete"] is True
        assert report["completed_keys"] == report["total_keys"] == 17

    def test_spanish_loan_is_complete(self):
        assert self.adapter.missing_keys("es", LOAN) == []

    def test_portuguese_loan_gaps(self):
        report = self.adapter.validate_bundle("pt", LOAN)
        assert report["complete"] is False
        assert report["missing_keys"] == LOAN_GAPS_IN_PT
        assert report["completed_keys"] == 13

    def test_region_uses_language_bundle_but_not_default(self):
        assert self.adapter.missing_keys("pt-BR", LOAN) == LOAN_GAPS_IN_PT

    def test_portuguese_bmi_gaps(self):
        assert self.adapter.missing_keys("pt", BMI) == [
            "inputs.height_ft_in.label",
            "results.bmi_prime.label",
            "results.healthy_min_weight.label",
            "results.healthy_max_weight.label",
        ]

    def test_locale_without_bundles(self):
        report = self.adapter.validate_bundle("fr", BMI)
        assert report["completed_keys"] == 0
        assert report["missing_keys"] == required_keys(BMI)

    def test_blank_values_are_reported_separately(self):
        adapter = LocaleAdapter(DictTranslationLoader({
            "de": {"bmi": {"title": "  ", "sections": {"body": "Körper"}}},
        }))
        report = adapter.validate_bundle("de", BMI)
        assert report["empty_keys"] == ["title"]
        assert "title" not in report["missing_keys"]
        assert "title" in adapter.missing_keys("de", BMI)
        assert "sections.body" not in adapter.missing_keys("de", BMI)

    def test_progress_per_locale(self):
        progress = self.adapter.progress(LOAN, ["en", "es", "pt"])
        assert [p["complete"] for p in progress] == [True, True, False]
