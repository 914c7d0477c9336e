"""
Integration tests for the calculator API blueprint.
Exchange rates are mocked; translations come from the shipped bundles.
"""

import json
import threading
import pytest
from unittest.mock import patch

from app import app as _app
from config import Config

RATES = {"USD": 1.0, "EUR": 1.10, "BRL": 0.20}


@pytest.fixture
def client():
    _app.config['TESTING'] = True
    with _app.test_client() as client:
        yield client


@pytest.fixture
def mock_rates():
    with patch('calculator_routes.rate_provider') as provider:
        provider.get_rates.return_value = dict(RATES)
        yield provider


def _post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type='application/json')


class TestCatalog:
    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json() == {'status': 'ok', 'calculators': 17}

    def test_list(self, client):
        data = client.get('/api/calculators').get_json()
        ids = [c['id'] for c in data['calculators']]
        assert ids[0] == 'loan'
        assert 'bmi' in data['categories']['health']

    def test_list_translated(self, client):
        data = client.get('/api/calculators?locale=pt-BR').get_json()
        loan = next(c for c in data['calculators'] if c['id'] == 'loan')
        assert loan['title'] == 'Calculadora de Empréstimo'

    def test_describe(self, client):
        data = client.get('/api/calculators/loan?locale=pt-BR').get_json()
        assert data['title'] == 'Calculadora de Empréstimo'
        assert data['sections'][0]['label'] == 'Empréstimo'
        # Missing in the pt bundle, so English is used
        assert data['sections'][1]['label'] == 'Extra payments'

    def test_describe_unknown(self, client):
        response = client.get('/api/calculators/does-not-exist')
        assert response.status_code == 404
        assert 'does-not-exist' in response.get_json()['error']

    def test_translation_coverage(self, client):
        data = client.get('/api/calculators/loan/translations?locale=pt-BR').get_json()
        assert data['locales'][0]['complete'] is False
        assert 'sections.extras' in data['locales'][0]['missing_keys']

    def test_translation_coverage_all_locales(self, client):
        data = client.get('/api/calculators/loan/translations').get_json()
        assert [p['locale'] for p in data['locales']] == ['en', 'es', 'pt', 'fr', 'de']
        assert client.get('/api/calculators/nope/translations').status_code == 404

    def test_unknown_route(self, client):
        assert client.get('/api/nothing-here').status_code == 404


class TestCalculate:
    def test_loan(self, client):
        response = _post(client, '/api/calculators/loan/calculate',
                         {'values': {'principal': 10000, 'annual_rate': 5, 'term': 12}})
        assert response.status_code == 200
        data = response.get_json()
        assert data['state'] == 'calculated'
        assert data['results']['formatted']['monthly_payment'] == '$856.07'
        assert data['labels']['monthly_payment'] == 'Monthly payment'

    def test_locale_and_units(self, client):
        response = _post(client, '/api/calculators/bmi/calculate', {
            'locale': 'pt-BR',
            'unit_system': 'imperial',
            'values': {'height_cm': 180, 'weight': 176},
            'units': {'height_cm': 'cm', 'weight': 'lb'},
        })
        data = response.get_json()
        assert data['results']['values']['bmi'] == pytest.approx(24.64, abs=0.01)
        assert data['labels']['bmi'] == 'IMC'

    def test_validation_errors_are_returned(self, client):
        data = _post(client, '/api/calculators/tip/calculate', {'values': {'people': 0}}).get_json()
        assert data['state'] == 'error'
        assert 'people' in data['errors']

    def test_unknown_field(self, client):
        response = _post(client, '/api/calculators/tip/calculate', {'values': {'coupon': 1}})
        assert response.status_code == 400

    def test_unknown_unit(self, client):
        response = _post(client, '/api/calculators/bmi/calculate', {'units': {'weight': 'parsec'}})
        assert response.status_code == 400

    def test_bad_unit_system(self, client):
        response = _post(client, '/api/calculators/bmi/calculate', {'unit_system': 'nautical'})
        assert response.status_code == 400

    def test_unknown_calculator(self, client):
        response = _post(client, '/api/calculators/nope/calculate', {})
        assert response.status_code == 404

    def test_currency_with_rates(self, client, mock_rates):
        response = _post(client, '/api/calculators/currency-converter/calculate',
                         {'values': {'amount': 110, 'from_currency': 'USD', 'to_currency': 'EUR'}})
        data = response.get_json()
        assert data['disabled'] is False
        assert data['results']['values']['converted'] == pytest.approx(100)

    def test_currency_without_rates(self, client, mock_rates):
        mock_rates.get_rates.return_value = None
        data = _post(client, '/api/calculators/currency-converter/calculate', {}).get_json()
        assert data['disabled'] is True
        assert data['results'] is None

    def test_slow_rates_leave_calculator_disabled(self, client, mock_rates):
        release = threading.Event()

        def slow_rates():
            release.wait(5)
            return dict(RATES)

        mock_rates.get_rates.side_effect = slow_rates
        try:
            with patch.object(Config, 'RATE_REQUEST_TIMEOUT', -0.8):
                response = _post(client, '/api/calculators/currency-converter/calculate',
                                 {'values': {'amount': 110}})
        finally:
            release.set()
        assert response.status_code == 200
        data = response.get_json()
        assert data['disabled'] is True
        assert data['results'] is None


class TestConvert:
    def test_temperature(self, client):
        data = _post(client, '/api/units/convert',
                     {'value': 100, 'from_unit': 'C', 'to_unit': 'F'}).get_json()
        assert data['value'] == pytest.approx(212)
        assert data['dimension'] == 'temperature'

    def test_composite(self, client):
        data = _post(client, '/api/units/convert',
                     {'value': {'ft': 6, 'in': 0}, 'from_unit': 'ft_in', 'to_unit': 'cm'}).get_json()
        assert data['value'] == pytest.approx(182.88)

    def test_currency(self, client, mock_rates):
        data = _post(client, '/api/units/convert',
                     {'value': 10, 'from_unit': 'EUR', 'to_unit': 'BRL'}).get_json()
        assert data['value'] == pytest.approx(55)

    def test_mismatch(self, client):
        response = _post(client, '/api/units/convert', {'value': 1, 'from_unit': 'kg', 'to_unit': 'm'})
        assert response.status_code == 400

    def test_missing_fields(self, client):
        assert _post(client, '/api/units/convert', {'value': 1}).status_code == 400


class TestRelated:
    def test_related(self, client):
        data = client.get('/api/calculators/bmi/related?count=2').get_json()
        assert [r['slug'] for r in data['related']] == ['ideal-weight', 'body-fat']

    def test_default_count(self, client):
        data = client.get('/api/calculators/bmi/related').get_json()
        assert len(data['related']) == 4

    def test_bad_count(self, client):
        assert client.get('/api/calculators/bmi/related?count=many').status_code == 400

    def test_unknown(self, client):
        assert client.get('/api/calculators/nope/related').status_code == 404


class TestShare:
    def test_round_trip(self, client):
        body = {'values': {'principal': 25000, 'annual_rate': 6.5, 'term': 60}}
        created = _post(client, '/api/calculators/loan/share', body).get_json()
        assert created['state'] == 'calculated'

        opened = client.get(f"/api/share/{created['token']}").get_json()
        direct = _post(client, '/api/calculators/loan/calculate', body).get_json()
        assert opened['results'] == direct['results']

    def test_malformed_token(self, client):
        response = client.get('/api/share/not-a-token')
        assert response.status_code == 400
