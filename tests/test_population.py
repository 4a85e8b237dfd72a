import pytest

from shelter_map import population
from shelter_map.errors import PredictionError


def test_predict_population_growth():
    pred = population.predict_population(1000, 2034)
    assert pred["predicted_population"] == round(1000 * 1.008 ** 10)
    assert pred["predicted_growth"] == pred["predicted_population"] - 1000
    assert pred["growth_percentage"] == pytest.approx(pred["predicted_growth"] / 10)


def test_predict_population_base_year():
    assert population.predict_population(500, 2024)["predicted_growth"] == 0


def test_small_area_is_rejected():
    with pytest.raises(PredictionError):
        population.predict_population(9, 2030)


def test_fetch_area_population(monkeypatch):
    seen = {}

    def fake_get(table, params):
        seen.update(params)
        return [{"totalBefolkning": "1234"}]

    monkeypatch.setattr(population, "supabase_get", fake_get)
    assert population.fetch_area_population("42040101") == 1234
    assert seen["grunnkretsnummer"] == "eq.42040101"


def test_fetch_area_population_missing(monkeypatch):
    monkeypatch.setattr(population, "supabase_get", lambda table, params: [])
    with pytest.raises(PredictionError):
        population.fetch_area_population("0")
