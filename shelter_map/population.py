from typing import Dict, Union

from shelter_map.config import AppConfig
from shelter_map.data import supabase_get
from shelter_map.errors import PredictionError


def predict_population(current_population: int, year: int,
                       base_year: int = AppConfig.POPULATION_BASE_YEAR,
                       growth_rate: float = AppConfig.POPULATION_GROWTH_RATE) -> Dict[str, Union[int, float]]:
    """Compound annual growth from the base year population."""
    if current_population < AppConfig.POPULATION_MIN_RESIDENTS:
        raise PredictionError(
            f"Area has fewer than {AppConfig.POPULATION_MIN_RESIDENTS} residents, too small for a reliable prediction"
        )
    predicted = round(current_population * (1 + growth_rate) ** (year - base_year))
    growth = predicted - current_population
    return {
        "predicted_population": predicted,
        "predicted_growth": growth,
        "growth_percentage": growth / current_population * 100,
    }


def fetch_area_population(grunnkretsnummer: str) -> int:
    rows = supabase_get(AppConfig.POPULATION_TABLE, {
        "select": "totalBefolkning",
        "grunnkretsnummer": f"eq.{grunnkretsnummer}",
        "limit": 1,
    })
    if not rows:
        raise PredictionError(f"Area {grunnkretsnummer} not found")
    try:
        return int(rows[0].get("totalBefolkning") or 0)
    except (TypeError, ValueError):
        return 0
