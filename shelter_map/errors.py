class ShelterMapError(Exception):
    """Base error for the shelter map package."""


class DataSourceError(ShelterMapError):
    """Raised when the Supabase REST backend cannot be queried."""


class PredictionError(ShelterMapError):
    """Raised when a population prediction cannot be made for an area."""
