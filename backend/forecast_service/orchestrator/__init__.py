from .pipeline import ForecastModelClient, ForecastOrchestrator, ForecastStage

__all__ = ["ForecastModelClient", "ForecastOrchestrator", "ForecastStage"]
