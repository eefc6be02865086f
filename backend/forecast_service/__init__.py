from forecast_service.routing_modules.forecast_routing import forecast_error_handler
from forecast_service.routing_modules.forecast_routing import router as forecast_router
from forecast_service.orchestrator import ForecastOrchestrator

__all__ = ["forecast_router", "forecast_error_handler", "ForecastOrchestrator"]
