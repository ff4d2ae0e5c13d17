"""Workflows module."""
from .planning import PlanningWorkflow, coerce_products
from .planning_parallel import forecast_product, run_forecasts_parallel

__all__ = ['PlanningWorkflow', 'coerce_products', 'forecast_product', 'run_forecasts_parallel']
