"""Format strategies and the registry that selects them"""

from docintake.processing.registry import StrategyRegistry, create_default_registry
from docintake.processing.strategies import DocumentStrategy

__all__ = ["StrategyRegistry", "create_default_registry", "DocumentStrategy"]
