"""liftdiag - evidence correlation and validation for elevator maintenance history."""

from liftdiag.config import EngineConfig
from liftdiag.engine import CorrelationEngine
from liftdiag.models import CorrelationResult

__version__ = "0.1.0"

__all__ = ["CorrelationEngine", "CorrelationResult", "EngineConfig"]
