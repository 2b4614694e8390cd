"""sensible_mle public API."""
from .config import AnnealingSchedule, Configuration, default_rng
from .errors import MLEError, ModelError
from .estimate import Estimate, Status
from .missing import listwise_delete, ml_imputation
from .model import Model
from .params import ParameterShape, StructuredParameters, pack, unpack
from .solve import restart, solve
from .trace import MemoryTraceSink, SQLiteTraceSink, plot_trace

__all__ = [
    "AnnealingSchedule",
    "Configuration",
    "Estimate",
    "MLEError",
    "MemoryTraceSink",
    "Model",
    "ModelError",
    "ParameterShape",
    "SQLiteTraceSink",
    "Status",
    "StructuredParameters",
    "default_rng",
    "listwise_delete",
    "ml_imputation",
    "pack",
    "plot_trace",
    "restart",
    "solve",
    "unpack",
]
