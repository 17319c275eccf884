"""Client layer: facade, request executor, batch runner and prompt templates."""

from .batch import BatchRequest, BatchResponse, BatchResult, BatchSummary, run_batch
from .client import SutraClient
from .executor import RequestExecutor
from .templates import PromptTemplate, TemplateVariable

__all__ = [
    "BatchRequest",
    "BatchResponse",
    "BatchResult",
    "BatchSummary",
    "PromptTemplate",
    "RequestExecutor",
    "SutraClient",
    "TemplateVariable",
    "run_batch",
]
