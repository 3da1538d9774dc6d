"""
Body pipeline stages.

    StreamPipeline     ordered chain source → stages → response sink
    Stage              base class for transform stages
    FunctionStage      wrap a generator function as a stage
    TransferLogStage   access log line per streamed body
"""

from .base import Stage, FunctionStage, function_stage, StreamPipeline
from .logging import TransferLogStage, TransferLog

__all__ = [
    "Stage",
    "FunctionStage",
    "function_stage",
    "StreamPipeline",
    "TransferLogStage",
    "TransferLog",
]
