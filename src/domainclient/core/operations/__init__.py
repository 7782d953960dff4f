"""
Operations - Asynchronous load, invoke and submit operations.
"""

from .base import OperationBase, OperationHooks, classify_operation_error
from .invoke import InvokeOperation
from .load import LoadOperation, LoadResult
from .submit import SubmitOperation


__all__ = [
    "InvokeOperation",
    "LoadOperation",
    "LoadResult",
    "OperationBase",
    "OperationHooks",
    "SubmitOperation",
    "classify_operation_error",
]
