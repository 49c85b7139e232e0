from .operation_context import OperationContext, OperationHandler

__all__ = ["OperationContext", "OperationHandler"]
