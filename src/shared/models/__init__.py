# src/shared/models/__init__.py
"""
Общие модели ответов API и результатов операций.
"""

from src.shared.models.common import (
    ErrorResponse,
    HealthStatus,
    OperationResult,
)

__all__ = [
    "ErrorResponse",
    "HealthStatus",
    "OperationResult",
]
