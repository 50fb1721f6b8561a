# src/services/operations_api/__init__.py
"""HTTP API операционного ядра и websocket ленты активности."""
