# src/core/fleet/__init__.py
"""Агрегаты по парку водителей и заявкам."""

from src.core.fleet.service import FleetService, FleetSummary, summarize

__all__ = ["FleetService", "FleetSummary", "summarize"]
