# src/services/live_channel/__init__.py
"""Live-канал событий журнала для дашборда."""

from src.services.live_channel.distributor import LiveChannelDistributor, SessionHandle

__all__ = ["LiveChannelDistributor", "SessionHandle"]
