from .realtime_engine import RealtimeEngine

__all__ = ["RealtimeEngine"]
