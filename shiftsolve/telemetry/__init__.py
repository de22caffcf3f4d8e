from shiftsolve.telemetry.sse import event_stream, publish_event

__all__ = ["event_stream", "publish_event"]
