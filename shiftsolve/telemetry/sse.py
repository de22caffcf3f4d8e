import asyncio
import json
import logging
from typing import AsyncIterator, Dict, List, Tuple

logger = logging.getLogger(__name__)

# Store (queue, loop) to allow thread-safe publishing from poll threads
_subscribers: Dict[str, List[Tuple[asyncio.Queue, asyncio.AbstractEventLoop]]] = {}

TERMINAL_EVENTS = {"finished", "failed", "timeout", "cancelled", "infeasible"}


def _get_queue(session_id: str) -> asyncio.Queue:
    q = asyncio.Queue()
    loop = asyncio.get_running_loop()
    _subscribers.setdefault(session_id, []).append((q, loop))
    return q


def subscriber_count(session_id: str) -> int:
    return len(_subscribers.get(session_id, []))


def publish_event(session_id: str, event: dict) -> None:
    logger.debug(f"[SSE] {session_id}: {event.get('message')}")
    items = _subscribers.get(session_id, [])
    # Fan-out to the event loop owning each queue
    for (q, loop) in list(items):
        try:
            loop.call_soon_threadsafe(q.put_nowait, event)
        except RuntimeError:
            # loop already closed; the subscriber is gone
            logger.debug(f"[SSE] Dropping event for closed subscriber of {session_id}")


async def event_stream(session_id: str) -> AsyncIterator[bytes]:
    q = _get_queue(session_id)
    try:
        yield b"event: hello\n" + f"data: {json.dumps({'session_id': session_id})}\n\n".encode()
        while True:
            ev = await q.get()
            data = json.dumps(ev, ensure_ascii=False, default=str)
            yield b"event: update\n" + f"data: {data}\n\n".encode()
            if ev.get("kind") in TERMINAL_EVENTS:
                break
    finally:
        lst = _subscribers.get(session_id, [])
        for item in list(lst):
            if item[0] is q:
                lst.remove(item)
        if not lst and session_id in _subscribers:
            _subscribers.pop(session_id, None)
