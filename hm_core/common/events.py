# hm_core/common/events.py
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

from django.db import transaction

Handler = Callable[[Dict[str, Any]], None]

_registry: Dict[str, List[Handler]] = defaultdict(list)

logger = logging.getLogger(__name__)


def subscribe(event_name: str):
    """
    Decorator to register an in-process handler.
    Usage:
        @subscribe("encounter.admitted")
        def charge_bed_day(payload): ...
    """
    def _decorator(fn: Handler) -> Handler:
        _registry[event_name].append(fn)
        return fn
    return _decorator


def publish(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Deliver an event to subscribers synchronously.
    Payloads are id-based so consumers (billing, dashboards) need no model imports.
    """
    handlers = _registry.get(event_name, [])
    logger.debug("publish %s to %d handler(s)", event_name, len(handlers))
    for handler in handlers:
        handler(payload)


def publish_on_commit(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Defer publish() until the surrounding transaction commits.
    A rolled-back admit/transfer/discharge therefore never reaches consumers.
    """
    transaction.on_commit(lambda: publish(event_name, payload))
