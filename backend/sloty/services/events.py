"""
backend/sloty/services/events.py

Appointment events for the notification workers (outside this service).

Events are JSON objects pushed to a Redis list:
- events:p2p: instant delivery (confirmation to the customer, heads-up to the provider)
"""

import json
import time
import logging

from redis.exceptions import RedisError

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict, queue: str = P2P_QUEUE) -> bool:
    """
    Push one event to a Redis queue.

    The appointment is already committed when this runs, so a Redis
    failure is logged and reported as False, never raised.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(queue, json.dumps(event))
    except RedisError as e:
        logger.error(f"Failed to emit event {event_type} → {queue}: {e}")
        return False

    logger.info(f"Event emitted: {event_type} → {queue}")
    return True


def appointment_payload(appointment) -> dict:
    """Event payload for an appointment row (instants stay as stored UTC text)."""
    return {
        "appointment_id": appointment.id,
        "tenant_id": appointment.tenant_id,
        "location_id": appointment.location_id,
        "provider_id": appointment.provider_id,
        "service_id": appointment.service_id,
        "customer_ref": appointment.customer_ref,
        "start_at": appointment.start_at,
        "end_at": appointment.end_at,
        "status": appointment.status,
    }
