import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def write_audit_log(payload):
    # import models lazily to avoid circular imports at module import time
    from .models import AuditLog

    try:
        entry = AuditLog.objects.create(
            school_id=payload.get("school_id"),
            user_id=payload.get("actor_id"),
            action=payload["action"],
            entity_kind=payload["entity_kind"],
            entity_id=payload["entity_id"],
            before=payload.get("before"),
            after=payload.get("after"),
            metadata=payload.get("metadata"),
        )
    except Exception:
        # the audit trail never fails the mutation that produced it
        logger.exception(
            "Could not write audit log for %s %s(%s)",
            payload.get("action"), payload.get("entity_kind"), payload.get("entity_id"),
        )
        return None
    return entry.pk
