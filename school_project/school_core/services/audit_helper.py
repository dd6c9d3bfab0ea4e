import json
import logging
from typing import Optional

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.forms.models import model_to_dict

logger = logging.getLogger(__name__)


def snapshot(instance, fields=None) -> Optional[dict]:
    """Plain dict of a model row, suitable for the before/after columns."""
    if instance is None:
        return None
    data = model_to_dict(instance, fields=fields)
    data["id"] = instance.pk
    return data


def _json_safe(value):
    # Decimal/date/UUID -> str so the payload survives the json task serializer
    return json.loads(json.dumps(value, cls=DjangoJSONEncoder))


def _dispatch(payload):
    from ..tasks import write_audit_log  # avoid cyc import

    try:
        write_audit_log.delay(payload)
    except Exception:
        logger.exception(
            "Audit dispatch failed for %s %s(%s)",
            payload.get("action"), payload.get("entity_kind"), payload.get("entity_id"),
        )


def record_audit(
    *,
    context,
    action: str,
    entity_kind: str,
    entity_id,
    school_id=None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    metadata: Optional[dict] = None,
):
    """
    Best-effort audit recorder.
    Queued after the surrounding transaction commits (dropped if it rolls
    back); any failure is logged and never reaches the caller.
    """
    try:
        payload = _json_safe({
            "school_id": school_id if school_id is not None else context.school_id,
            "actor_id": context.user_id,
            "action": action,
            "entity_kind": entity_kind,
            "entity_id": str(entity_id),
            "before": before,
            "after": after,
            "metadata": metadata,
        })
        transaction.on_commit(lambda: _dispatch(payload))
    except Exception:
        logger.exception("Audit record failed for %s %s(%s)", action, entity_kind, entity_id)
