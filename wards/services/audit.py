from typing import Optional, Any, Dict
from django.contrib.auth import get_user_model
from wards.models import AuditEvent

User = get_user_model()

def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id: Optional[int]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        user=user if getattr(user, 'is_authenticated', False) else None,
        action=action,
        object_type=object_type, object_id=object_id,
        detail=detail or {},
    )

def history_for(object_type: str, object_id: int) -> list[dict]:
    events = AuditEvent.objects.filter(object_type=object_type, object_id=object_id).select_related('user').order_by('created_at', 'id')
    return [{
        'action': e.action,
        'by': e.user.get_username() if e.user else None,
        'detail': e.detail,
        'createdAt': e.created_at.isoformat(),
    } for e in events]
