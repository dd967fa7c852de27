"""
Audit trail of who changed what.

Recording is best-effort: a failed write is logged and never blocks the
mutation that triggered it.
"""
import logging
import uuid
from typing import Dict, List, Optional

from tourney.models import to_timestamp, utcnow

logger = logging.getLogger(__name__)

AUDIT_COLLECTION = 'auditLog'


class AuditLog:
    def __init__(self, store, clock=utcnow):
        self.store = store
        self.clock = clock

    def record(self, actor_id: str, actor_email: Optional[str], action: str, entity_type: str,
               entity_id: Optional[str] = None, tournament_id: Optional[str] = None):
        entry_id = uuid.uuid4().hex
        entry = {
            'id': entry_id,
            'tournament_id': tournament_id,
            'user_id': actor_id,
            'user_email': actor_email,
            'action': action,
            'entity_type': entity_type,
            'entity_id': entity_id,
            'created_at': to_timestamp(self.clock()),
        }
        try:
            self.store.set(f"{AUDIT_COLLECTION}/{entry_id}", entry)
        except Exception as e:
            logger.warning(f'[auditLog] write failed for {action} {entity_type}: {e}')

    def entries(self, tournament_id: Optional[str] = None, limit: int = 100) -> List[Dict]:
        """Newest entries first, optionally for one tournament only."""
        entries = self.store.list(AUDIT_COLLECTION)
        if tournament_id:
            entries = [e for e in entries if e.get('tournament_id') == tournament_id]
        entries.sort(key=lambda e: e.get('created_at') or '', reverse=True)
        return entries[:limit]
