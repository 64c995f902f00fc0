import logging
from typing import Any

audit_logger = logging.getLogger("count_engine.audit")

def log_user_action(user_id: Any, action: str, entity: str, entity_id: Any = None):
    """Log user actions for audit trail"""
    audit_logger.info(f"User {user_id} performed {action} on {entity} {entity_id or ''}".rstrip())
