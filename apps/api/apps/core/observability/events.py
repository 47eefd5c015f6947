"""
Domain events logging helpers.

Provides structured event logging for thesis archive operations.
"""
from typing import Any, Dict, Optional

from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields: Any
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'thesis_transition', 'document_bound')
        entity_type: Type of entity (e.g., 'Thesis', 'ThesisDocument')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, blocked, ...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'thesis_transition',
            entity_type='Thesis',
            entity_id=str(thesis.id),
            from_status='draft',
            to_status='under_review',
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'rejected']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_thesis_transition(thesis, from_status, to_status, action, actor=None, result='success', **extra):
    """Log a thesis status transition (or a refused attempt)."""
    log_domain_event(
        'thesis_transition',
        entity_type='Thesis',
        entity_id=str(thesis.id),
        result=result,
        action=action,
        from_status=from_status,
        to_status=to_status,
        actor_id=str(actor.pk) if actor is not None else None,
        **extra
    )


def log_document_event(event_name, thesis, document=None, result='success', **extra):
    """Log document upload/download events for a thesis."""
    entity_ids = {'thesis_id': str(thesis.id)}
    if document is not None:
        entity_ids['document_id'] = str(document.id)
    log_domain_event(
        event_name,
        entity_type='ThesisDocument',
        entity_ids=entity_ids,
        result=result,
        **extra
    )
