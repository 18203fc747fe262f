"""
Event Store service for append-only audit logging.

State changes are logged here before the surrounding transaction commits.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.DAY_STARTED,
            entity_type="exam_day",
            entity_id=day.id,
            user_id=user_id,
            payload={"exam_id": exam.id, "day_number": day.day_number},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> EventLog:
        """
        Log an event to the immutable audit log.

        Args:
            event_type: The type of event
            entity_type: The type of entity (exam, exam_day, exam_session)
            entity_id: The ID of the entity
            user_id: The user who triggered the event (None for system events)
            payload: Additional event data

        Returns:
            The created EventLog record
        """
        if payload:
            payload = self._serialize_payload(payload)

        event = EventLog(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=payload or {},
        )

        self.session.add(event)
        # Caller flushes/commits with the state change
        return event

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """Get the event history for an entity, oldest first."""
        query = select(EventLog).where(
            and_(
                EventLog.entity_type == entity_type,
                EventLog.entity_id == entity_id,
            )
        )

        if event_types:
            query = query.where(EventLog.event_type.in_([e.value for e in event_types]))

        query = query.order_by(EventLog.created_at).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_events(
        self,
        event_type: Optional[EventType] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Count events matching the given criteria."""
        query = select(func.count(EventLog.id))

        if event_type:
            query = query.where(EventLog.event_type == event_type.value)
        if entity_id:
            query = query.where(EventLog.entity_id == entity_id)

        result = await self.session.execute(query)
        return result.scalar() or 0

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert payload values to JSON-serializable types."""
        result = {}
        for key, value in payload.items():
            if isinstance(value, uuid.UUID):
                result[key] = str(value)
            elif isinstance(value, datetime):
                result[key] = value.isoformat()
            elif hasattr(value, "value") and isinstance(getattr(value, "value"), str):
                result[key] = value.value
            elif isinstance(value, dict):
                result[key] = self._serialize_payload(value)
            else:
                result[key] = value
        return result
