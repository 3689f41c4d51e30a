"""Bounded, append-only campaign event log."""

from __future__ import annotations

from datetime import timedelta

from crusade.domain.enums import EventType
from crusade.domain.models import Campaign, EventLogEntry, utcnow
from crusade.domain.rules_config import DEFAULT_RULES, RulesConfig


def record_event(
    campaign: Campaign,
    event_type: EventType,
    description: str,
    *,
    rules: RulesConfig = DEFAULT_RULES,
    **data: object,
) -> EventLogEntry:
    """Append an event to the campaign log and touch ``modified_at``.

    Timestamps are strictly increasing within a session: if the clock has not
    advanced past the previous entry, the new entry is placed one microsecond
    after it.  When the log exceeds ``max_event_log_size`` the oldest entries
    are dropped.
    """

    timestamp = utcnow()
    if campaign.event_log:
        previous = campaign.event_log[-1].timestamp
        if timestamp <= previous:
            timestamp = previous + timedelta(microseconds=1)

    entry = EventLogEntry(timestamp=timestamp, type=event_type, description=description, data=data)
    campaign.event_log.append(entry)

    overflow = len(campaign.event_log) - rules.campaign.max_event_log_size
    if overflow > 0:
        del campaign.event_log[:overflow]

    campaign.modified_at = timestamp
    return entry


def events_of_type(campaign: Campaign, event_type: EventType) -> list[EventLogEntry]:
    return [entry for entry in campaign.event_log if entry.type == event_type]
