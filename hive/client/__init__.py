"""
Client-side state helpers a Hive frontend runs.

Contents
--------
- timeline
    `MessageTimeline`: optimistic rendering of sent messages and
    reconciliation with the server's `new-message` echoes.

- filters
    `filter_items`: case-insensitive discovery search over names,
    descriptions and topics.
"""
from hive.client.filters import filter_items
from hive.client.timeline import MessageTimeline, Outcome

__all__ = ["MessageTimeline", "Outcome", "filter_items"]
