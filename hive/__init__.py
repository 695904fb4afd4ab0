"""
Hive: real-time group chat backend.

Persistent Conversations and ephemeral Fades over a REST API and a
WebSocket gateway, plus the client-side reconciliation logic a frontend
uses to render optimistic messages.
"""
