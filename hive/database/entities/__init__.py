"""
The `entities` package defines the ORM models of the application,
representing the database tables as Python classes via SQLAlchemy.

These entity classes are the foundation of the persistence layer,
used by DAOs (`daos` package) to perform CRUD operations.

Contents
--------
- User
    Represents a registered user in the system.
    * Stores credentials (with bcrypt-hashed password)
    * Holds the public profile: name, display name, avatar

- Conversation / ConversationParticipant / Message
    A persistent room, its membership rows and its messages.
    * Soft-deleted through `is_active`
    * Participant rows are unique per (conversation, user) and carry a role
    * Messages may reply to another message of the same conversation

- Fade / FadeParticipant / FadeMessage
    The ephemeral counterpart of the conversation tables.
    * Adds a mandatory `expires_at` timestamp
    * Visible only while active and not yet expired (see `hive.expiry`)

- Notebook
    A user's saved-message bookmark (user, message, optional title).
"""
from hive.database.entities.base import Base, Role, UTCDateTime, Visibility, as_utc, new_id, utcnow
from hive.database.entities.user import User
from hive.database.entities.conversation import Conversation, ConversationParticipant, Message
from hive.database.entities.fade import Fade, FadeMessage, FadeParticipant
from hive.database.entities.notebook import Notebook

__all__ = [
    "Base",
    "Conversation",
    "ConversationParticipant",
    "Fade",
    "FadeMessage",
    "FadeParticipant",
    "Message",
    "Notebook",
    "Role",
    "UTCDateTime",
    "User",
    "Visibility",
    "as_utc",
    "new_id",
    "utcnow",
]
