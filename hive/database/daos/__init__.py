"""
The `daos` package provides the Data Access Layer for the application.

It is responsible for all interactions with the database entities,
encapsulating CRUD operations that support the core functionality
of the system. Each DAO wraps a SQLAlchemy session and operates on a
specific entity family, offering a cleaner API to the service layer
(`hive.database.core.funcs`).

Contents
--------
- UserDao
    Handles user persistence:
    * Creates users from an already hashed password
    * Fetches users by id, email or a batch of ids

- ConversationDao
    Manages conversation records:
    * Lists a user's conversations and the public directory
    * Creates conversations with the creator as HOST
    * Updates, soft-deletes, and adds/removes participant rows

- FadeDao
    Same surface as ConversationDao for fades, with the expiry policy's
    visibility clause applied to discovery and join lookups.

- MessageDao
    Manages message records for either room type:
    * Fetches messages in chronological order with limit/offset
    * Creates messages and bumps the parent's last-updated timestamp

- NotebookDao
    Manages saved-message bookmarks per user.
"""
from hive.database.daos.conversation_dao import ConversationDao
from hive.database.daos.fade_dao import FadeDao
from hive.database.daos.message_dao import MessageDao
from hive.database.daos.notebook_dao import NotebookDao
from hive.database.daos.user_dao import UserDao

__all__ = ["ConversationDao", "FadeDao", "MessageDao", "NotebookDao", "UserDao"]
