"""
The `api` package defines the backend's HTTP and WebSocket interface,
along with supporting utilities and data models.

It integrates FastAPI routing, JWT authentication, and the realtime
gateway. The package ensures clean request/response validation, secure
access control, and fan-out of new messages to joined rooms.

Contents
--------
- fast_api
    Health probe and account endpoints:
        * Signup, login, current user, and logout

- conversations_api / fades_api
    Room endpoints:
        * Listing, public discovery, and detail with messages
        * Creation, creator-only update and soft delete
        * Join and leave, paged message history

- messages_api
    Sending messages over REST, broadcast to the matching gateway room

- notebook_api
    Saving, listing, and removing bookmarked messages

- gateway
    The `/ws` endpoint and `RoomHub`:
        * Token handshake and room join/leave
        * `send-message` persistence and `new-message` broadcast
        * Typing indicator relay

- models
    Pydantic schemas for request/response validation:
        * camelCase request bodies
        * Response schemas read from ORM entities

- utils
    Auth utilities:
        * `hash_password` / `check_password`: bcrypt hashing
        * `create_access_token` / `verify_token`: JWT issue and check
        * `get_current_user`: bearer-token dependency
"""
