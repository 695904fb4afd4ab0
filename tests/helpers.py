"""Request helpers shared by the API and gateway tests."""
from datetime import datetime, timedelta, timezone


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def create_conversation(client, token: str, **fields) -> dict:
    body = {"name": "General", "topics": ["chat"]}
    body.update(fields)
    response = client.post("/api/conversations", json=body, headers=auth_headers(token))
    assert response.status_code == 201, response.text
    return response.json()


def create_fade(client, token: str, expires_in: timedelta = timedelta(hours=2), **fields) -> dict:
    body = {
        "name": "Pop-up",
        "topics": ["ephemeral"],
        "expiresAt": (datetime.now(timezone.utc) + expires_in).isoformat(),
    }
    body.update(fields)
    response = client.post("/api/fades", json=body, headers=auth_headers(token))
    assert response.status_code == 201, response.text
    return response.json()


def send_message(client, token: str, conversation_id: str, content: str, **fields) -> dict:
    response = client.post(
        f"/api/messages/conversations/{conversation_id}",
        json={"content": content, **fields},
        headers=auth_headers(token),
    )
    assert response.status_code == 201, response.text
    return response.json()
