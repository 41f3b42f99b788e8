from uuid import uuid4

from fragrance_battle.domain.entities import Fragrance


def make_fragrance(name: str, brand: str, **kwargs) -> Fragrance:
    return Fragrance(id=uuid4(), name=name, brand=brand, **kwargs)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register(client, username: str = "alice", email: str | None = None) -> dict:
    response = client.post(
        "/api/auth/register",
        json={"username": username, "email": email or f"{username}@example.com", "password": "secret123"},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]
