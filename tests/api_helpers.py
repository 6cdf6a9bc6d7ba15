"""Shared helpers for building principals, tokens and upload files in tests."""

import csv
import io
from typing import Dict, Iterable, List, Optional

from rbac.dependencies import CurrentPrincipal
from rbac.jwt import TokenPayload
from rbac.roles import Role

TEST_JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
PASSWORD = "correct-horse-battery"
HEADER = ["FirstName", "Phone", "Notes"]


def make_principal(principal_id: str, role: Role, email: str = "") -> CurrentPrincipal:
    """CurrentPrincipal as the access guard would resolve it."""
    return CurrentPrincipal(
        id=principal_id,
        email=email,
        role=role,
        token_payload=TokenPayload(sub=principal_id, email=email, role=role),
    )


# =============================================================================
# HTTP
# =============================================================================

def auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register_admin(client, email="admin@example.com", name="Admin") -> dict:
    response = client.post(
        "/auth/register",
        json={"name": name, "email": email, "password": PASSWORD},
    )
    assert response.status_code == 201, response.text
    return response.json()


def login(client, email: str, role: str, password: str = PASSWORD) -> str:
    response = client.post(
        "/auth/login",
        json={"email": email, "password": password, "role": role},
    )
    assert response.status_code == 200, response.text
    return response.json()["token"]


def create_agent(client, admin_token: str, name: str, email: Optional[str] = None) -> dict:
    response = client.post(
        "/agents",
        json={
            "name": name,
            "email": email or f"{name.lower()}@example.com",
            "mobile": "+15550100",
            "password": PASSWORD,
        },
        headers=auth_header(admin_token),
    )
    assert response.status_code == 201, response.text
    return response.json()


def create_sub_agent(client, agent_token: str, name: str, email: Optional[str] = None) -> dict:
    response = client.post(
        "/subagents",
        json={
            "name": name,
            "email": email or f"{name.lower()}@example.com",
            "mobile": "+15550199",
            "password": PASSWORD,
        },
        headers=auth_header(agent_token),
    )
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# UPLOAD FILES
# =============================================================================

def contact_rows(count: int) -> List[List[str]]:
    return [[f"Contact{i}", f"555-01{i:02d}", f"note {i}"] for i in range(count)]


def csv_bytes(rows: Iterable[Iterable[str]], header: Iterable[str] = HEADER) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(list(header))
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def upload_csv(client, token: str, content: bytes, path: str = "/tasks/upload",
               filename: str = "contacts.csv"):
    return client.post(
        path,
        files={"file": (filename, content, "text/csv")},
        headers=auth_header(token),
    )
