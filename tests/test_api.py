"""
Tests for the FastAPI backend.
"""

import pytest
from fastapi.testclient import TestClient

from backend.main import app, get_checker

TWO_BLOCKS = "```mermaid\nA --> B\n```\n\n```mermaid\nC <-- D;\n```"


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def with_checker(rejecting_checker):
    app.dependency_overrides[get_checker] = lambda: rejecting_checker
    return rejecting_checker


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_repair(client):
    response = client.post("/api/repair", json={"content": "A <-- B;"})
    assert response.json() == {"success": True, "content": "B --> A;", "changed": True}


def test_refine_with_grammar(client, with_checker):
    data = client.post("/api/refine", json={"content": TWO_BLOCKS}).json()

    assert data["success"]
    assert data["content"] == "```mermaid\nA --> B\n```\n\n```mermaid\nD --> C;\n```"
    assert data["changed"]
    assert data["invalid_blocks"] == 0


def test_refine_without_grammar(client):
    data = client.post("/api/refine", json={"content": "```mermaid\nA --> B;"}).json()

    assert data["content"] == "```mermaid\nA --> B;\n```"
    assert data["invalid_blocks"] is None


def test_refine_shallow(client, with_checker):
    data = client.post("/api/refine", json={"content": TWO_BLOCKS, "deep": False}).json()
    assert data["content"] == TWO_BLOCKS
    assert data["invalid_blocks"] == 1


def test_check(client, with_checker):
    data = client.post("/api/check", json={"content": TWO_BLOCKS}).json()

    assert data["invalid_blocks"] == 1
    assert data["summary"]["errors"] == 1
    assert data["issues"] == [{"type": "error", "message": "Diagram block failed to parse", "block_index": 1}]
    assert [b["edge_count"] for b in data["blocks"]] == [1, 1]


def test_check_requires_grammar(client):
    response = client.post("/api/check", json={"content": TWO_BLOCKS})
    assert response.status_code == 400


def test_batch(client, with_checker, tmp_path):
    (tmp_path / "a.md").write_text(TWO_BLOCKS, encoding="utf-8")
    data = client.post("/api/batch", json={"folder": str(tmp_path)}).json()

    assert data["success"]
    assert data["processed"] == 1
    assert data["modified_count"] == 1
    assert data["error_count"] == 0
    assert data["files"][0]["invalid_after"] == 0


def test_batch_missing_folder(client, with_checker, tmp_path):
    response = client.post("/api/batch", json={"folder": str(tmp_path / "missing")})
    assert response.status_code == 404


def test_batch_requires_grammar(client, tmp_path):
    response = client.post("/api/batch", json={"folder": str(tmp_path)})
    assert response.status_code == 400


def test_batch_writes_error_report(client, with_checker, tmp_path):
    (tmp_path / "a.md").write_text("```mermaid\nBROKEN\n```", encoding="utf-8")
    data = client.post("/api/batch", json={"folder": str(tmp_path), "write_error_report": True}).json()

    report = tmp_path / f"mermaid_error_{tmp_path.name}.md"
    assert data["error_report"] == str(report)
    assert report.read_text(encoding="utf-8") == "[[a.md]]-[1]"
