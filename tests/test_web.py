"""Tests for the HTTP API."""

from pathlib import Path

import pytest
from starlette.testclient import TestClient

from canvas_planner.web.app import build_app

from .helpers import make_config

OWNER = {"X-User-Email": "owner@example.com"}
GUEST = {"X-User-Email": "guest@example.com"}
STRANGER = {"X-User-Email": "stranger@example.com"}


@pytest.fixture
def client(tmp_path: Path):
	app = build_app(make_config(tmp_path))
	with TestClient(app) as c:
		yield c


def create_canvas(client: TestClient, nodes=None, edges=None, title="Plan") -> str:
	resp = client.post("/api/canvas/autosave", headers=OWNER, json={
		"nodes": nodes if nodes is not None else [{"id": "a", "title": "Alpha", "prompts": [{"id": "p1", "content": "do"}]}],
		"edges": edges or [],
		"title": title,
	})
	assert resp.status_code == 200
	return resp.json()["canvasId"]


def share(client: TestClient, canvas_id: str, email: str, level: str):
	return client.post(f"/api/canvas/{canvas_id}/share", headers=OWNER, json={"email": email, "permission": level})


class TestAutosave:
	def test_missing_identity_is_401(self, client):
		resp = client.get("/api/canvas/autosave")
		assert resp.status_code == 401
		assert resp.json() == {"error": "Unauthorized"}

	def test_load_before_any_save(self, client):
		resp = client.get("/api/canvas/autosave", headers=OWNER)
		assert resp.status_code == 200
		data = resp.json()
		assert data["exists"] is False
		assert data["nodes"] == []
		assert data["title"] == "Working Canvas"

	def test_create_then_update(self, client):
		canvas_id = create_canvas(client)

		resp = client.post("/api/canvas/autosave", headers=OWNER, json={
			"canvasId": canvas_id,
			"nodes": [{"id": "a"}, {"id": "b"}],
			"edges": [{"id": "e1", "sourceNodeId": "a", "targetNodeId": "b"}],
		})
		assert resp.json() == {"success": True, "canvasId": canvas_id, "action": "updated"}

		data = client.get("/api/canvas/autosave", params={"canvasId": canvas_id}, headers=OWNER).json()
		assert data["exists"] is True
		assert data["title"] == "Plan"
		assert [n["id"] for n in data["nodes"]] == ["a", "b"]
		assert data["edges"][0]["targetNodeId"] == "b"

	def test_invalid_payloads(self, client):
		resp = client.post("/api/canvas/autosave", headers=OWNER, json={"nodes": []})
		assert resp.status_code == 400
		resp = client.post("/api/canvas/autosave", headers=OWNER, json={"nodes": {}, "edges": []})
		assert resp.status_code == 400
		assert "nodes must be an array" in resp.json()["error"]
		resp = client.post("/api/canvas/autosave", headers=OWNER, content=b"not json")
		assert resp.status_code == 400

	def test_malformed_graph_is_400_and_not_stored(self, client):
		canvas_id = create_canvas(client)

		resp = client.post("/api/canvas/autosave", headers=OWNER, json={
			"canvasId": canvas_id,
			"nodes": [{"id": "a"}],
			"edges": [{"id": "e1", "sourceNodeId": "a", "targetNodeId": "ghost"}],
		})
		assert resp.status_code == 400
		assert "ghost" in resp.json()["error"]

		resp = client.post("/api/canvas/autosave", headers=OWNER, json={
			"canvasId": canvas_id, "nodes": [{"title": "no id"}], "edges": [],
		})
		assert resp.status_code == 400

		data = client.get("/api/canvas/autosave", params={"canvasId": canvas_id}, headers=OWNER).json()
		assert [n["id"] for n in data["nodes"]] == ["a"]
		assert data["edges"] == []
		assert client.get(f"/api/canvas/{canvas_id}/export", headers=OWNER).status_code == 200

	def test_unknown_canvas_is_404(self, client):
		resp = client.get("/api/canvas/autosave", params={"canvasId": "nope"}, headers=OWNER)
		assert resp.status_code == 404


class TestSharing:
	def test_view_share_reads_but_cannot_write(self, client):
		canvas_id = create_canvas(client)
		assert share(client, canvas_id, "Guest@Example.com", "view").status_code == 200

		resp = client.get("/api/canvas/autosave", params={"canvasId": canvas_id}, headers=GUEST)
		assert resp.status_code == 200

		resp = client.post("/api/canvas/autosave", headers=GUEST, json={"canvasId": canvas_id, "nodes": [], "edges": []})
		assert resp.status_code == 403

	def test_stranger_gets_404(self, client):
		canvas_id = create_canvas(client)
		resp = client.get("/api/canvas/autosave", params={"canvasId": canvas_id}, headers=STRANGER)
		assert resp.status_code == 404

	def test_owner_manages_shares(self, client):
		canvas_id = create_canvas(client)
		share(client, canvas_id, "guest@example.com", "view")
		share(client, canvas_id, "guest@example.com", "edit")

		shares = client.get(f"/api/canvas/{canvas_id}/share", headers=OWNER).json()["shares"]
		assert len(shares) == 1
		assert shares[0]["permissionLevel"] == "edit"
		assert shares[0]["sharedWithEmail"] == "guest@example.com"

		assert client.get(f"/api/canvas/{canvas_id}/share", headers=GUEST).status_code == 403

		resp = client.delete(f"/api/canvas/{canvas_id}/share", params={"email": "guest@example.com"}, headers=OWNER)
		assert resp.status_code == 200
		resp = client.delete(f"/api/canvas/{canvas_id}/share", params={"email": "guest@example.com"}, headers=OWNER)
		assert resp.status_code == 404

	def test_share_rejections(self, client):
		canvas_id = create_canvas(client)
		assert share(client, canvas_id, "owner@example.com", "edit").status_code == 400
		assert share(client, canvas_id, "x@example.com", "admin").status_code == 400


class TestSlots:
	def test_slot_lifecycle(self, client):
		canvas_id = create_canvas(client)
		url = f"/api/canvas/{canvas_id}/slots"

		resp = client.post(url, headers=OWNER, json={"slotNumber": 3, "slotName": "Draft", "nodes": [{"id": "a"}], "edges": []})
		assert resp.status_code == 200
		assert resp.json()["slot"]["slotName"] == "Draft"

		slots = client.get(url, headers=OWNER).json()["slots"]
		assert [s["slotNumber"] for s in slots] == [3]
		assert client.get(url, params={"slot": 3}, headers=OWNER).json()["slot"]["nodes"][0]["id"] == "a"
		assert client.get(url, params={"slot": 1}, headers=OWNER).status_code == 404

		assert client.delete(url, params={"slot": 3}, headers=OWNER).status_code == 200
		assert client.get(url, headers=OWNER).json()["slots"] == []

	def test_malformed_slot_is_400(self, client):
		canvas_id = create_canvas(client)
		url = f"/api/canvas/{canvas_id}/slots"

		resp = client.post(url, headers=OWNER, json={"slotNumber": 1, "nodes": ["x"], "edges": []})
		assert resp.status_code == 400

		resp = client.get(url, headers=OWNER)
		assert resp.status_code == 200
		assert resp.json()["slots"] == []

	def test_slot_bounds_and_viewers(self, client):
		canvas_id = create_canvas(client)
		url = f"/api/canvas/{canvas_id}/slots"
		resp = client.post(url, headers=OWNER, json={"slotNumber": 9, "nodes": [], "edges": []})
		assert resp.status_code == 400

		share(client, canvas_id, "guest@example.com", "view")
		assert client.get(url, headers=GUEST).status_code == 200
		resp = client.post(url, headers=GUEST, json={"slotNumber": 1, "nodes": [], "edges": []})
		assert resp.status_code == 403


class TestEvents:
	def test_record_and_list(self, client):
		canvas_id = create_canvas(client)
		url = f"/api/canvas/{canvas_id}/events"

		for event_type, target in [("block_created", "a"), ("prompt_completed", "a:p1")]:
			resp = client.post(url, headers=OWNER, json={
				"eventType": event_type, "targetId": target, "eventData": {"title": "Alpha"},
			})
			assert resp.status_code == 201

		data = client.get(url, headers=OWNER).json()
		assert [e["eventType"] for e in data["events"]] == ["prompt_completed", "block_created"]
		assert data["groups"][0]["label"] == "Today"

		only = client.get(url, params={"types": "block_created"}, headers=OWNER).json()
		assert [e["targetId"] for e in only["events"]] == ["a"]

		yesterday = client.get(url, params={"range": "yesterday"}, headers=OWNER).json()
		assert yesterday["events"] == []

	def test_event_validation(self, client):
		canvas_id = create_canvas(client)
		url = f"/api/canvas/{canvas_id}/events"
		assert client.post(url, headers=OWNER, json={"eventType": "exploded", "targetId": "a"}).status_code == 400
		assert client.post(url, headers=OWNER, json={"eventType": "block_created"}).status_code == 400
		assert client.get(url, params={"types": "bogus"}, headers=OWNER).status_code == 400
		assert client.get(url, params={"range": "someday"}, headers=OWNER).status_code == 400
		assert client.get(url, params={"from": "yesterday"}, headers=OWNER).status_code == 400

	def test_viewer_cannot_record(self, client):
		canvas_id = create_canvas(client)
		share(client, canvas_id, "guest@example.com", "view")
		url = f"/api/canvas/{canvas_id}/events"
		resp = client.post(url, headers=GUEST, json={"eventType": "block_created", "targetId": "a"})
		assert resp.status_code == 403
		assert client.get(url, headers=GUEST).json()["events"] == []


class TestExport:
	def test_json_and_outline(self, client):
		canvas_id = create_canvas(client)
		url = f"/api/canvas/{canvas_id}/export"

		data = client.get(url, headers=OWNER).json()
		assert data["version"] == "1.0"
		assert data["canvasTitle"] == "Plan"
		assert data["stats"]["totalBlocks"] == 1

		resp = client.get(url, params={"format": "outline"}, headers=OWNER)
		assert resp.status_code == 200
		assert resp.headers["content-type"].startswith("text/markdown")
		assert "- [ ] do" in resp.text

		assert client.get(url, params={"format": "pdf"}, headers=OWNER).status_code == 400
