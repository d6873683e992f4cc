"""Tests for API endpoints."""

import pytest
from httpx import AsyncClient

from gbegne.services.artifacts import ArtifactStore

from conftest import FakeS3Client


async def _upload_artifact(client: AsyncClient, headers: dict, content: bytes = b"m4a-bytes") -> str:
    response = await client.post(
        "/v1/artifacts",
        headers=headers,
        files={"audio": ("take.m4a", content, "audio/m4a")},
        data={"duration_ms": "1500"},
    )
    assert response.status_code == 201
    return response.json()["artifact_id"]


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert "status" in data
    assert data["storage"] == "ok"


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    """Test root endpoint."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "Gbé-Gné Collection Service"


@pytest.mark.asyncio
async def test_languages_endpoint(client: AsyncClient):
    """Test languages listing endpoint."""
    response = await client.get("/v1/languages")
    assert response.status_code == 200
    data = response.json()
    assert [lang["code"] for lang in data] == ["french", "ewe"]
    assert data[0]["prompt_count"] == 20


@pytest.mark.asyncio
async def test_prompts_without_owner(client: AsyncClient):
    """Without an owner the whole catalog remains."""
    response = await client.get("/v1/prompts/french")
    assert response.status_code == 200
    data = response.json()
    assert data["total_remaining"] == 20
    assert len(data["items"]) == 20
    assert data["has_more"] is False


@pytest.mark.asyncio
async def test_prompt_search_and_paging(client: AsyncClient):
    response = await client.get("/v1/prompts/french", params={"q": "BONJOUR"})
    assert response.status_code == 200
    assert all("bonjour" in p["text"].lower() or "bonjour" in p["category"].lower()
               for p in response.json()["items"])

    response = await client.get("/v1/prompts/ewe", params={"page_size": 5})
    data = response.json()
    assert len(data["items"]) == 5
    assert data["has_more"] is True


@pytest.mark.asyncio
async def test_unknown_language(client: AsyncClient):
    response = await client.get("/v1/prompts/klingon")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_prompt(client: AsyncClient):
    response = await client.get("/v1/prompts/french/1")
    assert response.status_code == 200
    assert response.json()["text"] == "Bonjour, comment allez-vous?"

    response = await client.get("/v1/prompts/french/999")
    assert response.status_code == 404
    assert response.json()["code"] == "PROMPT_NOT_FOUND"


@pytest.mark.asyncio
async def test_categories(client: AsyncClient):
    response = await client.get("/v1/prompts/french/categories")
    assert response.status_code == 200
    assert response.json()[0] == "Greetings"


@pytest.mark.asyncio
async def test_artifact_requires_owner(client: AsyncClient):
    response = await client.post(
        "/v1/artifacts",
        files={"audio": ("take.m4a", b"m4a-bytes", "audio/m4a")},
    )
    assert response.status_code == 401
    assert response.json()["code"] == "OWNER_REQUIRED"


@pytest.mark.asyncio
async def test_empty_artifact_rejected(client: AsyncClient, guest_headers: dict):
    response = await client.post(
        "/v1/artifacts",
        headers=guest_headers,
        files={"audio": ("take.m4a", b"", "audio/m4a")},
    )
    assert response.status_code == 409
    assert response.json()["code"] == "RECORDER_ERROR"


@pytest.mark.asyncio
async def test_save_flow(client: AsyncClient, guest_headers: dict, s3_client: FakeS3Client):
    """Record, save, see the prompt leave the list, then list, play and delete it."""
    artifact_id = await _upload_artifact(client, guest_headers)

    response = await client.post(
        "/v1/recordings",
        headers=guest_headers,
        json={"artifact_id": artifact_id, "language": "french", "prompt_id": 1},
    )
    assert response.status_code == 201
    saved = response.json()
    assert saved["stage"] == "done"
    assert saved["completion_marked"] is True

    response = await client.get("/v1/prompts/french", headers=guest_headers)
    data = response.json()
    assert data["total_remaining"] == 19
    assert 1 not in [p["id"] for p in data["items"]]

    response = await client.get("/v1/recordings", headers=guest_headers)
    listing = response.json()
    assert listing["total"] == 1
    assert listing["recordings"][0]["text"] == "Bonjour, comment allez-vous?"
    assert listing["recordings"][0]["is_custom"] is False

    recording_id = saved["recording_id"]
    response = await client.get(f"/v1/recordings/{recording_id}/playback", headers=guest_headers)
    assert response.status_code == 200
    assert response.json()["expires_in"] == 3600
    assert saved["audio_file_path"] in response.json()["url"]

    response = await client.delete(f"/v1/recordings/{recording_id}", headers=guest_headers)
    assert response.status_code == 204
    assert s3_client.objects == {}


@pytest.mark.asyncio
async def test_progress_after_save(client: AsyncClient, guest_headers: dict):
    response = await client.get("/v1/prompts/french/progress", headers=guest_headers)
    assert response.status_code == 200
    assert response.json()["completed"] == 0

    artifact_id = await _upload_artifact(client, guest_headers)
    response = await client.post(
        "/v1/recordings",
        headers=guest_headers,
        json={"artifact_id": artifact_id, "language": "french", "prompt_id": 3},
    )
    assert response.status_code == 201

    response = await client.get("/v1/prompts/french/progress", headers=guest_headers)
    data = response.json()
    assert data["completed"] == 1
    assert data["total"] == 20
    assert data["remaining"] == 19


@pytest.mark.asyncio
async def test_save_custom_text(client: AsyncClient, guest_headers: dict):
    artifact_id = await _upload_artifact(client, guest_headers)

    response = await client.post(
        "/v1/recordings",
        headers=guest_headers,
        json={"artifact_id": artifact_id, "language": "ewe", "text": "  Ŋdi na wò, xɔ̃nye  "},
    )
    assert response.status_code == 201
    assert response.json()["completion_marked"] is False

    response = await client.get("/v1/recordings", headers=guest_headers, params={"language": "ewe"})
    recording = response.json()["recordings"][0]
    assert recording["text"] == "Ŋdi na wò, xɔ̃nye"
    assert recording["is_custom"] is True


@pytest.mark.asyncio
async def test_custom_text_too_short(client: AsyncClient, guest_headers: dict):
    artifact_id = await _upload_artifact(client, guest_headers)

    response = await client.post(
        "/v1/recordings",
        headers=guest_headers,
        json={"artifact_id": artifact_id, "language": "french", "text": "ab"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "TEXT_TOO_SHORT"


@pytest.mark.asyncio
async def test_upload_failure_is_retryable(
    client: AsyncClient,
    guest_headers: dict,
    s3_client: FakeS3Client,
    artifact_store: ArtifactStore,
):
    artifact_id = await _upload_artifact(client, guest_headers)
    s3_client.fail_uploads = True

    response = await client.post(
        "/v1/recordings",
        headers=guest_headers,
        json={"artifact_id": artifact_id, "language": "french", "prompt_id": 2},
    )
    assert response.status_code == 502
    data = response.json()
    assert data["code"] == "UPLOAD_FAILED"
    assert data["stage"] == "uploading"
    assert data["retryable"] is True
    assert artifact_store.exists(artifact_id)

    s3_client.fail_uploads = False
    response = await client.post(
        "/v1/recordings",
        headers=guest_headers,
        json={"artifact_id": artifact_id, "language": "french", "prompt_id": 2},
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_other_guest_cannot_use_artifact(client: AsyncClient, guest_headers: dict):
    artifact_id = await _upload_artifact(client, guest_headers)

    response = await client.post("/v1/guests", json={"username": "Kofi"})
    kofi = {"X-Guest-Id": response.json()["id"]}

    response = await client.post(
        "/v1/recordings",
        headers=kofi,
        json={"artifact_id": artifact_id, "language": "french", "prompt_id": 1},
    )
    assert response.status_code == 404
    assert response.json()["code"] == "ARTIFACT_NOT_FOUND"


@pytest.mark.asyncio
async def test_other_guest_cannot_see_recording(client: AsyncClient, guest_headers: dict):
    artifact_id = await _upload_artifact(client, guest_headers)
    response = await client.post(
        "/v1/recordings",
        headers=guest_headers,
        json={"artifact_id": artifact_id, "language": "french", "prompt_id": 1},
    )
    recording_id = response.json()["recording_id"]

    response = await client.post("/v1/guests", json={"username": "Kofi"})
    kofi = {"X-Guest-Id": response.json()["id"]}

    response = await client.get(f"/v1/recordings/{recording_id}/playback", headers=kofi)
    assert response.status_code == 404

    response = await client.get("/v1/recordings", headers=kofi)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_discard_artifact(client: AsyncClient, guest_headers: dict, artifact_store: ArtifactStore):
    artifact_id = await _upload_artifact(client, guest_headers)

    response = await client.delete(f"/v1/artifacts/{artifact_id}", headers=guest_headers)
    assert response.status_code == 204
    assert not artifact_store.exists(artifact_id)

    response = await client.delete(f"/v1/artifacts/{artifact_id}", headers=guest_headers)
    assert response.status_code == 404
