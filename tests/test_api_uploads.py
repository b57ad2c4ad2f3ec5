"""
API tests for single-file and chunked uploads.
"""

AUDIO = b"ID3" + b"\x00\x01" * 512


def _upload(client, headers, name="meeting.mp3", content=AUDIO, **form):
    return client.post(
        "/api/uploads",
        files={"file": (name, content, "audio/mpeg")},
        data=form,
        headers=headers,
    )


class TestUploadEndpoint:
    def test_upload_runs_the_pipeline(self, client, auth_headers):
        response = _upload(client, auth_headers, language="en", title="Standup")

        assert response.status_code == 201
        meeting_id = response.json()["meeting_id"]

        meeting = client.get(f"/api/meetings/{meeting_id}", headers=auth_headers).json()
        assert meeting["title"] == "Standup"
        assert meeting["status"] == "COMPLETED"
        assert len(meeting["transcript"]) == 3
        assert meeting["minutes"]["content"].startswith("# Meeting Minutes")

    def test_second_upload_hits_the_weekly_limit(self, client, auth_headers):
        assert _upload(client, auth_headers).status_code == 201

        response = _upload(client, auth_headers, name="again.mp3")

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "USAGE_LIMIT_EXCEEDED"
        assert body["details"]["usage"]["uploads_this_week"] == 1

    def test_usage_reflects_the_upload(self, client, auth_headers):
        _upload(client, auth_headers)
        usage = client.get("/api/usage", headers=auth_headers).json()
        assert usage["uploads_this_week"] == 1
        assert usage["minutes_this_week"] == 2

    def test_unsupported_file(self, client, auth_headers):
        response = _upload(client, auth_headers, name="notes.txt")
        assert response.status_code == 400
        assert response.json()["error"] == "FILE_UPLOAD_ERROR"

    def test_requires_authentication(self, client):
        assert _upload(client, {}).status_code == 401


class TestChunkedUploadEndpoints:
    def test_chunked_flow(self, client, auth_headers):
        initiated = client.post(
            "/api/uploads/chunked/initiate",
            json={"filename": "call.wav", "total_size": len(AUDIO), "total_chunks": 2},
            headers=auth_headers,
        )
        assert initiated.status_code == 201
        upload_id = initiated.json()["upload_id"]
        base = f"/api/uploads/chunked/{upload_id}"

        for index, part in enumerate([AUDIO[:600], AUDIO[600:]]):
            response = client.post(
                f"{base}/chunk/{index}",
                files={"chunk": (f"part{index}", part, "application/octet-stream")},
                headers=auth_headers,
            )
            assert response.status_code == 200

        status = client.get(f"{base}/status", headers=auth_headers).json()
        assert status["missing_chunks"] == []

        completed = client.post(f"{base}/complete", headers=auth_headers)
        assert completed.status_code == 200
        meeting_id = completed.json()["meeting_id"]

        meeting = client.get(f"/api/meetings/{meeting_id}", headers=auth_headers).json()
        assert meeting["status"] == "COMPLETED"

    def test_complete_with_missing_chunks(self, client, auth_headers):
        upload_id = client.post(
            "/api/uploads/chunked/initiate",
            json={"filename": "call.wav", "total_size": 100, "total_chunks": 2},
            headers=auth_headers,
        ).json()["upload_id"]

        response = client.post(f"/api/uploads/chunked/{upload_id}/complete", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["details"]["missing_chunks"] == [0, 1]

    def test_initiate_rejects_too_many_chunks(self, client, auth_headers):
        response = client.post(
            "/api/uploads/chunked/initiate",
            json={"filename": "call.wav", "total_size": 100, "total_chunks": 5000},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
