"""Unit tests for the HTTP API."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from piano_crm.ai.providers import MODEL_UNAVAILABLE_MESSAGE, RATE_LIMIT_MESSAGE
from piano_crm.api import create_app
from piano_crm.api.deps import get_backend_factory, get_gmail_client, get_sender, get_storage
from piano_crm.exceptions import AIModelUnavailableError, AIRateLimitError
from piano_crm.mail import GmailSender
from piano_crm.models import SenderRole
from piano_crm.repository import draft_repository, message_repository, student_repository


class _Backend:
    def __init__(self, reply: str = "See you Tuesday.", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def draft(self, system_prompt, instruction):
        if self.error:
            raise self.error
        self.calls.append((system_prompt, instruction))
        return self.reply

    async def chat(self, history, message):
        return f"strategy: {message}"


@pytest.fixture
def app(mock_settings, engine):
    return create_app(mock_settings, engine)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def backend(app):
    chosen = _Backend()
    requested = []

    def factory(provider, settings):
        requested.append(provider)
        return chosen

    chosen.requested = requested
    app.dependency_overrides[get_backend_factory] = lambda: factory
    return chosen


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


class TestStudentsApi:
    """Test suite for /api/students."""

    def test_create_with_seed_message(self, client) -> None:
        response = client.post(
            "/api/students",
            json={
                "fullName": "Ben Keys",
                "email": "Ben@Example.com",
                "countryCode": "gb",
                "tags": ["Parent"],
                "seedMessage": "Do you teach 6 year olds?",
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["full_name"] == "Ben Keys"
        assert body["email"] == "ben@example.com"
        assert body["country_code"] == "GB"
        assert body["flag"] == "\U0001F1EC\U0001F1E7"
        assert body["is_unread"] is True
        assert [m["body_text"] for m in body["messages"]] == ["Do you teach 6 year olds?"]
        assert body["last_active"] == "Today"

    def test_duplicate_email_is_a_bad_request(self, client, student) -> None:
        response = client.post("/api/students", json={"fullName": "Ana 2", "email": "ana@example.com"})

        assert response.status_code == 400
        assert "already exists" in response.json()["error"]

    def test_list_and_search(self, client, student, engine) -> None:
        student_repository.create_student(engine, full_name="Ben Keys", email="ben@example.com")

        assert len(client.get("/api/students").json()) == 2
        found = client.get("/api/students", params={"search": "pian"}).json()
        assert [s["id"] for s in found] == [student.id]

    def test_missing_student(self, client) -> None:
        response = client.get("/api/students/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "Student not found: missing"}

    def test_patch_and_clear_fields(self, client, student) -> None:
        response = client.patch(
            f"/api/students/{student.id}",
            json={"status": "active", "countryCode": None, "instructorNotes": "Loves Chopin"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "active"
        assert body["country_code"] is None
        assert body["instructor_notes"] == "Loves Chopin"
        assert body["full_name"] == "Ana Pianist"

    def test_mark_read_and_unread(self, client, student) -> None:
        assert client.post(f"/api/students/{student.id}/read").json()["is_unread"] is False
        assert client.post(f"/api/students/{student.id}/unread").json()["is_unread"] is True
        assert client.post("/api/students/missing/read").status_code == 404

    def test_delete(self, client, student) -> None:
        assert client.delete(f"/api/students/{student.id}").status_code == 204
        assert client.delete(f"/api/students/{student.id}").status_code == 404

    def test_seed_message(self, client, student) -> None:
        response = client.post(f"/api/students/{student.id}/messages/seed", json={"bodyText": "Hi there"})

        assert response.status_code == 201
        assert response.json()["sender_role"] == "student"
        assert client.post(
            f"/api/students/{student.id}/messages/seed", json={"bodyText": "  "}
        ).status_code == 400

    def test_thread_messages_carry_clock_time(self, client, engine, student) -> None:
        message_repository.insert_message(
            engine,
            student_id=student.id,
            sender_role=SenderRole.STUDENT,
            body_text="Is 3pm free?",
            created_at=datetime(2024, 7, 1, 15, 5, tzinfo=timezone.utc),
        )

        listed = client.get(f"/api/students/{student.id}/messages").json()
        detail = client.get(f"/api/students/{student.id}").json()

        assert [m["time"] for m in listed] == ["3:05 PM"]
        assert [m["time"] for m in detail["messages"]] == ["3:05 PM"]

    def test_draft_lifecycle(self, client, student) -> None:
        assert client.get(f"/api/students/{student.id}/draft").json() is None

        saved = client.put(
            f"/api/students/{student.id}/draft",
            json={"subject": "Re: Lessons", "bodyHtml": "<p>Hi</p>", "cc": "mum@example.com"},
        ).json()
        assert saved["body_html"] == "<p>Hi</p>"
        assert client.get(f"/api/students/{student.id}/draft").json()["cc"] == "mum@example.com"

        assert client.delete(f"/api/students/{student.id}/draft").status_code == 204
        assert client.get(f"/api/students/{student.id}/draft").json() is None

    def test_copilot_greeting(self, client, student) -> None:
        greeting = client.get(f"/api/students/{student.id}/copilot-greeting").json()["greeting"]

        assert "Trinity exam" in greeting


class TestEmailApi:
    """Test suite for sending and syncing."""

    def test_send_records_thread(self, app, client, engine, student, mock_settings, fake_gmail, fake_smtp, fake_storage) -> None:
        app.dependency_overrides[get_sender] = lambda: GmailSender(
            mock_settings, gmail=fake_gmail(), smtp_factory=fake_smtp
        )
        app.dependency_overrides[get_storage] = lambda: fake_storage
        draft_repository.save_draft(engine, student_id=student.id, subject="Re: Lessons")

        response = client.post(
            "/api/email/send",
            json={
                "to": student.email,
                "subject": "Re: Lessons",
                "htmlContent": "<p>Tuesday works</p>",
                "cleanContent": "Tuesday works",
                "studentId": student.id,
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["messageId"] == fake_smtp.instances[0].sent[0]["Message-ID"]
        stored = message_repository.last_message_from(engine, student.id, SenderRole.INSTRUCTOR)
        assert stored.body_text == "Tuesday works"
        assert draft_repository.get_draft(engine, student.id) is None

    def test_student_sync(self, app, client, student, fake_gmail, gmail_message) -> None:
        gmail = fake_gmail([gmail_message("g1")])
        app.dependency_overrides[get_gmail_client] = lambda: gmail

        response = client.post("/api/email/sync", json={"studentId": student.id})

        assert response.json() == {"success": True, "count": 1}
        assert gmail.queries == [("from:ana@example.com newer_than:30d", 10)]

    def test_sync_without_student_id_is_a_bad_request(self, client) -> None:
        response = client.post("/api/email/sync", json={})

        assert response.status_code == 400
        assert "studentId" in response.json()["error"]

    def test_send_without_html_content_is_a_bad_request(self, app, client, mock_settings, fake_gmail, fake_smtp, fake_storage) -> None:
        app.dependency_overrides[get_sender] = lambda: GmailSender(
            mock_settings, gmail=fake_gmail(), smtp_factory=fake_smtp
        )
        app.dependency_overrides[get_storage] = lambda: fake_storage

        response = client.post("/api/email/send", json={"to": "a@b.c"})

        assert response.status_code == 400
        assert response.json() == {"error": "htmlContent: Field required"}
        assert fake_smtp.instances == []

    @pytest.mark.parametrize("params", [{}, {"key": "wrong"}, {"key": "clé"}])
    def test_cron_requires_secret(self, app, client, fake_gmail, params) -> None:
        app.dependency_overrides[get_gmail_client] = lambda: fake_gmail([])

        response = client.get("/api/cron/sync", params=params)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_cron_sync(self, app, client, student, fake_gmail, gmail_message) -> None:
        app.dependency_overrides[get_gmail_client] = lambda: fake_gmail([gmail_message("g1")])

        response = client.get("/api/cron/sync", params={"key": "cron-secret"})

        assert response.json() == {"success": True, "processed": 1}


class TestAiApi:
    """Test suite for the co-pilot endpoints."""

    def test_ai_chat_uses_requested_provider(self, client, student, backend) -> None:
        response = client.post(
            "/api/ai-chat",
            json={"message": "Confirm Tuesday", "studentId": student.id, "provider": "openai"},
        )

        assert response.json() == {"reply": "See you Tuesday.", "provider": "openai"}
        assert [p.value for p in backend.requested] == ["openai"]

    def test_ai_chat_default_provider(self, client, student, backend) -> None:
        response = client.post("/api/ai-chat", json={"message": "Hi", "studentId": student.id})

        assert response.json()["provider"] == "gemini"

    def test_ai_chat_requires_message(self, client, backend) -> None:
        response = client.post("/api/ai-chat", json={"studentId": "s1"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing message or studentId"}

    def test_ai_chat_unknown_student(self, client, backend) -> None:
        response = client.post("/api/ai-chat", json={"message": "Hi", "studentId": "missing"})

        assert response.status_code == 404
        assert response.json() == {"error": "Student not found"}

    @pytest.mark.parametrize(
        ("error", "status", "message"),
        [
            (AIRateLimitError(RATE_LIMIT_MESSAGE), 429, RATE_LIMIT_MESSAGE),
            (AIModelUnavailableError(MODEL_UNAVAILABLE_MESSAGE), 503, MODEL_UNAVAILABLE_MESSAGE),
        ],
    )
    def test_ai_errors_map_to_status(self, client, student, backend, error, status, message) -> None:
        backend.error = error

        response = client.post("/api/ai-chat", json={"message": "Hi", "studentId": student.id})

        assert response.status_code == status
        assert response.json() == {"error": message}

    def test_gemini_strategy_chat(self, client, student, backend) -> None:
        response = client.post("/api/gemini", json={"message": "What now?", "studentId": student.id})

        assert response.json() == {"reply": "strategy: What now?"}


class TestFilesApi:
    """Test suite for assets and attachments."""

    @pytest.fixture(autouse=True)
    def _storage(self, app, fake_storage):
        app.dependency_overrides[get_storage] = lambda: fake_storage

    def test_asset_upload_list_delete(self, client, fake_storage) -> None:
        created = client.post(
            "/api/assets", files={"file": ("Scales.pdf", b"%PDF", "application/pdf")}
        )

        assert created.status_code == 201
        asset = created.json()
        assert asset["file_name"] == "Scales.pdf"
        assert asset["size_label"] == "4 B"
        assert asset["public_url"].startswith("https://storage.test/attachments/library/")
        assert [a["id"] for a in client.get("/api/assets").json()] == [asset["id"]]
        assert client.get(f"/api/assets/{asset['id']}").json()["storage_path"] == asset["storage_path"]

        assert client.delete(f"/api/assets/{asset['id']}").status_code == 204
        assert client.get(f"/api/assets/{asset['id']}").status_code == 404
        assert client.delete(f"/api/assets/{asset['id']}").status_code == 404
        assert fake_storage.objects == {}

    def test_attachment_upload_and_delete(self, client, student) -> None:
        created = client.post(
            f"/api/students/{student.id}/attachments",
            files={"file": ("plan.txt", b"practice daily", "text/plain")},
        ).json()

        assert created["student_id"] == student.id
        assert created["file_type"].startswith("text/plain")
        listed = client.get(f"/api/students/{student.id}/attachments").json()
        assert [a["id"] for a in listed] == [created["id"]]

        assert client.delete(f"/api/attachments/{created['id']}").status_code == 204
        assert client.get(f"/api/students/{student.id}/attachments").json() == []

    def test_empty_upload_rejected(self, client) -> None:
        response = client.post("/api/assets", files={"file": ("empty.pdf", b"", "application/pdf")})

        assert response.status_code == 400


class TestSettingsAndDashboardApi:
    """Test suite for persona settings and the dashboard."""

    def test_settings_roundtrip(self, client) -> None:
        assert client.get("/api/settings").json()["instructor_profile"] == ""

        client.put("/api/settings", json={"instructorProfile": "Concert pianist", "writingStyle": "casual"})

        body = client.get("/api/settings").json()
        assert body["instructor_profile"] == "Concert pianist"
        assert body["writing_style"] == "casual"
        assert body["updated_at"] is not None

    def test_dashboard(self, client, engine, student) -> None:
        message_repository.insert_message(
            engine, student_id=student.id, sender_role=SenderRole.STUDENT, body_text="Any slots?"
        )

        body = client.get("/api/dashboard").json()

        assert body["stats"] == {"total_students": 1, "active_count": 0, "lead_count": 1}
        assert body["needs_reply"][0]["student"]["id"] == student.id
