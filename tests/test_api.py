import unittest

from fastapi.testclient import TestClient

from guard_comms.core.models import ChatUser
from guard_comms.core.service import ChatService, get_chat_service
from guard_comms.core.store import MemoryConversationStore
from guard_comms.main import app

GUARD = {"id": "g1", "display_name": "J. Rivera", "role": "guard", "badge_number": "1234"}
STAFF = {"id": "s1", "display_name": "M. Chen", "role": "dispatch"}


class ChatApiTests(unittest.TestCase):
    def setUp(self):
        self.store = MemoryConversationStore(
            users=[ChatUser(id="s2", display_name="A. Park", role="owner")],
        )
        self.service = ChatService(self.store)
        app.dependency_overrides[get_chat_service] = lambda: self.service
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")

    def test_session_provisions_and_lists(self):
        response = self.client.post("/api/chat/session", json=GUARD)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"user_id": "g1", "role": "guard", "backend": "memory"})

        # second login is a no-op
        self.client.post("/api/chat/session", json=GUARD)

        mine = self.client.get("/api/chat/conversations", params={"user_id": "g1", "kind": "team_chat"})
        self.assertEqual(
            [c["display_name"] for c in mine.json()],
            ["Owners", "Management Team", "Dispatch", "Operations Team", "Supervision Team", "Training Team"],
        )

        staff_view = self.client.get("/api/chat/conversations", params={"user_id": "s1", "kind": "team_chat"})
        self.assertIn("#1234 J. Rivera – Dispatch", [c["display_name"] for c in staff_view.json()])

    def test_session_loads_profile_from_header(self):
        response = self.client.post("/api/chat/session", headers={"X-User-ID": "s2"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["role"], "owner")

        listed = self.client.get("/api/chat/conversations", params={"user_id": "s2", "kind": "team_chat"})
        self.assertEqual(len(listed.json()), 8)

    def test_session_requires_user(self):
        self.assertEqual(self.client.post("/api/chat/session").status_code, 401)
        self.assertEqual(
            self.client.post("/api/chat/session", headers={"X-User-ID": "nobody"}).status_code,
            404,
        )

    def test_send_and_read_messages(self):
        self.client.post("/api/chat/session", json=GUARD)

        for body in ("a", "b", "c"):
            response = self.client.post(
                "/api/chat/conversations/support-dispatch-g1/messages",
                json={"sender": GUARD, "body": body},
            )
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.json()["kind"], "text")

        messages = self.client.get("/api/chat/conversations/support-dispatch-g1/messages").json()
        self.assertEqual([m["kind"] for m in messages], ["system", "text", "text", "text"])
        self.assertEqual([m["body"] for m in messages[1:]], ["a", "b", "c"])

    def test_empty_message_rejected(self):
        response = self.client.post(
            "/api/chat/conversations/mission-204/messages",
            json={"sender": STAFF, "body": "   "},
        )
        self.assertEqual(response.status_code, 400)

    def test_unknown_conversation_has_no_messages(self):
        response = self.client.get("/api/chat/conversations/nothing-here/messages")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_mission_channel_participants_and_archive(self):
        response = self.client.post(
            "/api/chat/missions/204/channel",
            json={
                "title": "Mission #204 – Safeway Overnight Patrol",
                "participants": [{"user_id": "g1", "name": "J. Rivera", "role": "guard", "rank": "OFC"}],
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], "mission-204")

        participants = self.client.get("/api/chat/conversations/mission-204/participants").json()
        self.assertEqual(participants[0]["rank"], "OFC")

        archived = self.client.post("/api/chat/conversations/mission-204/archive")
        self.assertEqual(archived.json()["status"], "archived")
        self.assertEqual(
            self.client.post("/api/chat/conversations/unknown/archive").status_code,
            404,
        )
