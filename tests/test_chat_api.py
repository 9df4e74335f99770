"""
Chat REST endpoint tests: sending, threads, contacts and user lookup.
"""

import pytest


@pytest.fixture
def pair(make_user):
    alice_headers, alice, _ = make_user("alice", "organizer", "Alice", "Andrade")
    bob_headers, bob, _ = make_user("bob", "provider", "Bob", "Barros")
    return alice_headers, alice, bob_headers, bob


def _send(client, headers, receiver_id, text, **extra):
    return client.post("/api/chat/messages", headers=headers, json={"receiverId": receiver_id, "message": text, **extra})


class TestSendMessage:
    def test_send_returns_created_message(self, client, pair):
        alice_headers, alice, _, bob = pair
        resp = _send(client, alice_headers, bob["id"], "  Is the venue free on Friday?  ", eventId=12)
        assert resp.status_code == 201
        msg = resp.json()
        assert msg["senderId"] == alice["id"]
        assert msg["receiverId"] == bob["id"]
        assert msg["message"] == "Is the venue free on Friday?"
        assert msg["eventId"] == 12
        assert msg["readAt"] is None
        assert msg["createdAt"]

    def test_sender_comes_from_token(self, client, pair):
        alice_headers, alice, _, bob = pair
        resp = _send(client, alice_headers, bob["id"], "hello", senderId=bob["id"])
        assert resp.json()["senderId"] == alice["id"]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_message_rejected(self, client, pair, text):
        alice_headers, _, _, bob = pair
        assert _send(client, alice_headers, bob["id"], text).status_code == 422

    def test_too_long_message_rejected(self, client, pair):
        alice_headers, _, _, bob = pair
        assert _send(client, alice_headers, bob["id"], "x" * 5001).status_code == 422

    def test_cannot_message_self(self, client, pair):
        alice_headers, alice, _, _ = pair
        assert _send(client, alice_headers, alice["id"], "me").status_code == 400

    def test_unknown_receiver(self, client, pair):
        alice_headers, _, _, _ = pair
        assert _send(client, alice_headers, 99999, "anyone?").status_code == 404

    def test_requires_auth(self, client, pair):
        _, _, _, bob = pair
        assert client.post("/api/chat/messages", json={"receiverId": bob["id"], "message": "hi"}).status_code == 401


class TestThread:
    def test_contact_id_required(self, client, pair):
        alice_headers, _, _, _ = pair
        resp = client.get("/api/chat/messages", headers=alice_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Contact ID is required"

    def test_unknown_contact(self, client, pair):
        alice_headers, _, _, _ = pair
        resp = client.get("/api/chat/messages", headers=alice_headers, params={"contactId": 99999})
        assert resp.status_code == 404

    def test_thread_is_ordered_and_private(self, client, pair, make_user):
        alice_headers, alice, bob_headers, bob = pair
        carol_headers, carol, _ = make_user("carol", "advertiser")
        _send(client, alice_headers, bob["id"], "one")
        _send(client, bob_headers, alice["id"], "two")
        _send(client, carol_headers, alice["id"], "not in this thread")
        _send(client, alice_headers, bob["id"], "three")

        resp = client.get("/api/chat/messages", headers=alice_headers, params={"contactId": bob["id"]})
        assert resp.status_code == 200
        thread = resp.json()
        assert [m["message"] for m in thread] == ["one", "two", "three"]
        ids = [m["id"] for m in thread]
        assert ids == sorted(ids)

    def test_after_id_returns_only_newer(self, client, pair):
        alice_headers, alice, bob_headers, bob = pair
        first = _send(client, alice_headers, bob["id"], "one").json()
        _send(client, bob_headers, alice["id"], "two")
        resp = client.get(
            "/api/chat/messages", headers=alice_headers, params={"contactId": bob["id"], "afterId": first["id"]}
        )
        assert [m["message"] for m in resp.json()] == ["two"]


class TestContacts:
    def test_no_conversations(self, client, pair):
        alice_headers, _, _, _ = pair
        resp = client.get("/api/chat/contacts", headers=alice_headers)
        assert resp.status_code == 200
        assert resp.json() == []

    def test_unread_count_and_last_message(self, client, pair):
        alice_headers, alice, bob_headers, bob = pair
        _send(client, alice_headers, bob["id"], "first")
        _send(client, alice_headers, bob["id"], "second")

        contacts = client.get("/api/chat/contacts", headers=bob_headers).json()
        assert len(contacts) == 1
        contact = contacts[0]
        assert contact["id"] == alice["id"]
        assert contact["name"] == "Alice Andrade"
        assert contact["userType"] == "organizer"
        assert contact["unreadCount"] == 2
        assert contact["lastMessage"]["message"] == "second"
        assert contact["isOnline"] is False

        # the sender has nothing unread
        assert client.get("/api/chat/contacts", headers=alice_headers).json()[0]["unreadCount"] == 0

    def test_fetching_thread_marks_read(self, client, pair):
        alice_headers, alice, bob_headers, bob = pair
        _send(client, alice_headers, bob["id"], "ping")
        client.get("/api/chat/messages", headers=bob_headers, params={"contactId": alice["id"]})
        contacts = client.get("/api/chat/contacts", headers=bob_headers).json()
        assert contacts[0]["unreadCount"] == 0

        thread = client.get("/api/chat/messages", headers=bob_headers, params={"contactId": alice["id"]}).json()
        assert thread[0]["readAt"] is not None

    def test_newest_conversation_first(self, client, pair, make_user):
        alice_headers, alice, _, bob = pair
        carol_headers, carol, _ = make_user("carol", "advertiser")
        _send(client, alice_headers, bob["id"], "to bob")
        _send(client, carol_headers, alice["id"], "from carol")
        contacts = client.get("/api/chat/contacts", headers=alice_headers).json()
        assert [c["username"] for c in contacts] == ["carol", "bob"]
        assert contacts[0]["name"] == "carol"


class TestUsers:
    def test_list_excludes_self(self, client, pair):
        alice_headers, alice, _, bob = pair
        users = client.get("/api/users", headers=alice_headers).json()
        assert [u["id"] for u in users] == [bob["id"]]

    def test_search_by_display_name(self, client, pair, make_user):
        alice_headers, _, _, _ = pair
        make_user("carol", "advertiser", "Carolina", "Costa")
        users = client.get("/api/users", headers=alice_headers, params={"q": "COSTA"}).json()
        assert [u["username"] for u in users] == ["carol"]

    def test_search_matches_username_and_full_name(self, client, pair, make_user):
        alice_headers, _, _, _ = pair
        make_user("carol", "advertiser", "Carolina", "Costa")
        make_user("dj_kiko", "provider")
        make_user("buffet1", "provider", "Maria", None)

        def search(q):
            resp = client.get("/api/users", headers=alice_headers, params={"q": q})
            return [u["username"] for u in resp.json()]

        assert search("carolina cos") == ["carol"]
        assert search("J_K") == ["dj_kiko"]
        # only a full display name is searchable, not a lone first name
        assert search("Maria") == []
        assert search("%") == []
        assert search("_") == ["dj_kiko"]

    def test_get_user(self, client, pair):
        alice_headers, _, _, bob = pair
        assert client.get(f"/api/users/{bob['id']}", headers=alice_headers).json()["username"] == "bob"
        assert client.get("/api/users/99999", headers=alice_headers).status_code == 404
