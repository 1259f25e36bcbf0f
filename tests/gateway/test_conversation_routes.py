"""会话、消息与聊天列表路由测试

测试内容：
1. 会话 get-or-create：同一三元组只有一个会话
2. 作者不能与自己开会话，authorId 必须是任务作者
3. 会话消息仅双方可读写，按时间升序，附带发送者资料
4. 发送消息后推送 new_message 到对应主题
5. 旧版任务作用域聊天
6. 聊天列表合并：会话条目覆盖同一任务的旧版条目
"""

import asyncio


async def _open_conversation(api, participant: str, task_id: str, author: str = "alice") -> dict:
    resp = await api.post(
        participant,
        "/api/conversations",
        json={"taskId": task_id, "authorId": author},
    )
    assert resp.status_code in (200, 201), resp.text
    return resp.json()


class TestConversationCreate:
    """POST /api/conversations"""

    async def test_get_or_create(self, api):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)

        first = await api.post(
            "bob", "/api/conversations", json={"taskId": task_id, "authorId": "alice"}
        )
        assert first.status_code == 201
        data = first.json()
        assert data["authorId"] == "alice"
        assert data["participantId"] == "bob"
        assert data.get("lastMessageAt") is None

        second = await api.post(
            "bob", "/api/conversations", json={"taskId": task_id, "authorId": "alice"}
        )
        assert second.status_code == 200
        assert second.json()["id"] == data["id"]

    async def test_one_conversation_per_participant(self, api):
        community_id = await api.community("alice", "bob", "carol")
        task_id = await api.task("alice", community_id)
        with_bob = await _open_conversation(api, "bob", task_id)
        with_carol = await _open_conversation(api, "carol", task_id)
        assert with_bob["id"] != with_carol["id"]

    async def test_author_cannot_open_with_self(self, api):
        community_id = await api.community("alice")
        task_id = await api.task("alice", community_id)
        resp = await api.post(
            "alice", "/api/conversations", json={"taskId": task_id, "authorId": "alice"}
        )
        assert resp.status_code == 400

    async def test_author_id_must_match(self, api):
        community_id = await api.community("alice", "bob", "carol")
        task_id = await api.task("alice", community_id)
        resp = await api.post(
            "bob", "/api/conversations", json={"taskId": task_id, "authorId": "carol"}
        )
        assert resp.status_code == 400

    async def test_non_member_forbidden(self, api):
        community_id = await api.community("alice")
        task_id = await api.task("alice", community_id)
        resp = await api.post(
            "mallory", "/api/conversations", json={"taskId": task_id, "authorId": "alice"}
        )
        assert resp.status_code == 403


class TestConversationMessages:
    """会话消息"""

    async def test_post_and_list(self, api):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)
        conversation = await _open_conversation(api, "bob", task_id)
        path = f"/api/conversations/{conversation['id']}/messages"

        resp = await api.post("bob", path, json={"content": "Is the dog friendly?"})
        assert resp.status_code == 201
        posted = resp.json()
        assert posted["conversationId"] == conversation["id"]
        assert posted["sender"]["id"] == "bob"
        assert posted["messageType"] == "text"
        assert "taskId" not in posted or posted["taskId"] is None

        await api.post("alice", path, json={"content": "Very friendly"})

        resp = await api.get("alice", path)
        assert resp.status_code == 200
        messages = resp.json()
        assert [m["content"] for m in messages] == ["Is the dog friendly?", "Very friendly"]
        assert [m["sender"]["id"] for m in messages] == ["bob", "alice"]

        listing = (await api.get("bob", "/api/conversations")).json()
        assert len(listing) == 1
        assert listing[0]["lastMessageAt"] is not None
        assert listing[0]["lastMessage"]["content"] == "Very friendly"
        assert listing[0]["task"]["id"] == task_id
        assert listing[0]["participant"]["id"] == "bob"

    async def test_outsider_forbidden(self, api):
        community_id = await api.community("alice", "bob", "carol")
        task_id = await api.task("alice", community_id)
        conversation = await _open_conversation(api, "bob", task_id)
        path = f"/api/conversations/{conversation['id']}/messages"

        assert (await api.get("carol", path)).status_code == 403
        assert (await api.post("carol", path, json={"content": "hi"})).status_code == 403

    async def test_blank_content_rejected(self, api):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)
        conversation = await _open_conversation(api, "bob", task_id)
        resp = await api.post(
            "bob",
            f"/api/conversations/{conversation['id']}/messages",
            json={"content": "   "},
        )
        assert resp.status_code == 400

    async def test_unknown_conversation(self, api):
        resp = await api.get("bob", "/api/conversations/01JAAAAAAAAAAAAAAAAAAAAAAA/messages")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "CONVERSATION_NOT_FOUND"

    async def test_new_message_pushed_to_conversation_topic(self, api, test_app):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)
        conversation = await _open_conversation(api, "bob", task_id)
        hub = test_app.state.event_hub
        conversation_queue = await hub.subscribe(f"conversation:{conversation['id']}")
        task_queue = await hub.subscribe(f"task:{task_id}")

        await api.post(
            "bob",
            f"/api/conversations/{conversation['id']}/messages",
            json={"content": "hello"},
        )

        envelope = await asyncio.wait_for(conversation_queue.get(), timeout=1)
        assert envelope["type"] == "new_message"
        assert envelope["conversationId"] == conversation["id"]
        assert envelope["message"]["content"] == "hello"
        assert envelope["message"]["senderId"] == "bob"
        assert task_queue.empty()


class TestTaskMessages:
    """旧版任务作用域聊天"""

    async def test_members_chat_on_task(self, api, test_app):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)
        queue = await test_app.state.event_hub.subscribe(f"task:{task_id}")

        resp = await api.post("bob", f"/api/tasks/{task_id}/messages", json={"content": "I can help"})
        assert resp.status_code == 201
        assert resp.json()["taskId"] == task_id

        envelope = queue.get_nowait()
        assert envelope["type"] == "new_message"
        assert envelope["taskId"] == task_id

        messages = (await api.get("alice", f"/api/tasks/{task_id}/messages")).json()
        assert [m["content"] for m in messages] == ["I can help"]

    async def test_non_member_forbidden(self, api):
        community_id = await api.community("alice")
        task_id = await api.task("alice", community_id)
        assert (await api.get("mallory", f"/api/tasks/{task_id}/messages")).status_code == 403
        resp = await api.post("mallory", f"/api/tasks/{task_id}/messages", json={"content": "x"})
        assert resp.status_code == 403


class TestChats:
    """GET /api/chats"""

    async def test_legacy_chat_entry(self, api):
        _, task_id = await api.accepted_task()
        await api.post("bob", f"/api/tasks/{task_id}/messages", json={"content": "On my way"})

        chats = (await api.get("bob", "/api/chats")).json()
        assert len(chats) == 1
        assert chats[0]["id"] == task_id
        assert chats[0]["helper"]["id"] == "bob"
        assert chats[0]["lastMessage"]["content"] == "On my way"
        assert chats[0].get("conversationId") is None

    async def test_conversation_overrides_legacy_entry(self, api):
        community_id, task_id = await api.accepted_task()
        await api.post("carol", f"/api/communities/{community_id}/join")
        await api.post("bob", f"/api/tasks/{task_id}/messages", json={"content": "legacy"})
        conversation = await _open_conversation(api, "carol", task_id)
        await api.post(
            "carol",
            f"/api/conversations/{conversation['id']}/messages",
            json={"content": "still available?"},
        )

        chats = (await api.get("alice", "/api/chats")).json()
        assert len(chats) == 1
        entry = chats[0]
        assert entry["id"] == task_id
        assert entry["conversationId"] == conversation["id"]
        assert entry["helper"]["id"] == "carol"
        assert entry["lastMessage"]["content"] == "still available?"

    async def test_participant_sees_author_as_counterpart(self, api):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)
        conversation = await _open_conversation(api, "bob", task_id)
        await api.post(
            "bob", f"/api/conversations/{conversation['id']}/messages", json={"content": "hi"}
        )

        [entry] = (await api.get("bob", "/api/chats")).json()
        assert entry["conversationId"] == conversation["id"]
        assert entry["author"]["id"] == "alice"
        assert entry["helper"]["id"] == "alice"

        [entry] = (await api.get("alice", "/api/chats")).json()
        assert entry["helper"]["id"] == "bob"

    async def test_sorted_by_latest_message(self, api):
        community_id = await api.community("alice", "bob")
        first = await api.task("alice", community_id, title="First")
        second = await api.task("alice", community_id, title="Second")
        first_conv = await _open_conversation(api, "bob", first)
        second_conv = await _open_conversation(api, "bob", second)

        await api.post("bob", f"/api/conversations/{second_conv['id']}/messages", json={"content": "a"})
        await api.post("bob", f"/api/conversations/{first_conv['id']}/messages", json={"content": "b"})

        chats = (await api.get("bob", "/api/chats")).json()
        assert [c["id"] for c in chats] == [first, second]
