"""社区互助市场端到端场景

发布任务 -> 接受 -> 交易握手 -> 完成 -> 评分，以及取消、聊天列表合并。
"""

import asyncio


class TestHappyPath:
    """完整链路"""

    async def test_task_to_rating(self, api, test_app):
        # 1. 作者发布任务，帮助者接受
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id, reward="15000")
        resp = await api.patch("bob", f"/api/tasks/{task_id}", json={"helperId": "bob"})
        assert resp.json()["status"] == "accepted"
        assert resp.json()["helperId"] == "bob"

        # 2. 作者创建交易，双方请求开始
        tx = await api.transaction("alice", task_id)
        assert tx["status"] == "pending"
        assert tx["payerId"] == "alice"
        assert tx["payeeId"] == "bob"
        assert tx["amount"] == "15000.00"

        queue = await test_app.state.event_hub.subscribe(f"task:{task_id}")
        resp = await api.patch("bob", f"/api/transactions/{tx['id']}/start-request")
        assert resp.json()["status"] == "start_requested"
        assert resp.json()["payeeStartRequested"] is True

        resp = await api.patch("alice", f"/api/transactions/{tx['id']}/start-request")
        assert resp.json()["status"] == "in_progress"
        assert resp.json()["payerStartRequested"] is True

        pushed = [queue.get_nowait(), queue.get_nowait()]
        assert [p["bothRequested"] for p in pushed] == [False, True]
        assert pushed[1]["requestedBy"] == "alice"

        # 3. 双方确认
        resp = await api.patch("alice", f"/api/transactions/{tx['id']}/confirm")
        assert resp.json()["status"] == "in_progress"
        resp = await api.patch("bob", f"/api/transactions/{tx['id']}/confirm")
        assert resp.json()["status"] == "completed"
        assert resp.json()["completedAt"] is not None
        # 握手标志位不会被重置
        assert all(
            resp.json()[flag]
            for flag in (
                "payerStartRequested",
                "payeeStartRequested",
                "payerConfirmed",
                "payeeConfirmed",
            )
        )

        # 4. 作者完成任务，双方互评
        resp = await api.patch("alice", f"/api/tasks/{task_id}", json={"status": "completed"})
        assert resp.json()["status"] == "completed"

        resp = await api.post(
            "alice", "/api/ratings", json={"taskId": task_id, "ratedId": "bob", "rating": 5}
        )
        assert resp.json()["ratedUserRating"] == "5.00"
        resp = await api.post(
            "bob", "/api/ratings", json={"taskId": task_id, "ratedId": "alice", "rating": 4}
        )
        assert resp.json()["ratedUserRating"] == "4.00"

        bob = (await api.get("bob", "/api/auth/user")).json()
        assert bob["completedTasks"] == 1
        assert bob["rating"] == "5.00"

        # 完成的任务不再出现在社区列表
        listing = (await api.get("alice", f"/api/communities/{community_id}/tasks")).json()
        assert listing == []


class TestCancellation:
    """作者取消已接受的任务"""

    async def test_cancelled_task_rejects_further_actions(self, api):
        community_id, task_id = await api.accepted_task()
        await api.post("carol", f"/api/communities/{community_id}/join")

        resp = await api.delete("alice", f"/api/tasks/{task_id}")
        assert resp.json()["status"] == "cancelled"

        resp = await api.delete("alice", f"/api/tasks/{task_id}")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_STATE"

        resp = await api.patch("carol", f"/api/tasks/{task_id}", json={"helperId": "carol"})
        assert resp.status_code == 409

        resp = await api.post("alice", f"/api/tasks/{task_id}/transaction")
        assert resp.status_code == 409

    async def test_cancelled_open_task_cannot_be_accepted(self, api):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)
        await api.delete("alice", f"/api/tasks/{task_id}")

        resp = await api.patch("bob", f"/api/tasks/{task_id}", json={"helperId": "bob"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_STATE"


class TestChatInbox:
    """旧版聊天与会话合并"""

    async def test_single_entry_per_task(self, api):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)

        await api.post("alice", f"/api/tasks/{task_id}/messages", json={"content": "Anyone?"})
        await api.post("bob", f"/api/tasks/{task_id}/messages", json={"content": "Me!"})

        resp = await api.post(
            "bob", "/api/conversations", json={"taskId": task_id, "authorId": "alice"}
        )
        conversation_id = resp.json()["id"]

        chats = (await api.get("alice", "/api/chats")).json()
        assert len(chats) == 1
        assert chats[0]["id"] == task_id
        assert chats[0]["conversationId"] == conversation_id


class TestRatingAverage:
    """多个任务的评分均值"""

    async def test_average_across_tasks(self, api):
        community_id = await api.community("alice", "bob", "carol")
        averages = []
        for author, score in (("alice", 4), ("carol", 5)):
            task_id = await api.task(author, community_id)
            await api.patch("bob", f"/api/tasks/{task_id}", json={"helperId": "bob"})
            await api.patch(author, f"/api/tasks/{task_id}", json={"status": "completed"})
            resp = await api.post(
                author, "/api/ratings", json={"taskId": task_id, "ratedId": "bob", "rating": score}
            )
            assert resp.status_code == 201
            averages.append(resp.json()["ratedUserRating"])

        assert averages == ["4.00", "4.50"]
        ratings = (await api.get("alice", "/api/users/bob/ratings")).json()
        assert sorted(r["rating"] for r in ratings) == [4, 5]

    async def test_average_rounds_to_two_places(self, api):
        community_id = await api.community("alice", "bob", "carol", "dana")
        for author, score in (("alice", 5), ("carol", 4), ("dana", 4)):
            task_id = await api.task(author, community_id)
            await api.patch("bob", f"/api/tasks/{task_id}", json={"helperId": "bob"})
            await api.patch(author, f"/api/tasks/{task_id}", json={"status": "completed"})
            await api.post(
                author, "/api/ratings", json={"taskId": task_id, "ratedId": "bob", "rating": score}
            )

        bob = (await api.get("bob", "/api/auth/user")).json()
        assert bob["rating"] == "4.33"


class TestConcurrentWrites:
    """并发请求在写锁下串行化"""

    async def test_concurrent_accepts_single_winner(self, api):
        community_id = await api.community("alice", "bob", "carol", "dana")
        task_id = await api.task("alice", community_id)

        responses = await asyncio.gather(
            *(
                api.patch(helper, f"/api/tasks/{task_id}", json={"helperId": helper})
                for helper in ("bob", "carol", "dana")
            )
        )
        codes = sorted(r.status_code for r in responses)
        assert codes == [200, 409, 409]

        task = (await api.get("alice", f"/api/tasks/{task_id}")).json()
        winner = next(r.json()["helperId"] for r in responses if r.status_code == 200)
        assert task["helperId"] == winner

        events = (await api.get("alice", f"/api/tasks/{task_id}/events")).json()
        assert [e["type"] for e in events].count("HELPER_ASSIGNED") == 1

    async def test_concurrent_start_requests_reach_in_progress(self, api):
        _, task_id = await api.accepted_task()
        tx = await api.transaction("alice", task_id)

        await asyncio.gather(
            api.patch("alice", f"/api/transactions/{tx['id']}/start-request"),
            api.patch("bob", f"/api/transactions/{tx['id']}/start-request"),
        )

        current = (await api.get("alice", f"/api/tasks/{task_id}/transaction")).json()
        assert current["payerStartRequested"] is True
        assert current["payeeStartRequested"] is True
        assert current["status"] == "in_progress"
        task = (await api.get("alice", f"/api/tasks/{task_id}")).json()
        assert task["status"] == "in_progress"

    async def test_concurrent_conversation_creation(self, api):
        community_id = await api.community("alice", "bob")
        task_id = await api.task("alice", community_id)

        responses = await asyncio.gather(
            *(
                api.post("bob", "/api/conversations", json={"taskId": task_id, "authorId": "alice"})
                for _ in range(3)
            )
        )
        assert sorted(r.status_code for r in responses) == [200, 200, 201]
        assert len({r.json()["id"] for r in responses}) == 1

    async def test_concurrent_transaction_creation(self, api):
        _, task_id = await api.accepted_task()
        responses = await asyncio.gather(
            api.post("alice", f"/api/tasks/{task_id}/transaction"),
            api.post("bob", f"/api/tasks/{task_id}/transaction"),
        )
        assert sorted(r.status_code for r in responses) == [200, 201]
        assert responses[0].json()["id"] == responses[1].json()["id"]
