"""评分路由测试

测试内容：
1. 任务完成前不能评分
2. 只有当事人可以评分，且只能评对方
3. 每人每任务只能评一次
4. 被评分人均值同步更新（两位小数）
5. 我的评分 / 用户收到的评分
"""


async def _completed_task(api) -> str:
    _, task_id = await api.accepted_task()
    resp = await api.patch("alice", f"/api/tasks/{task_id}", json={"status": "completed"})
    assert resp.status_code == 200
    return task_id


class TestSubmitRating:
    """POST /api/ratings"""

    async def test_rating_before_completion(self, api):
        _, task_id = await api.accepted_task()
        resp = await api.post(
            "alice", "/api/ratings", json={"taskId": task_id, "ratedId": "bob", "rating": 5}
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_STATE"

    async def test_submit_and_average(self, api):
        task_id = await _completed_task(api)
        resp = await api.post(
            "alice",
            "/api/ratings",
            json={"taskId": task_id, "ratedId": "bob", "rating": 4, "comment": "Great walk"},
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["rating"]["raterId"] == "alice"
        assert data["rating"]["ratedId"] == "bob"
        assert data["rating"]["comment"] == "Great walk"
        assert data["ratedUserRating"] == "4.00"

        bob = (await api.get("bob", "/api/auth/user")).json()
        assert bob["rating"] == "4.00"

    async def test_helper_rates_author(self, api):
        task_id = await _completed_task(api)
        resp = await api.post(
            "bob", "/api/ratings", json={"taskId": task_id, "ratedId": "alice", "rating": 5}
        )
        assert resp.status_code == 201
        assert resp.json()["ratedUserRating"] == "5.00"

    async def test_duplicate_rating(self, api):
        task_id = await _completed_task(api)
        body = {"taskId": task_id, "ratedId": "bob", "rating": 5}
        assert (await api.post("alice", "/api/ratings", json=body)).status_code == 201

        resp = await api.post("alice", "/api/ratings", json={**body, "rating": 1})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "ALREADY_RATED"

        bob = (await api.get("bob", "/api/auth/user")).json()
        assert bob["rating"] == "5.00"

    async def test_cannot_rate_self(self, api):
        task_id = await _completed_task(api)
        resp = await api.post(
            "alice", "/api/ratings", json={"taskId": task_id, "ratedId": "alice", "rating": 5}
        )
        assert resp.status_code == 400

    async def test_non_party_forbidden(self, api):
        task_id = await _completed_task(api)
        resp = await api.post(
            "carol", "/api/ratings", json={"taskId": task_id, "ratedId": "bob", "rating": 1}
        )
        assert resp.status_code == 403

    async def test_score_out_of_range(self, api):
        task_id = await _completed_task(api)
        for score in (0, 6):
            resp = await api.post(
                "alice", "/api/ratings", json={"taskId": task_id, "ratedId": "bob", "rating": score}
            )
            assert resp.status_code == 422


class TestReadRatings:
    """评分查询"""

    async def test_my_rating(self, api):
        task_id = await _completed_task(api)
        resp = await api.get("alice", f"/api/tasks/{task_id}/rating")
        assert resp.status_code == 200
        assert resp.json() is None

        await api.post(
            "alice", "/api/ratings", json={"taskId": task_id, "ratedId": "bob", "rating": 3}
        )
        resp = await api.get("alice", f"/api/tasks/{task_id}/rating")
        assert resp.json()["rating"] == 3

        # 对方的评分互不可见
        assert (await api.get("bob", f"/api/tasks/{task_id}/rating")).json() is None

    async def test_user_ratings(self, api):
        task_id = await _completed_task(api)
        await api.post(
            "alice", "/api/ratings", json={"taskId": task_id, "ratedId": "bob", "rating": 5}
        )

        resp = await api.get("carol", "/api/users/bob/ratings")
        assert resp.status_code == 200
        ratings = resp.json()
        assert len(ratings) == 1
        assert ratings[0]["taskId"] == task_id

    async def test_unknown_user_ratings(self, api):
        resp = await api.get("carol", "/api/users/nobody/ratings")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "USER_NOT_FOUND"
