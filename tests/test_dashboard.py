from bson import ObjectId


def test_channel_stats(client, make_user, publish):
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")

    first = publish(alice, title="first")
    second = publish(alice, title="second", is_published=False)
    gone = publish(alice, title="gone")
    publish(bob, title="bob's")

    client.get(f"/api/v1/videos/{first['_id']}", headers=bob["headers"])
    client.get(f"/api/v1/videos/{first['_id']}", headers=carol["headers"])
    client.get(f"/api/v1/videos/{second['_id']}", headers=alice["headers"])
    client.post(f"/api/v1/likes/toggle/v/{first['_id']}", headers=bob["headers"])
    client.post(f"/api/v1/likes/toggle/v/{first['_id']}", headers=carol["headers"])
    client.post(f"/api/v1/subscriptions/c/{alice['id']}", headers=bob["headers"])
    client.delete(f"/api/v1/videos/{gone['_id']}", headers=alice["headers"])

    response = client.get("/api/v1/dashboard/stats", headers=alice["headers"])
    assert response.status_code == 200
    assert response.json()["data"] == {
        "total_subscribers": 1,
        "total_videos": 2,
        "total_views": 3,
        "total_likes": 2,
    }


def test_channel_stats_empty(client, make_user):
    alice = make_user("alice")
    stats = client.get("/api/v1/dashboard/stats", headers=alice["headers"]).json()["data"]
    assert stats == {"total_subscribers": 0, "total_videos": 0, "total_views": 0, "total_likes": 0}


def test_channel_videos_with_like_counts(client, make_user, publish):
    alice = make_user("alice")
    bob = make_user("bob")
    first = publish(alice, title="first")
    publish(alice, title="draft", is_published=False)
    publish(alice, title="third")
    client.post(f"/api/v1/likes/toggle/v/{first['_id']}", headers=bob["headers"])

    response = client.get("/api/v1/dashboard/videos", params={"limit": 2}, headers=alice["headers"])
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_videos"] == 3
    assert data["total_pages"] == 2
    assert [v["title"] for v in data["videos"]] == ["third", "draft"]
    assert all("likes" not in v for v in data["videos"])

    page2 = client.get("/api/v1/dashboard/videos", params={"limit": 2, "page": 2}, headers=alice["headers"]).json()["data"]
    assert [v["title"] for v in page2["videos"]] == ["first"]
    assert page2["videos"][0]["likes_count"] == 1


def test_channel_videos_count_only_video_likes(client, make_user, publish, db):
    alice = make_user("alice")
    bob = make_user("bob")
    video = publish(alice, title="only")
    client.post(f"/api/v1/likes/toggle/v/{video['_id']}", headers=bob["headers"])
    # a like of another kind whose target id equals the video id
    db["like"].insert_one({"target_type": "comment", "target": ObjectId(video["_id"]), "liked_by": ObjectId(bob["id"])})

    videos = client.get("/api/v1/dashboard/videos", headers=alice["headers"]).json()["data"]["videos"]
    assert videos[0]["likes_count"] == 1
