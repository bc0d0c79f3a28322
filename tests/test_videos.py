from tests.conftest import VIDEO_DURATION, image


def test_alice_publishes_lists_and_watches(client, make_user, publish):
    alice = make_user("alice")
    created = publish(alice, title="T")

    response = client.get("/api/v1/videos", params={"query": "T"}, headers=alice["headers"])
    assert response.status_code == 200
    videos = response.json()["data"]["videos"]
    assert len(videos) == 1
    assert videos[0]["_id"] == created["_id"]
    assert videos[0]["views"] == 0

    response = client.get(f"/api/v1/videos/{created['_id']}", headers=alice["headers"])
    assert response.status_code == 200
    assert response.json()["data"]["views"] == 1


def test_publish_persists_upload_metadata(make_user, publish, db):
    alice = make_user("alice")
    created = publish(alice, title="Holiday", description="beach")

    assert created["owner"] == alice["id"]
    assert created["video_file"].startswith("/static/videos/")
    assert created["thumbnail"].startswith("/static/images/")
    assert created["duration"] == VIDEO_DURATION
    assert created["views"] == 0
    assert created["is_published"] is True
    assert created["is_deleted"] is False


def test_publish_requires_video_file_and_title(client, make_user):
    alice = make_user("alice")
    response = client.post(
        "/api/v1/videos", data={"title": "No file"}, files={"thumbnail": image()}, headers=alice["headers"]
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Video file is required"

    response = client.post("/api/v1/videos", data={"title": " "}, headers=alice["headers"])
    assert response.status_code == 400


def test_repeat_views_count_once_per_viewer(client, make_user, publish):
    alice = make_user("alice")
    bob = make_user("bob")
    created = publish(alice)

    for _ in range(5):
        response = client.get(f"/api/v1/videos/{created['_id']}", headers=bob["headers"])
        assert response.status_code == 200
    assert response.json()["data"]["views"] == 1

    response = client.get(f"/api/v1/videos/{created['_id']}", headers=alice["headers"])
    assert response.json()["data"]["views"] == 2
    assert response.json()["data"]["owner"]["username"] == "alice"
    assert "password" not in response.json()["data"]["owner"]


def test_get_video_errors(client, make_user, publish):
    alice = make_user("alice")
    bob = make_user("bob")
    draft = publish(alice, is_published=False)

    assert client.get("/api/v1/videos/not-an-id", headers=bob["headers"]).status_code == 400
    assert client.get("/api/v1/videos/" + "0" * 24, headers=bob["headers"]).status_code == 404
    assert client.get(f"/api/v1/videos/{draft['_id']}", headers=bob["headers"]).status_code == 403
    assert client.get(f"/api/v1/videos/{draft['_id']}", headers=alice["headers"]).status_code == 200


def test_soft_deleted_video_hidden_from_list_and_detail(client, make_user, publish, db):
    alice = make_user("alice")
    keep = publish(alice, title="keep me")
    gone = publish(alice, title="delete me")

    response = client.delete(f"/api/v1/videos/{gone['_id']}", headers=alice["headers"])
    assert response.status_code == 200

    listed = client.get("/api/v1/videos", headers=alice["headers"]).json()["data"]
    assert [v["_id"] for v in listed["videos"]] == [keep["_id"]]
    assert listed["pagination"]["total_videos"] == 1

    detail = client.get(f"/api/v1/videos/{gone['_id']}", headers=alice["headers"])
    assert detail.status_code == 404
    assert detail.json()["data"] is None

    # record kept, only flagged
    assert db["video"].find_one({"title": "delete me"})["is_deleted"] is True


def test_only_owner_can_modify(client, make_user, publish):
    alice = make_user("alice")
    bob = make_user("bob")
    created = publish(alice)
    path = f"/api/v1/videos/{created['_id']}"

    assert client.patch(path, data={"title": "hijack"}, headers=bob["headers"]).status_code == 403
    assert client.delete(path, headers=bob["headers"]).status_code == 403
    assert client.patch(f"/api/v1/videos/toggle/publish/{created['_id']}", headers=bob["headers"]).status_code == 403


def test_update_video(client, make_user, publish):
    alice = make_user("alice")
    created = publish(alice, title="Old", description="old desc")

    response = client.patch(
        f"/api/v1/videos/{created['_id']}",
        data={"title": "New"},
        files={"thumbnail": image("new-thumb.png")},
        headers=alice["headers"],
    )
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["title"] == "New"
    assert updated["description"] == "old desc"
    assert updated["thumbnail"] != created["thumbnail"]


def test_update_deleted_video_fails(client, make_user, publish):
    alice = make_user("alice")
    created = publish(alice)
    client.delete(f"/api/v1/videos/{created['_id']}", headers=alice["headers"])

    response = client.patch(f"/api/v1/videos/{created['_id']}", data={"title": "x"}, headers=alice["headers"])
    assert response.status_code == 404


def test_toggle_publish(client, make_user, publish):
    alice = make_user("alice")
    bob = make_user("bob")
    created = publish(alice)

    response = client.patch(f"/api/v1/videos/toggle/publish/{created['_id']}", headers=alice["headers"])
    assert response.status_code == 200
    assert response.json()["data"]["is_published"] is False
    assert client.get("/api/v1/videos", headers=bob["headers"]).json()["data"]["videos"] == []

    response = client.patch(f"/api/v1/videos/toggle/publish/{created['_id']}", headers=alice["headers"])
    assert response.json()["data"]["is_published"] is True


def test_list_filters_sorting_and_pagination(client, make_user, publish):
    alice = make_user("alice")
    bob = make_user("bob")
    publish(alice, title="Cats and dogs")
    publish(alice, title="Birds", description="about cats")
    publish(bob, title="Fish")
    draft = publish(alice, title="Secret cats", is_published=False)

    # free text search covers title and description, case-insensitive
    response = client.get("/api/v1/videos", params={"query": "CATS"}, headers=bob["headers"])
    titles = {v["title"] for v in response.json()["data"]["videos"]}
    assert titles == {"Cats and dogs", "Birds"}

    # owners see their own drafts when filtering on themselves
    response = client.get("/api/v1/videos", params={"user_id": alice["id"]}, headers=alice["headers"])
    assert draft["_id"] in [v["_id"] for v in response.json()["data"]["videos"]]
    response = client.get("/api/v1/videos", params={"user_id": alice["id"]}, headers=bob["headers"])
    assert draft["_id"] not in [v["_id"] for v in response.json()["data"]["videos"]]

    response = client.get(
        "/api/v1/videos", params={"sort_by": "title", "sort_type": "asc"}, headers=bob["headers"]
    )
    assert [v["title"] for v in response.json()["data"]["videos"]] == ["Birds", "Cats and dogs", "Fish"]

    page1 = client.get("/api/v1/videos", params={"limit": 2, "page": 1}, headers=bob["headers"]).json()["data"]
    page2 = client.get("/api/v1/videos", params={"limit": 2, "page": 2}, headers=bob["headers"]).json()["data"]
    assert len(page1["videos"]) == 2
    assert page1["pagination"] == {"current_page": 1, "limit": 2, "total_videos": 3, "has_next_page": True}
    assert len(page2["videos"]) == 1
    assert page2["pagination"]["has_next_page"] is False
    assert not {v["_id"] for v in page1["videos"]} & {v["_id"] for v in page2["videos"]}

    # list entries carry the minimal owner shape
    owner = page1["videos"][0]["owner"]
    assert set(owner) == {"_id", "full_name", "username", "avatar"}


def test_list_rejects_bad_parameters(client, make_user):
    alice = make_user("alice")
    bad_sort = client.get("/api/v1/videos", params={"sort_by": "password"}, headers=alice["headers"])
    assert bad_sort.status_code == 400
    assert bad_sort.json()["errors"]

    assert client.get("/api/v1/videos", params={"page": 0}, headers=alice["headers"]).status_code == 400
    assert client.get("/api/v1/videos", params={"user_id": "zzz"}, headers=alice["headers"]).status_code == 400


def test_search_query_is_literal(client, make_user, publish):
    alice = make_user("alice")
    publish(alice, title="a+b")
    publish(alice, title="aab")

    response = client.get("/api/v1/videos", params={"query": "a+b"}, headers=alice["headers"])
    assert [v["title"] for v in response.json()["data"]["videos"]] == ["a+b"]
