"""
Tests for post endpoints: CRUD, ownership, likes, bookmarks and tagging.
"""

from datetime import datetime, timedelta

from blogsphere import services
from conftest import create_post, register, run


class TestCreateAndRead:
    def test_create_sets_author_from_token(self, client, mock_db, alice):
        post = create_post(client, alice, tags=["python", " python ", "", "web"])

        assert post["author"] == alice["user_id"]
        assert post["likes"] == [] and post["bookmarks"] == [] and post["comments"] == []
        assert post["tags"] == ["python", "web"]

        stored_user = run(mock_db.users.find_one({"user_id": alice["user_id"]}))
        assert stored_user["posts"] == [post["post_id"]]

    def test_create_requires_auth(self, client):
        response = client.post("/api/create-post", json={"title": "t", "content": "c"})
        assert response.status_code == 401

    def test_create_requires_title_and_content(self, client, alice):
        response = client.post("/api/create-post", json={"title": "", "content": "c"}, headers=alice["headers"])
        assert response.status_code == 422

    def test_tagging_links_both_sides(self, client, mock_db, alice, bob):
        post = create_post(client, alice, tagged=[bob["user_id"], "ghost", bob["user_id"]])
        assert post["tagged"] == [bob["user_id"]]

        stored_bob = run(mock_db.users.find_one({"user_id": bob["user_id"]}))
        assert stored_bob["tagged"] == [post["post_id"]]

        response = client.get(f"/api/get-tagged-posts/{bob['user_id']}")
        assert response.status_code == 200
        posts = response.json()["posts"]
        assert [p["post_id"] for p in posts] == [post["post_id"]]
        assert posts[0]["author"]["name"] == "Alice"

    def test_tagged_posts_empty_is_404(self, client, alice):
        assert client.get(f"/api/get-tagged-posts/{alice['user_id']}").status_code == 404

    def test_single_post_is_populated(self, client, alice, bob):
        post = create_post(client, alice, content="# Heading", tagged=[bob["user_id"]])

        response = client.get(f"/api/post/{post['post_id']}")
        assert response.status_code == 200
        data = response.json()["post"]
        assert data["author"] == {"user_id": alice["user_id"], "name": "Alice", "profile_picture": ""}
        assert data["tagged"][0]["name"] == "Bob"
        assert "<h1>Heading</h1>" in data["content_html"]

    def test_single_post_missing(self, client):
        assert client.get("/api/post/nope").status_code == 404

    def test_all_posts_newest_first(self, client, mock_db, alice):
        older = create_post(client, alice, title="Older")
        newer = create_post(client, alice, title="Newer")
        run(mock_db.posts.update_one(
            {"post_id": older["post_id"]},
            {"$set": {"created_at": datetime(2020, 1, 1)}},
        ))
        run(mock_db.posts.update_one(
            {"post_id": newer["post_id"]},
            {"$set": {"created_at": datetime(2020, 1, 1) + timedelta(days=1)}},
        ))

        response = client.get("/api/allpost")
        assert response.status_code == 200
        titles = [p["title"] for p in response.json()["allPost"]]
        assert titles == ["Newer", "Older"]

    def test_all_posts_tag_filter(self, client, alice):
        create_post(client, alice, title="A", tags=["python"])
        create_post(client, alice, title="B", tags=["rust"])

        response = client.get("/api/allpost", params={"tag": "python"})
        assert [p["title"] for p in response.json()["allPost"]] == ["A"]

    def test_user_posts(self, client, alice, bob):
        create_post(client, alice)
        response = client.get(f"/api/getmypost/{alice['user_id']}")
        assert response.status_code == 200
        assert len(response.json()["posts"]) == 1

        response = client.get(f"/api/getmypost/{bob['user_id']}")
        assert response.status_code == 404
        assert response.json()["detail"] == "No posts found for this user"


class TestUpdateAndDelete:
    def test_author_can_update(self, client, alice):
        post = create_post(client, alice)
        response = client.put(
            f"/api/update-post/{post['post_id']}",
            json={"title": "Renamed", "content": "", "tags": ["x"]},
            headers=alice["headers"],
        )
        assert response.status_code == 200
        updated = response.json()["post"]
        assert updated["title"] == "Renamed"
        assert updated["content"] == post["content"]
        assert updated["tags"] == ["x"]

    def test_other_user_cannot_update(self, client, alice, bob):
        post = create_post(client, alice)
        response = client.put(f"/api/update-post/{post['post_id']}", json={"title": "x"}, headers=bob["headers"])
        assert response.status_code == 403

    def test_update_missing_post(self, client, alice):
        response = client.put("/api/update-post/nope", json={"title": "x"}, headers=alice["headers"])
        assert response.status_code == 404

    def test_other_user_cannot_delete(self, client, alice, bob):
        post = create_post(client, alice)
        response = client.delete(f"/api/delete-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 403

    def test_delete_cleans_up_references(self, client, mock_db, alice, bob):
        post = create_post(client, alice, tagged=[bob["user_id"]])
        client.post(f"/api/comment-post/{post['post_id']}", json={"comment": "nice"}, headers=bob["headers"])

        response = client.delete(f"/api/delete-post/{post['post_id']}", headers=alice["headers"])
        assert response.status_code == 200

        assert client.get(f"/api/post/{post['post_id']}").status_code == 404
        assert run(mock_db.comments.count_documents({"post": post["post_id"]})) == 0
        assert run(mock_db.users.find_one({"user_id": alice["user_id"]}))["posts"] == []
        assert run(mock_db.users.find_one({"user_id": bob["user_id"]}))["tagged"] == []

    def test_admin_can_delete(self, client, monkeypatch, alice):
        monkeypatch.setattr(services, "ADMIN_EMAILS", {"root@example.com"})
        admin = register(client, "Root", "root@example.com")
        post = create_post(client, alice)

        response = client.delete(f"/api/delete-post/{post['post_id']}", headers=admin["headers"])
        assert response.status_code == 200


class TestLikesAndBookmarks:
    def test_like_then_unlike(self, client, alice, bob):
        post = create_post(client, alice)

        response = client.post(f"/api/like-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 200
        assert response.json()["post"]["likes"] == [bob["user_id"]]

        response = client.post(f"/api/unlike-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 200
        assert response.json()["post"]["likes"] == []

    def test_double_like_keeps_single_entry(self, client, alice, bob):
        post = create_post(client, alice)
        client.post(f"/api/like-post/{post['post_id']}", headers=bob["headers"])

        response = client.post(f"/api/like-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 400
        assert response.json()["detail"] == "Post already liked by user"

        likes = client.get(f"/api/post/{post['post_id']}").json()["post"]["likes"]
        assert likes == [bob["user_id"]]

    def test_unlike_without_like(self, client, alice, bob):
        post = create_post(client, alice)
        response = client.post(f"/api/unlike-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 400
        assert response.json()["detail"] == "Post not liked by user"

    def test_like_missing_post(self, client, bob):
        assert client.post("/api/like-post/nope", headers=bob["headers"]).status_code == 404

    def test_like_requires_auth(self, client, alice):
        post = create_post(client, alice)
        assert client.post(f"/api/like-post/{post['post_id']}").status_code == 401

    def test_bookmarks(self, client, alice, bob):
        post = create_post(client, alice)

        response = client.post(f"/api/bookmark-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 200
        response = client.post(f"/api/bookmark-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 400
        assert response.json()["detail"] == "Post already bookmarked by user"

        saved = client.get(f"/api/bookmarked-posts/{bob['user_id']}").json()["posts"]
        assert [p["post_id"] for p in saved] == [post["post_id"]]
        assert saved[0]["author"]["name"] == "Alice"

        response = client.post(f"/api/unbookmark-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 200
        assert client.get(f"/api/bookmarked-posts/{bob['user_id']}").json()["posts"] == []

        response = client.post(f"/api/unbookmark-post/{post['post_id']}", headers=bob["headers"])
        assert response.status_code == 400

    def test_single_post_flags_follow_the_viewer(self, client, alice, bob):
        post = create_post(client, alice)
        client.post(f"/api/like-post/{post['post_id']}", headers=bob["headers"])
        client.post(f"/api/bookmark-post/{post['post_id']}", headers=bob["headers"])
        url = f"/api/post/{post['post_id']}"

        as_bob = client.get(url, headers=bob["headers"]).json()["post"]
        assert as_bob["is_liked"] and as_bob["is_bookmarked"]

        as_alice = client.get(url, headers=alice["headers"]).json()["post"]
        assert not as_alice["is_liked"] and not as_alice["is_bookmarked"]

        anonymous = client.get(url).json()["post"]
        assert anonymous["is_liked"] is False

        # A stale token reads like an anonymous request
        stale = client.get(url, headers={"Authorization": "Bearer not.a.jwt"})
        assert stale.status_code == 200
        assert stale.json()["post"]["is_bookmarked"] is False
