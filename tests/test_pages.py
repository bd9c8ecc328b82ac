"""
Tests for the server-rendered pages (cookie session).
"""

import pytest

from conftest import create_post, run


@pytest.fixture
def logged_in(client, alice):
    response = client.post(
        "/login",
        data={"email": "alice@example.com", "password": "secret-pass"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert "access_token" in response.cookies
    return client


def test_home_without_posts(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "No posts yet." in response.text


def test_home_lists_posts(client, alice):
    create_post(client, alice, title="Visible post", tags=["python"])
    response = client.get("/")
    assert "Visible post" in response.text
    assert "#python" in response.text


def test_register_form_logs_in(client):
    response = client.post(
        "/register",
        data={"name": "Dana", "email": "dana@example.com", "password": "pw"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/profile"

    profile = client.get("/profile")
    assert profile.status_code == 200
    assert "Dana" in profile.text


def test_register_form_duplicate_email(client, alice):
    response = client.post("/register", data={"name": "A", "email": "alice@example.com", "password": "pw"})
    assert response.status_code == 400
    assert "User already exists with this email" in response.text


def test_login_form_bad_password(client, alice):
    response = client.post("/login", data={"email": "alice@example.com", "password": "nope"})
    assert response.status_code == 401
    assert "Invalid email or password" in response.text


def test_protected_pages_redirect_to_login(client):
    for path in ("/create", "/profile"):
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login"


def test_logout_clears_cookie(logged_in):
    logged_in.get("/logout")
    response = logged_in.get("/profile", follow_redirects=False)
    assert response.status_code == 302


def test_create_and_view_post(logged_in):
    response = logged_in.post(
        "/create",
        data={"title": "Form post", "content": "## Sub\n\ntext", "tags": "a, b"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("/posts/")

    page = logged_in.get(location)
    assert page.status_code == 200
    assert "Form post" in page.text
    assert "<h2>Sub</h2>" in page.text
    assert "#a" in page.text and "#b" in page.text


def test_like_toggle_and_comment_flow(logged_in, mock_db, alice, bob):
    post = create_post(logged_in, bob, title="Bob's post")
    post_id = post["post_id"]

    logged_in.post(f"/posts/{post_id}/like")
    assert run(mock_db.posts.find_one({"post_id": post_id}))["likes"] == [alice["user_id"]]
    logged_in.post(f"/posts/{post_id}/like")
    assert run(mock_db.posts.find_one({"post_id": post_id}))["likes"] == []

    logged_in.post(f"/posts/{post_id}/bookmark")
    assert run(mock_db.posts.find_one({"post_id": post_id}))["bookmarks"] == [alice["user_id"]]

    logged_in.post(f"/posts/{post_id}/comment", data={"comment": "Form comment"})
    comment = run(mock_db.comments.find_one({"post": post_id}))
    logged_in.post(f"/comments/{comment['comment_id']}/reply", data={"content": "Form reply"})

    page = logged_in.get(f"/posts/{post_id}")
    assert "Form comment" in page.text
    assert "Form reply" in page.text


def test_edit_page_only_for_author(logged_in, bob):
    post = create_post(logged_in, bob)
    response = logged_in.get(f"/edit/{post['post_id']}")
    assert response.status_code == 403


def test_follow_toggle(logged_in, mock_db, alice, bob):
    logged_in.post(f"/users/{bob['user_id']}/follow")
    assert run(mock_db.users.find_one({"user_id": bob["user_id"]}))["followers"] == [alice["user_id"]]

    page = logged_in.get(f"/users/{bob['user_id']}")
    assert "Unfollow" in page.text

    logged_in.post(f"/users/{bob['user_id']}/follow")
    assert run(mock_db.users.find_one({"user_id": bob["user_id"]}))["followers"] == []


def test_escaped_post_content(logged_in):
    response = logged_in.post("/create", data={"title": "XSS", "content": "<script>alert(1)</script>"})
    assert "<script>alert(1)</script>" not in response.text


def test_forbidden_page_renders_html_for_browsers(logged_in, bob):
    post = create_post(logged_in, bob)
    response = logged_in.get(f"/edit/{post['post_id']}", headers={"Accept": "text/html"})
    assert response.status_code == 403
    assert response.headers["content-type"].startswith("text/html")
    assert "Forbidden - You cannot update" in response.text


def test_missing_post_page_renders_html_for_browsers(client):
    response = client.get("/posts/nope", headers={"Accept": "text/html,application/xhtml+xml"})
    assert response.status_code == 404
    assert "<h1>404</h1>" in response.text
    assert "Post not found" in response.text


def test_api_errors_stay_json_for_browsers(client):
    response = client.get("/api/post/nope", headers={"Accept": "text/html"})
    assert response.status_code == 404
    assert response.json() == {"detail": "Post not found"}
