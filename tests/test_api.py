# tests/test_api.py

"""
API Endpoint Tests - auth, project submission, listing and reviews
"""

import re

from fastapi import status

from peerscore import main
from peerscore.storage import UPLOAD_DIR


CLEAR_DESCRIPTION = "A clear and well documented technical architecture with detailed diagrams"


def _create_project(client, title="Planner", description=CLEAR_DESCRIPTION, data=None, **kwargs):
    form = {"title": title, "description": description, **(data or {})}
    return client.post("/create-project", data=form, **kwargs)


def _project_id(client, title):
    projects = client.get("/api/projects").json()
    return next(p["id"] for p in projects if p["title"] == title)


# AUTH


class TestAuth:
    """Signup, login and logout flows."""

    def test_home_page(self, anon_client):
        response = anon_client.get("/")
        assert response.status_code == status.HTTP_200_OK
        assert "PeerScore" in response.text

    def test_signup_logs_in(self, anon_client, user_credentials):
        response = anon_client.post("/signup", data=user_credentials)

        assert response.status_code == status.HTTP_200_OK
        assert "Signup Success!" in response.text
        assert user_credentials["username"] in anon_client.get("/").text

    def test_duplicate_signup_rejected(self, anon_client, user_credentials):
        anon_client.post("/signup", data=user_credentials)
        response = anon_client.post("/signup", data=user_credentials)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "exists" in response.text

    def test_short_password_rejected(self, anon_client, user_credentials):
        user_credentials["password"] = "abc"
        response = anon_client.post("/signup", data=user_credentials)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_login_success(self, anon_client, user_credentials):
        anon_client.post("/signup", data=user_credentials)
        anon_client.get("/logout")

        response = anon_client.post(
            "/login",
            data={"email": user_credentials["email"].upper(), "password": user_credentials["password"]},
        )

        assert response.status_code == status.HTTP_200_OK
        assert "Login Success!" in response.text

    def test_login_wrong_password(self, anon_client, user_credentials):
        anon_client.post("/signup", data=user_credentials)
        anon_client.get("/logout")

        response = anon_client.post(
            "/login", data={"email": user_credentials["email"], "password": "not-it"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert "Wrong password!" in response.text

    def test_long_password_rejected_at_signup(self, anon_client, user_credentials):
        user_credentials["password"] = "p" * 100
        response = anon_client.post("/signup", data=user_credentials)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "at most 72 bytes" in response.text

    def test_multibyte_password_over_limit_rejected(self, anon_client, user_credentials):
        # 40 characters but 80 UTF-8 bytes
        user_credentials["password"] = "\u00e9" * 40
        response = anon_client.post("/signup", data=user_credentials)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_long_password_at_login_is_wrong_password(self, anon_client, user_credentials):
        anon_client.post("/signup", data=user_credentials)
        anon_client.get("/logout")

        response = anon_client.post(
            "/login", data={"email": user_credentials["email"], "password": "p" * 100}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert "Wrong password!" in response.text

    def test_password_hashing_runs_in_thread_pool(self, anon_client, user_credentials, monkeypatch):
        calls = []
        original = main.run_in_threadpool

        async def recording(func, *args, **kwargs):
            calls.append(func.__name__)
            return await original(func, *args, **kwargs)

        monkeypatch.setattr(main, "run_in_threadpool", recording)
        anon_client.post("/signup", data=user_credentials)
        anon_client.get("/logout")
        anon_client.post(
            "/login",
            data={"email": user_credentials["email"], "password": user_credentials["password"]},
        )

        assert calls == ["hash_password", "verify_password"]

    def test_login_unknown_email(self, anon_client):
        response = anon_client.post(
            "/login", data={"email": "nobody@example.com", "password": "whatever"}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_clears_session(self, logged_in_client):
        response = logged_in_client.get("/logout", follow_redirects=False)

        assert response.status_code == status.HTTP_303_SEE_OTHER
        assert logged_in_client.get("/create-project", follow_redirects=False).status_code == status.HTTP_303_SEE_OTHER


# PROJECTS


class TestCreateProject:
    """Tests for /create-project."""

    def test_form_requires_login(self, anon_client):
        response = anon_client.get("/create-project", follow_redirects=False)
        assert response.status_code == status.HTTP_303_SEE_OTHER
        assert response.headers["location"] == "/login"

    def test_post_requires_login(self, anon_client):
        response = _create_project(anon_client, follow_redirects=False)
        assert response.status_code == status.HTTP_303_SEE_OTHER

    def test_form_renders(self, logged_in_client):
        response = logged_in_client.get("/create-project")
        assert response.status_code == status.HTTP_200_OK
        assert 'name="projectFile"' in response.text

    def test_create_without_file(self, logged_in_client):
        response = _create_project(logged_in_client, title="No upload")

        assert response.status_code == status.HTTP_200_OK
        assert "Project Created" in response.text
        assert re.search(r"Overall Score: \d\.\d/5", response.text)

        project = logged_in_client.get(f"/api/projects/{_project_id(logged_in_client, 'No upload')}").json()
        assert project["file_url"] is None
        assert project["clarity_score"] >= 3
        assert project["technicality_score"] >= 3
        assert project["feedback"]

    def test_create_with_text_file(self, logged_in_client):
        body = (
            "The backend is a Python API server with a SQL database, a cache and Docker deployment. "
            "The architecture diagram explains every module."
        )
        response = _create_project(
            logged_in_client,
            title="With upload",
            description="short",
            data={"tags": "python, api"},
            files={"projectFile": ("design notes.txt", body.encode("utf-8"), "text/plain")},
        )
        assert response.status_code == status.HTTP_200_OK

        project = logged_in_client.get(f"/api/projects/{_project_id(logged_in_client, 'With upload')}").json()
        assert project["tags"] == ["python", "api"]
        assert project["file_url"].startswith("/uploads/")
        assert project["file_url"].endswith("-design_notes.txt")
        # The file text pushed the technical score above what "short" alone gets
        assert project["technicality_score"] > 1

        download = logged_in_client.get(project["file_url"])
        assert download.status_code == status.HTTP_200_OK
        assert download.text == body

    def test_unsupported_file_still_scores(self, logged_in_client):
        response = _create_project(
            logged_in_client,
            title="Binary upload",
            files={"projectFile": ("photo.png", b"\x89PNG\r\n\x1a\n", "image/png")},
        )
        assert response.status_code == status.HTTP_200_OK
        assert "Overall Score" in response.text

    def test_missing_description_rejected(self, logged_in_client):
        response = _create_project(logged_in_client, description="   ")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "required" in response.text

    def test_rejected_submission_leaves_no_upload(self, logged_in_client):
        before = set(UPLOAD_DIR.iterdir())

        response = _create_project(
            logged_in_client,
            title="   ",
            files={"projectFile": ("orphan.txt", b"should not be stored", "text/plain")},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert set(UPLOAD_DIR.iterdir()) == before

    def test_error_page_is_html(self, logged_in_client):
        response = _create_project(logged_in_client, title="")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.headers["content-type"].startswith("text/html")
        assert "Something went wrong (400)" in response.text

    def test_htmx_errors_are_json(self, logged_in_client):
        response = _create_project(logged_in_client, title="", headers={"HX-Request": "true"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Title and description are required."


class TestListProjects:

    def test_projects_page_lists_owner(self, logged_in_client, user_credentials):
        _create_project(logged_in_client, title="Listed project")

        response = logged_in_client.get("/projects")

        assert response.status_code == status.HTTP_200_OK
        assert "Listed project" in response.text
        assert user_credentials["username"] in response.text

    def test_api_project_not_found(self, anon_client):
        response = anon_client.get("/api/projects/999999")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Project not found."


# REVIEWS


class TestReviews:
    """Tests for /review/{id} and /submit-review."""

    def test_review_page_requires_login(self, anon_client):
        response = anon_client.get("/review/1", follow_redirects=False)
        assert response.status_code == status.HTTP_303_SEE_OTHER

    def test_review_page_not_found(self, logged_in_client):
        response = logged_in_client.get("/review/999999")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_submit_and_list_review(self, logged_in_client, user_credentials):
        _create_project(logged_in_client, title="Reviewed project")
        project_id = _project_id(logged_in_client, "Reviewed project")

        response = logged_in_client.post(
            "/submit-review",
            data={
                "project": str(project_id),
                "clarity": "4",
                "creativity": "5",
                "technicality": "3",
                "comment": "Nice work",
            },
        )
        assert response.status_code == status.HTTP_200_OK
        assert "Review Submitted!" in response.text

        page = logged_in_client.get(f"/review/{project_id}")
        assert page.status_code == status.HTTP_200_OK
        assert "Nice work" in page.text
        assert "Reviews (1)" in page.text

        reviews = logged_in_client.get(f"/api/projects/{project_id}/reviews").json()
        assert len(reviews) == 1
        assert reviews[0]["reviewer"] == user_credentials["username"]
        assert (reviews[0]["clarity"], reviews[0]["creativity"], reviews[0]["technicality"]) == (4, 5, 3)

    def test_out_of_range_score_rejected(self, logged_in_client):
        _create_project(logged_in_client, title="Range check")
        project_id = _project_id(logged_in_client, "Range check")

        response = logged_in_client.post(
            "/submit-review",
            data={"project": str(project_id), "clarity": "6", "creativity": "3", "technicality": "3"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_review_unknown_project(self, logged_in_client):
        response = logged_in_client.post(
            "/submit-review",
            data={"project": "999999", "clarity": "3", "creativity": "3", "technicality": "3"},
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_non_ascii_digit_project_id_rejected(self, logged_in_client):
        response = logged_in_client.post(
            "/submit-review",
            data={"project": "²", "clarity": "3", "creativity": "3", "technicality": "3"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "A project must be selected." in response.text
