"""
tests/test_movie_routes.py -- Integration tests for /api/v1/movies routes.

The api_client fixture seeds four movies (two stocks each), inserted in this order:
  Alien (1979), Blade Runner (1982), Aliens (1986), Heat (1995)

Read-only tests come first in the module; later tests add and edit movies.

Coverage:
  - Public browsing: latest, paging, filtering, query validation
  - Admin-only details, add, update and poster upload (403 for Member, 401 anonymous)
  - Upload guards: unknown movie 404, bad extension 415, oversize 413
  - Upload store calls and the file write run in the thread pool
"""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from api.routes.v1 import movies
from core.config import get_settings

Client = tuple[TestClient, dict[str, dict[str, str]]]

_NEW_MOVIE = {
    "title": "Ronin",
    "genre": "Action",
    "release_date": "1998-09-25",
    "director": "John Frankenheimer",
    "rating": 4,
    "number_of_stocks": 3,
}

_PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestBrowsing:
    def test_latest_is_public_and_newest_first(self, api_client: Client) -> None:
        client, _ = api_client
        resp = client.get("/api/v1/movies/latest")
        assert resp.status_code == 200
        titles = [m["title"] for m in resp.json()]
        assert titles == ["Heat", "Aliens", "Blade Runner", "Alien"]

    def test_first_page(self, api_client: Client) -> None:
        client, _ = api_client
        resp = client.get("/api/v1/movies", params={"page": 0, "page_size": 3})
        assert resp.status_code == 200
        data = resp.json()
        assert data["page"] == 0
        assert data["total_count"] == 4
        assert data["total_pages"] == 2
        assert [m["title"] for m in data["items"]] == ["Alien", "Blade Runner", "Aliens"]
        assert data["items"][0]["number_of_stocks"] == 2
        assert data["items"][0]["is_available"] is True

    def test_second_page(self, api_client: Client) -> None:
        client, _ = api_client
        data = client.get("/api/v1/movies", params={"page": 1, "page_size": 3}).json()
        assert [m["title"] for m in data["items"]] == ["Heat"]

    def test_title_filter(self, api_client: Client) -> None:
        client, _ = api_client
        data = client.get("/api/v1/movies", params={"filter": "ALIEN", "page_size": 10}).json()
        assert data["total_count"] == 2
        assert data["total_pages"] == 1
        assert [m["title"] for m in data["items"]] == ["Alien", "Aliens"]

    def test_filter_without_matches(self, api_client: Client) -> None:
        client, _ = api_client
        data = client.get("/api/v1/movies", params={"filter": "zzz"}).json()
        assert data["total_count"] == 0
        assert data["total_pages"] == 0
        assert data["items"] == []

    def test_bad_paging_params_422(self, api_client: Client) -> None:
        client, _ = api_client
        assert client.get("/api/v1/movies", params={"page_size": 0}).status_code == 422
        assert client.get("/api/v1/movies", params={"page": -1}).status_code == 422


class TestDetails:
    def test_details_admin(self, api_client: Client) -> None:
        client, headers = api_client
        resp = client.get("/api/v1/movies/details/1", headers=headers["alice"])
        assert resp.status_code == 200
        assert resp.json()["title"] == "Alien"

    def test_details_member_forbidden(self, api_client: Client) -> None:
        client, headers = api_client
        assert client.get("/api/v1/movies/details/1", headers=headers["bob"]).status_code == 403

    def test_details_anonymous_unauthenticated(self, api_client: Client) -> None:
        client, _ = api_client
        assert client.get("/api/v1/movies/details/1").status_code == 401

    def test_details_missing_404(self, api_client: Client) -> None:
        client, headers = api_client
        resp = client.get("/api/v1/movies/details/999", headers=headers["alice"])
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "movie_not_found"


class TestManagement:
    def test_add_movie(self, api_client: Client) -> None:
        client, headers = api_client
        resp = client.post("/api/v1/movies/add", json=_NEW_MOVIE, headers=headers["alice"])
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["title"] == "Ronin"
        assert data["number_of_stocks"] == 3
        assert data["is_available"] is True
        assert data["image"] == ""

    def test_add_movie_member_forbidden(self, api_client: Client) -> None:
        client, headers = api_client
        resp = client.post("/api/v1/movies/add", json=_NEW_MOVIE, headers=headers["bob"])
        assert resp.status_code == 403

    def test_add_movie_invalid_date_422(self, api_client: Client) -> None:
        client, headers = api_client
        body = {**_NEW_MOVIE, "release_date": "25/09/1998"}
        resp = client.post("/api/v1/movies/add", json=body, headers=headers["alice"])
        assert resp.status_code == 422

    def test_update_movie(self, api_client: Client) -> None:
        client, headers = api_client
        body = {"id": 4, "title": "Heat", "genre": "Crime", "release_date": "1995-12-15", "rating": 5}
        resp = client.post("/api/v1/movies/update", json=body, headers=headers["alice"])
        assert resp.status_code == 200, resp.text
        assert resp.json()["rating"] == 5
        assert resp.json()["number_of_stocks"] == 2

    def test_update_missing_movie_404(self, api_client: Client) -> None:
        client, headers = api_client
        body = {"id": 999, "title": "Ghost", "genre": "Drama", "release_date": "2000-01-01"}
        resp = client.post("/api/v1/movies/update", json=body, headers=headers["alice"])
        assert resp.status_code == 404


class TestImageUpload:
    def test_upload_poster(self, api_client: Client) -> None:
        client, headers = api_client
        resp = client.post(
            "/api/v1/movies/images/upload",
            params={"movie_id": 2},
            files={"file": ("poster.PNG", _PNG_BYTES, "image/png")},
            headers=headers["alice"],
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["file_name"].endswith(".png")
        assert data["file_name"] != "poster.PNG"
        assert data["file_length"] == len(_PNG_BYTES)
        assert Path(data["local_file_path"]).read_bytes() == _PNG_BYTES

        movie = client.get("/api/v1/movies/details/2", headers=headers["alice"]).json()
        assert movie["image"] == data["file_name"]

    def test_upload_rejects_unknown_extension(self, api_client: Client) -> None:
        client, headers = api_client
        resp = client.post(
            "/api/v1/movies/images/upload",
            params={"movie_id": 2},
            files={"file": ("payload.exe", b"MZ", "application/octet-stream")},
            headers=headers["alice"],
        )
        assert resp.status_code == 415
        assert resp.json()["error"]["code"] == "unsupported_format"

    def test_upload_unknown_movie_404(self, api_client: Client) -> None:
        client, headers = api_client
        resp = client.post(
            "/api/v1/movies/images/upload",
            params={"movie_id": 999},
            files={"file": ("poster.png", _PNG_BYTES, "image/png")},
            headers=headers["alice"],
        )
        assert resp.status_code == 404

    def test_upload_too_large_413(self, api_client: Client, monkeypatch) -> None:
        client, headers = api_client
        small = get_settings().model_copy(update={"max_upload_bytes": 8})
        monkeypatch.setattr("api.routes.v1.movies.get_settings", lambda: small)
        resp = client.post(
            "/api/v1/movies/images/upload",
            params={"movie_id": 2},
            files={"file": ("poster.png", _PNG_BYTES, "image/png")},
            headers=headers["alice"],
        )
        assert resp.status_code == 413
        assert resp.json()["error"]["code"] == "file_too_large"

    def test_upload_member_forbidden(self, api_client: Client) -> None:
        client, headers = api_client
        resp = client.post(
            "/api/v1/movies/images/upload",
            params={"movie_id": 2},
            files={"file": ("poster.png", _PNG_BYTES, "image/png")},
            headers=headers["bob"],
        )
        assert resp.status_code == 403

    def test_upload_blocking_work_runs_in_threadpool(self, api_client: Client, monkeypatch, tmp_path) -> None:
        client, headers = api_client
        offloaded = []
        real_run_in_threadpool = movies.run_in_threadpool

        async def _spy(func, *args, **kwargs):
            offloaded.append(func.__name__)
            return await real_run_in_threadpool(func, *args, **kwargs)

        fresh = get_settings().model_copy(update={"image_upload_dir": str(tmp_path / "new" / "posters")})
        monkeypatch.setattr(movies, "run_in_threadpool", _spy)
        monkeypatch.setattr("api.routes.v1.movies.get_settings", lambda: fresh)
        resp = client.post(
            "/api/v1/movies/images/upload",
            params={"movie_id": 3},
            files={"file": ("poster.png", _PNG_BYTES, "image/png")},
            headers=headers["alice"],
        )
        assert resp.status_code == 200, resp.text
        assert offloaded == ["get_movie", "_write_image", "set_image"]
        assert Path(resp.json()["local_file_path"]).parent == tmp_path / "new" / "posters"
