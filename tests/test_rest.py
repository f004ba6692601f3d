import pytest
from fastapi.testclient import TestClient

from pinpad.api import create_app
from pinpad.store import SNIPPET_TTL, create_store


@pytest.fixture
def client(tmp_path, clock):
    app = create_app(create_store(tmp_path, clock=clock))
    with TestClient(app) as test_client:
        yield test_client


class TestShareStoreApi:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "PinPad Share Store"

    def test_save_and_load_snippet(self, client):
        response = client.post("/snippets", json={"content": "print(1)", "language": "python"})
        assert response.status_code == 200
        saved = response.json()
        assert saved["kind"] == "snippet"

        response = client.get(f"/items/{saved['code'].lower()}")
        assert response.status_code == 200
        item = response.json()
        assert item["content"] == "print(1)"
        assert item["language"] == "python"
        assert item["expires_at"] == saved["expires_at"]

    def test_unknown_code_is_404(self, client):
        response = client.get("/items/ZZZZZZ")
        assert response.status_code == 404
        assert response.json()["detail"] == "Code not found."

    def test_expired_code_is_410(self, client, clock):
        code = client.post("/snippets", json={"content": "old"}).json()["code"]

        clock.advance(SNIPPET_TTL.total_seconds() + 1)

        response = client.get(f"/items/{code}")
        assert response.status_code == 410
        assert response.json()["detail"] == "This code has expired."

    def test_upload_and_download_file(self, client):
        response = client.post("/files", files={"file": ("hello.txt", b"hello", "text/plain")})
        assert response.status_code == 200
        code = response.json()["code"]

        item = client.get(f"/items/{code}").json()
        assert item["kind"] == "file"
        assert item["name"] == "hello.txt"
        assert item["size"] == 5

        response = client.get(f"/items/{code}/content")
        assert response.status_code == 200
        assert response.content == b"hello"
        assert 'filename="hello.txt"' in response.headers["content-disposition"]

    def test_download_snippet_content_is_404(self, client):
        code = client.post("/snippets", json={"content": "text"}).json()["code"]
        assert client.get(f"/items/{code}/content").status_code == 404
