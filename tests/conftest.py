import io
import json
import re
import httpx
import pytest
from typing import Dict, List, Optional, Set, Tuple
from fastapi.testclient import TestClient
from PIL import Image
from main import app
from app.api.dependencies import get_backend_client, get_key_value_store
from app.core.config import settings
from app.services.backend_client import BackendClient
from app.services.customer_data import InMemoryKeyValueStore
from app.services.flow_registry import flow_registry

BACKEND_URL = "http://backend.test"

def make_image_bytes(fmt: str = "JPEG", size: Tuple[int, int] = (4, 4), color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format=fmt)
    return buffer.getvalue()

def _parse_multipart(request: httpx.Request) -> Tuple[List[Tuple[str, bytes]], Dict[str, str]]:
    """
    Split a multipart body into uploaded files and plain form fields.
    """
    boundary = request.headers["content-type"].split("boundary=")[1].encode()
    files, fields = [], {}
    for part in request.content.split(b"--" + boundary):
        if b"\r\n\r\n" not in part:
            continue
        head, body = part.split(b"\r\n\r\n", 1)
        body = body[:-2] if body.endswith(b"\r\n") else body
        disposition = head.decode()
        name = re.search(r'name="([^"]*)"', disposition).group(1)
        filename = re.search(r'filename="([^"]*)"', disposition)
        if filename:
            files.append((filename.group(1), body))
        else:
            fields[name] = body.decode()
    return files, fields

class FakeBackend:
    """
    In-memory stand-in for the backend API, mounted through httpx.MockTransport.
    """

    def __init__(self):
        self.sessions: Dict[str, List[dict]] = {}
        self.carts: Dict[str, dict] = {}
        self.calls: List[Tuple[str, str]] = []
        self.failures: Set[Tuple[str, str]] = set()
        self._counter = 0

    def fail(self, method: str, path_prefix: str) -> None:
        self.failures.add((method, path_prefix))

    def _next(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter:04d}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))

        for fail_method, prefix in self.failures:
            if method == fail_method and path.startswith(prefix):
                return httpx.Response(500, json={"message": "Server Error"})

        if method == "POST" and path == "/api/images/upload":
            return self._upload(request)

        match = re.fullmatch(r"/api/images/session/([^/]+)", path)
        if match:
            token = match.group(1)
            if token not in self.sessions:
                return httpx.Response(404, json={"success": False, "error": "Session not found"})
            if method == "GET":
                return httpx.Response(200, json={
                    "success": True,
                    "session": {"token": token, "image_count": len(self.sessions[token])},
                    "images": self.sessions[token],
                })
            del self.sessions[token]
            return httpx.Response(200, json={"success": True})

        match = re.fullmatch(r"/api/images/file/([^/]+)/([^/]+)", path)
        if match and method == "DELETE":
            token, filename = match.groups()
            images = self.sessions.get(token, [])
            remaining = [img for img in images if img["stored_filename"] != filename and img["id"] != filename]
            if len(remaining) == len(images):
                return httpx.Response(200, json={"success": False, "error": "Image not found"})
            self.sessions[token] = remaining
            return httpx.Response(200, json={"success": True})

        if method == "POST" and path == "/api/cart/create":
            payload = json.loads(request.content)
            session_token = payload["session_token"]
            if session_token not in self.sessions:
                return httpx.Response(200, json={"success": False, "error": "Upload session not found"})
            cart_token = self._next("cart")
            self.carts[cart_token] = {
                "order_number": self._next("ORD"),
                "image_count": len(self.sessions[session_token]),
                "upload_session": {"token": session_token},
                "request": payload,
            }
            return httpx.Response(200, json={"success": True, "cart_token": cart_token, "cart": self.carts[cart_token]})

        match = re.fullmatch(r"/api/cart/([^/]+)", path)
        if match and method == "GET":
            cart = self.carts.get(match.group(1))
            if cart is None:
                return httpx.Response(200, json={"success": False, "error": "Cart not found"})
            return httpx.Response(200, json={"success": True, "cart": cart})

        if method == "POST" and path == "/api/payment/checkout/create":
            cart_token = json.loads(request.content)["cart_token"]
            if cart_token not in self.carts:
                return httpx.Response(200, json={"success": False, "error": "Cart not found"})
            session_id = self._next("cs")
            return httpx.Response(200, json={
                "success": True,
                "checkout_url": f"https://pay.test/{session_id}",
                "session_id": session_id,
            })

        if method == "POST" and path == "/api/payment/success":
            payload = json.loads(request.content)
            cart = self.carts.get(payload["cart_token"])
            if cart is None:
                return httpx.Response(200, json={"success": False, "error": "Cart not found"})
            return httpx.Response(200, json={
                "success": True,
                "order": {"order_number": cart["order_number"], "status": "paid"},
                "session_id": payload["session_id"],
            })

        return httpx.Response(404, json={"message": "Not Found"})

    def _upload(self, request: httpx.Request) -> httpx.Response:
        files, fields = _parse_multipart(request)
        token = fields.get("existing_token") or self._next("sess")
        new_images = []
        for filename, body in files:
            image_id = self._next("img")
            new_images.append({
                "id": image_id,
                "original_filename": filename,
                "stored_filename": f"{image_id}.jpg",
                "file_size": len(body),
            })
        self.sessions.setdefault(token, []).extend(new_images)
        return httpx.Response(200, json={"success": True, "token": token, "images": new_images})

    def upload_calls(self) -> int:
        return sum(1 for method, path in self.calls if method == "POST" and path == "/api/images/upload")

@pytest.fixture
def fake_backend():
    return FakeBackend()

@pytest.fixture
def backend_client(fake_backend):
    return BackendClient(base_url=BACKEND_URL, transport=httpx.MockTransport(fake_backend.handler))

@pytest.fixture
def make_image():
    return make_image_bytes

@pytest.fixture
def jpeg_bytes():
    return make_image_bytes()

@pytest.fixture
def test_client(backend_client):
    """Create a test client for the FastAPI app backed by the fake backend."""
    key_value_store = InMemoryKeyValueStore()
    app.dependency_overrides[get_backend_client] = lambda: backend_client
    app.dependency_overrides[get_key_value_store] = lambda: key_value_store
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture(autouse=True)
def clean_test_dirs(tmp_path, monkeypatch):
    """Stage files under a temporary directory and forget flows after each test."""
    monkeypatch.setattr(settings, "STAGING_DIR", tmp_path / "staging")
    monkeypatch.setattr(settings, "CUSTOMER_DATA_DIR", tmp_path / "staging" / "customer_data")
    settings.STAGING_DIR.mkdir(parents=True, exist_ok=True)
    settings.CUSTOMER_DATA_DIR.mkdir(parents=True, exist_ok=True)

    yield

    flow_registry.clear()
