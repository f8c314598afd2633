from io import BytesIO
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.exc import OperationalError

from api import context
from api.routes import generate as generate_router
from api.routes import templates as templates_router
from db import init_db
from domain.errors import TextRenderError
from repositories import GreetingsRepository
from services.compositor import GreetingCompositor
from services.template_store import TemplateStore
from settings import settings
from storage.file_storage import FileStorage
from tests.conftest import PARITY_META, png_bytes, write_template


@pytest.fixture
def services(monkeypatch, templates_dir, generated_dir, rasterizer):
    store = TemplateStore(templates_dir)
    storage = FileStorage(generated_dir, public_prefix="/api/generated")
    compositor = GreetingCompositor(store, storage, rasterizer=rasterizer)
    monkeypatch.setattr(context, "store", store)
    monkeypatch.setattr(context, "storage", storage)
    monkeypatch.setattr(context, "compositor", compositor)
    write_template(templates_dir, "teachersday", meta=PARITY_META, ext=".jpg")
    return compositor


def _client(db_handle=None) -> TestClient:
    app = FastAPI()
    app.include_router(generate_router.router)
    app.include_router(generate_router.router, prefix="/api")
    app.include_router(templates_router.router, prefix="/api")
    app.state.db_handle = db_handle
    return TestClient(app)


class TestGenerate:

    def test_generate_returns_url(self, services, generated_dir):
        resp = _client().post("/api/generate", data={"name": "Mrs. Eleanor Vance", "template": "teachersday"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        filename = body["url"].rsplit("/", 1)[1]
        assert body["url"] == f"/api/generated/{filename}"
        assert (generated_dir / filename).exists()

    def test_unprefixed_route_and_default_template(self, services, rasterizer):
        resp = _client().post("/generate", data={"name": "Ada"})
        assert resp.status_code == 200
        assert ">Ada</tspan>" in rasterizer.last_svg

    def test_template_extension_is_accepted(self, services):
        resp = _client().post("/api/generate", data={"name": "Ada", "template": "teachersday.png"})
        assert resp.status_code == 200

    def test_unknown_template(self, services, generated_dir):
        resp = _client().post("/api/generate", data={"name": "Ada", "template": "nosuchtemplate"})
        assert resp.status_code == 404
        assert resp.json()["ok"] is False
        assert list(generated_dir.iterdir()) == []

    def test_name_is_truncated(self, services, rasterizer):
        resp = _client().post("/api/generate", data={"name": "x" * 40})
        assert resp.status_code == 200
        assert f">{'x' * settings.MAX_NAME_LENGTH}</tspan>" in rasterizer.last_svg
        assert "x" * (settings.MAX_NAME_LENGTH + 1) not in rasterizer.last_svg

    def test_markup_in_name_is_escaped(self, services, rasterizer):
        resp = _client().post("/api/generate", data={"name": "A & B <script>"})
        assert resp.status_code == 200
        assert "A &amp; B &lt;script&gt;" in rasterizer.last_svg

    @pytest.mark.parametrize("value", ["big", "-4", "0", "1.5"])
    def test_invalid_font_size(self, services, value):
        resp = _client().post("/api/generate", data={"name": "Ada", "fontSize": value})
        assert resp.status_code == 422

    def test_font_size_and_color_overrides(self, services, rasterizer):
        resp = _client().post("/api/generate", data={"name": "Ada", "fontSize": "40", "color": "#ff0000"})
        assert resp.status_code == 200
        assert 'font-size="40px"' in rasterizer.last_svg
        assert 'fill="#ff0000"' in rasterizer.last_svg

    def test_undrawable_color(self, services, generated_dir):
        resp = _client().post("/api/generate", data={"name": "Ada", "color": "notacolor"})
        assert resp.status_code == 422
        assert resp.json()["ok"] is False
        assert "notacolor" in resp.json()["error"]
        assert list(generated_dir.iterdir()) == []

    def test_text_render_failure_is_a_json_error(self, services, monkeypatch):
        def broken_rasterizer(svg, width, height):
            raise TextRenderError("delegate library support not built-in (SVG)")

        monkeypatch.setattr(services, "rasterizer", broken_rasterizer)
        resp = _client().post("/api/generate", data={"name": "Ada"})
        assert resp.status_code == 500
        assert resp.headers["content-type"] == "application/json"
        assert resp.json() == {"ok": False, "error": "delegate library support not built-in (SVG)"}

    def test_photo_upload(self, services):
        files = {"photo": ("me.png", png_bytes(), "image/png")}
        resp = _client().post("/api/generate", data={"name": "Ada"}, files=files)
        assert resp.status_code == 200

    def test_bad_photo(self, services):
        files = {"photo": ("me.png", b"not an image", "image/png")}
        resp = _client().post("/api/generate", data={"name": "Ada"}, files=files)
        assert resp.status_code == 422

    def test_photo_too_large(self, services, monkeypatch):
        monkeypatch.setattr(settings, "MAX_PHOTO_BYTES", 10)
        files = {"photo": ("me.png", png_bytes(), "image/png")}
        resp = _client().post("/api/generate", data={"name": "Ada"}, files=files)
        assert resp.status_code == 413


class TestPersistence:

    def test_greeting_is_recorded(self, services, tmp_path):
        handle = init_db(f"sqlite:///{tmp_path / 'greetings.db'}")
        resp = _client(handle).post("/api/generate", data={"name": "Ada", "phone": "555-0100"})
        assert resp.status_code == 200

        with handle() as session:
            rows = GreetingsRepository().list_greetings(session)
        assert [(r.name, r.phone, r.image_url) for r in rows] == [("Ada", "555-0100", resp.json()["url"])]

    def test_write_failure_does_not_fail_generation(self, services):
        session = MagicMock()
        session.__enter__.return_value = session
        session.commit.side_effect = OperationalError("INSERT", {}, Exception("no such table"))
        handle = MagicMock(return_value=session)

        resp = _client(handle).post("/api/generate", data={"name": "Ada"})

        assert resp.status_code == 200
        assert resp.json()["ok"] is True
        session.rollback.assert_called_once()


class TestTemplateRoutes:

    def test_template_list(self, services, templates_dir):
        write_template(templates_dir, "graduation")
        resp = _client().get("/api/template-list")
        assert resp.json() == {"ok": True, "templates": ["graduation", "teachersday"]}

    def test_template_check(self, services):
        resp = _client().get("/api/template-check", params={"name": "teachersday"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["path"] == "teachersday.jpg"
        assert body["size"] > 0

    def test_template_check_missing(self, services):
        resp = _client().get("/api/template-check", params={"name": "nope"})
        assert resp.status_code == 404
        assert resp.json() == {"ok": False, "message": "template missing"}

    def test_template_meta(self, services):
        resp = _client().get("/api/template-meta", params={"name": "teachersday"})
        assert resp.status_code == 200
        assert resp.json()["meta"] == PARITY_META

    def test_template_meta_missing(self, services, templates_dir):
        write_template(templates_dir, "plain")
        resp = _client().get("/api/template-meta", params={"name": "plain"})
        assert resp.status_code == 404
        assert resp.json()["message"] == "meta not found"

    def test_template_meta_unreadable(self, services, templates_dir):
        (templates_dir / "teachersday.json").write_text("{oops")
        resp = _client().get("/api/template-meta", params={"name": "teachersday"})
        assert resp.status_code == 500
        assert resp.json()["message"] == "failed to read meta"

    def test_update_template(self, services, templates_dir):
        meta = {"textSlot": dict(PARITY_META["textSlot"], fontSize=60)}
        resp = _client().post("/api/update-template", json={"template": "teachersday", "meta": meta})
        assert resp.status_code == 200
        assert resp.json() == {"message": "Template updated successfully"}
        assert context.store.load_descriptor("teachersday").text_slot.font_size == 60

    def test_update_template_missing_fields(self, services):
        resp = _client().post("/api/update-template", json={"template": "teachersday"})
        assert resp.status_code == 400

    def test_update_unknown_template(self, services):
        resp = _client().post("/api/update-template", json={"template": "nope", "meta": PARITY_META})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Template not found"}

    def test_update_rejects_invalid_descriptor(self, services):
        resp = _client().post("/api/update-template", json={"template": "teachersday", "meta": {"textSlot": {}}})
        assert resp.status_code == 422


class TestPreviewRoutes:

    def test_preview_png(self, services):
        resp = _client().get("/api/preview", params={"template": "teachersday", "name": "Ada", "guides": "true"})
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        with Image.open(BytesIO(resp.content)) as img:
            assert img.size == (1600, 900)

    def test_preview_undrawable_color(self, services):
        resp = _client().get("/api/preview", params={"name": "Ada", "color": "notacolor"})
        assert resp.status_code == 422
        assert resp.headers["content-type"] == "application/json"
        assert resp.json()["ok"] is False

    def test_preview_missing_template(self, services):
        resp = _client().get("/api/preview", params={"template": "nope", "name": "Ada"})
        assert resp.status_code == 404

    def test_layout_matches_generated_svg(self, services, rasterizer):
        client = _client()
        layout = client.get("/api/layout", params={"name": "Mrs. Eleanor Vance"}).json()
        client.post("/api/generate", data={"name": "Mrs. Eleanor Vance"})

        assert layout["width"] == 1600
        assert layout["height"] == 900
        assert layout["color"] == "#0b3d91"
        assert layout["layout"]["lines"] == ["Mrs. Eleanor Vance"]
        assert layout["layout"]["startY"] == 307
        assert f'y="{layout["layout"]["lineYs"][0]:g}"' in rasterizer.last_svg


def test_app_health():
    from api.main import app

    client = TestClient(app)
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/").json()["status"] == "ok"


def test_generated_files_are_served_with_cache_headers():
    from api.main import app

    artifact = settings.GENERATED_DIR / "0b5c1a9e-served.png"
    Image.new("RGB", (4, 4)).save(artifact)
    client = TestClient(app)
    for prefix in ("", "/api"):
        resp = client.get(f"{prefix}/generated/{artifact.name}")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert "immutable" in resp.headers["cache-control"]
    assert client.get("/api/generated/missing.png").status_code == 404
