"""
Service and purge tests — local backends end to end.

Verifies:
- Built-in routes: health, serving build files with long-lived caching
- 404 for unknown routes and missing files, 500 for anything escaping
- init() runs once and surfaces backend failures
- Purging builds and empty tags
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adapters.local.file_storage import FileSystemStorage
from adapters.local.json_database import JsonFileDatabase
from buildshelf.context import request_scope
from buildshelf.errors.exceptions import BackendUnavailable
from buildshelf.models.http import Request
from buildshelf.naming import generate_collection_id, generate_container_id
from buildshelf.purge import purge_build, purge_empty_tags, purge_expired_builds
from buildshelf.router.router import Router
from buildshelf.service import CACHE_CONTROL_PUBLIC_YEAR, Service


# --- Fixtures ---


@pytest.fixture
async def service(tmp_path):
    """Service on fresh local backends, with one project and one build uploaded."""
    svc = Service(
        JsonFileDatabase(str(tmp_path / "db.json")),
        FileSystemStorage(str(tmp_path / "storage")),
        prefix="/buildshelf",
    )
    await svc.init()

    container = generate_container_id("docs")
    await svc.storage.create_container(container)
    await svc.storage.upload_file(container, "<html>home</html>", destination_path="b1/index.html")
    await svc.storage.upload_file(container, b"\x89PNG", destination_path="b1/img/logo.png")

    builds = generate_collection_id("docs", "builds")
    await svc.database.create_collection(builds)
    await svc.database.create_collection(generate_collection_id("docs", "tags"))
    await svc.database.create_document(builds, {"id": "b1", "updatedAt": "2025-01-01T00:00:00Z"})
    return svc


def _get(path: str, **headers) -> Request:
    return Request(method="GET", url=f"http://localhost{path}", headers=headers)


# --- Naming ---


def test_collection_ids():
    assert generate_collection_id("docs") == "buildshelf-docs"
    assert generate_collection_id("docs", "builds") == "buildshelf-docs-builds"
    assert generate_collection_id("docs", "tags") == "buildshelf-docs-tags"
    assert generate_container_id("docs") == "buildshelf-docs"
    with pytest.raises(ValueError):
        generate_collection_id("docs", "other")


# --- Routes ---


async def test_health(service):
    response = await service.handle(_get("/buildshelf/health"))
    assert response.status == 200
    assert json.loads(await response.text()) == {"status": "ok"}


async def test_serve_build_index(service):
    """An empty wildcard serves the build's index.html."""
    response = await service.handle(_get("/buildshelf/projects/docs/builds/b1/"))
    assert response.status == 200
    assert await response.text() == "<html>home</html>"
    assert response.content_type == "text/html"
    assert response.headers.get("cache-control") == CACHE_CONTROL_PUBLIC_YEAR


async def test_serve_build_nested_file(service):
    response = await service.handle(_get("/buildshelf/projects/docs/builds/b1/img/logo.png"))
    assert response.status == 200
    assert await response.read() == b"\x89PNG"
    assert response.content_type == "image/png"


async def test_serve_missing_file_404(service):
    response = await service.handle(_get("/buildshelf/projects/docs/builds/b1/missing.js"))
    assert response.status == 404
    response = await service.handle(_get("/buildshelf/projects/other/builds/b1/"))
    assert response.status == 404


async def test_unknown_route_404(service):
    response = await service.handle(_get("/buildshelf/nothing"))
    assert response.status == 404
    assert json.loads(await response.text())["error_code"] == "NOT_FOUND"


async def test_escaping_error_becomes_500(service):
    class BrokenRouter(Router):
        async def dispatch(self, request):
            raise RuntimeError("router exploded")

    broken = Service(service.database, service.storage, BrokenRouter())
    response = await broken.handle(_get("/anything"))
    assert response.status == 500
    assert json.loads(await response.text()) == {"error": "Internal Server Error", "error_code": "UNHANDLED"}


# --- init ---


async def test_init_runs_once(tmp_path):
    calls = []

    class CountingDatabase(JsonFileDatabase):
        async def init(self):
            calls.append(1)
            await super().init()

    svc = Service(CountingDatabase(str(tmp_path / "db.json")), FileSystemStorage(str(tmp_path / "s")))
    await svc.init()
    await svc.init()
    assert calls == [1]


async def test_init_failure_raised(tmp_path):
    bad = tmp_path / "db.json"
    bad.write_text("{not json")
    svc = Service(JsonFileDatabase(str(bad)), FileSystemStorage(str(tmp_path / "s")))
    with pytest.raises(BackendUnavailable):
        await svc.init()


# --- Purge ---


async def test_purge_build(service):
    with request_scope(service.create_context(_get("/"))):
        await purge_build("docs", "b1")

    container = generate_container_id("docs")
    assert not await service.storage.has_file(container, "b1/index.html")
    assert not await service.database.has_document(generate_collection_id("docs", "builds"), "b1")


async def test_purge_expired_builds(service):
    builds = generate_collection_id("docs", "builds")
    await service.database.create_document(builds, {"id": "b2", "updatedAt": "2025-03-01T00:00:00Z"})
    await service.database.create_document(builds, {"id": "b3", "createdAt": "2024-12-01T00:00:00Z"})
    await service.database.create_document(builds, {"id": "b4", "updatedAt": "2024-11-01T00:00:00Z"})

    now = datetime(2025, 3, 15, tzinfo=timezone.utc)
    with request_scope(service.create_context(_get("/"))):
        purged = await purge_expired_builds("docs", older_than_days=30, keep_build_id="b4", now=now)

    assert sorted(purged) == ["b1", "b3"]
    remaining = await service.database.list_documents(builds)
    assert sorted(d["id"] for d in remaining) == ["b2", "b4"]
    assert not await service.storage.has_file(generate_container_id("docs"), "b1/index.html")


async def test_purge_empty_tags(service):
    tags = generate_collection_id("docs", "tags")
    await service.database.create_document(tags, {"id": "t1", "type": "branch", "value": "main", "buildsCount": 0})
    await service.database.create_document(tags, {"id": "t2", "type": "branch", "value": "feat", "buildsCount": 0})
    await service.database.create_document(tags, {"id": "t3", "type": "pr", "value": "12", "buildsCount": 2})

    with request_scope(service.create_context(_get("/"))):
        deleted = await purge_empty_tags("docs", keep_branch="main")

    assert deleted == ["t2"]
    assert sorted(d["id"] for d in await service.database.list_documents(tags)) == ["t1", "t3"]


# --- Path handling ---


async def test_serve_rejects_parent_segments(service):
    """'..' never reaches storage, so every backend resolves the same keys."""
    container = generate_container_id("docs")
    await service.storage.upload_file(container, "secret", destination_path="b2/secret.txt")

    response = await service.handle(_get("/buildshelf/projects/docs/builds/b1/../b2/secret.txt"))
    assert response.status == 404
    response = await service.handle(_get("/buildshelf/projects/docs/builds/../b2/secret.txt"))
    assert response.status == 404


async def test_serve_normalises_dot_segments(service):
    response = await service.handle(_get("/buildshelf/projects/docs/builds/b1/./img//logo.png"))
    assert response.status == 200
    assert await response.read() == b"\x89PNG"
