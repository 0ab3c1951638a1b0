"""
Blob store tests — local directory backend.

Verifies:
- Containers: create / list / has / delete
- Files: upload (bytes, str, streams), download with MIME type, has, delete
- Prefix deletes remove exactly the matching subtree
- Directory uploads mirror a local tree
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adapters.local.file_storage import FileSystemStorage, normalize_file_path
from buildshelf.errors.exceptions import (
    ContainerAlreadyExists,
    ContainerNotFound,
    FileNotFound,
)
from buildshelf.models.storage import StoredFile


# --- Fixtures ---


@pytest.fixture
async def storage(tmp_path):
    """Fresh storage root with one container."""
    store = FileSystemStorage(str(tmp_path / "storage"))
    await store.init()
    await store.create_container("buildshelf-docs")
    return store


async def _stream(*chunks: bytes):
    for chunk in chunks:
        yield chunk


# --- Containers ---


async def test_container_lifecycle(storage):
    assert await storage.has_container("buildshelf-docs")
    assert await storage.list_containers() == ["buildshelf-docs"]

    with pytest.raises(ContainerAlreadyExists):
        await storage.create_container("buildshelf-docs")

    await storage.upload_file("buildshelf-docs", b"x", destination_path="b1/index.html")
    await storage.delete_container("buildshelf-docs")
    assert not await storage.has_container("buildshelf-docs")

    with pytest.raises(ContainerNotFound):
        await storage.delete_container("buildshelf-docs")


# --- Files ---


async def test_upload_download_bytes(storage):
    await storage.upload_file("buildshelf-docs", b"<html></html>", destination_path="b1/index.html")
    stored = await storage.download_file("buildshelf-docs", "b1/index.html")
    assert await stored.read() == b"<html></html>"
    assert stored.mime_type == "text/html"
    assert stored.path == "b1/index.html"


async def test_upload_text_and_stream(storage):
    await storage.upload_file("buildshelf-docs", "body { }", destination_path="b1/site.css")
    await storage.upload_file("buildshelf-docs", _stream(b"ab", b"cd"), destination_path="b1/data.bin")

    css = await storage.download_file("buildshelf-docs", "b1/site.css")
    assert await css.read() == b"body { }"
    assert css.mime_type == "text/css"

    data = await storage.download_file("buildshelf-docs", "b1/data.bin")
    assert await data.read() == b"abcd"


async def test_upload_overwrites(storage):
    await storage.upload_file("buildshelf-docs", b"one", destination_path="f.txt")
    await storage.upload_file("buildshelf-docs", b"two", destination_path="f.txt")
    assert await (await storage.download_file("buildshelf-docs", "f.txt")).read() == b"two"


async def test_upload_to_missing_container_fails(storage):
    with pytest.raises(ContainerNotFound):
        await storage.upload_file("missing", b"x", destination_path="f.txt")


async def test_download_missing_file_fails(storage):
    with pytest.raises(FileNotFound):
        await storage.download_file("buildshelf-docs", "nope.txt")


async def test_has_and_delete_file(storage):
    await storage.upload_file("buildshelf-docs", b"x", destination_path="b1/a/b.txt")
    assert await storage.has_file("buildshelf-docs", "b1/a/b.txt")

    await storage.delete_file("buildshelf-docs", "b1/a/b.txt")
    assert not await storage.has_file("buildshelf-docs", "b1/a/b.txt")

    # Missing file: no-op
    await storage.delete_file("buildshelf-docs", "b1/a/b.txt")


async def test_delete_files_by_prefix(storage):
    """A prefix delete removes exactly the paths starting with it."""
    for path in ["b1/index.html", "b1/assets/app.js", "b10/index.html", "b2/index.html"]:
        await storage.upload_file("buildshelf-docs", b"x", destination_path=path)

    await storage.delete_files("buildshelf-docs", "b1/")

    assert not await storage.has_file("buildshelf-docs", "b1/index.html")
    assert not await storage.has_file("buildshelf-docs", "b1/assets/app.js")
    assert await storage.has_file("buildshelf-docs", "b10/index.html")
    assert await storage.has_file("buildshelf-docs", "b2/index.html")


async def test_delete_files_plain_string_prefix(storage):
    """Without a trailing slash the prefix also matches sibling names."""
    for path in ["b1/index.html", "b10/index.html", "b2/index.html"]:
        await storage.upload_file("buildshelf-docs", b"x", destination_path=path)

    await storage.delete_files("buildshelf-docs", "b1")

    assert not await storage.has_file("buildshelf-docs", "b1/index.html")
    assert not await storage.has_file("buildshelf-docs", "b10/index.html")
    assert await storage.has_file("buildshelf-docs", "b2/index.html")


async def test_delete_files_by_list(storage):
    for path in ["a.txt", "b.txt", "c.txt"]:
        await storage.upload_file("buildshelf-docs", b"x", destination_path=path)

    await storage.delete_files("buildshelf-docs", ["a.txt", "c.txt", "missing.txt"])

    assert [await storage.has_file("buildshelf-docs", p) for p in ["a.txt", "b.txt", "c.txt"]] == [
        False, True, False,
    ]


async def test_delete_files_no_match_is_noop(storage):
    await storage.delete_files("buildshelf-docs", "nothing/")
    await storage.delete_files("buildshelf-docs", [])


# --- Bulk uploads ---


async def test_upload_files(storage):
    files = [StoredFile(path=f"b1/page{i}.html", content=f"<p>{i}</p>") for i in range(30)]
    await storage.upload_files("buildshelf-docs", files)
    for i in range(30):
        assert await storage.has_file("buildshelf-docs", f"b1/page{i}.html")


async def test_upload_directory(storage, tmp_path):
    """upload_directory mirrors a local tree under the prefix."""
    site = tmp_path / "site"
    (site / "assets").mkdir(parents=True)
    (site / "index.html").write_text("<html></html>")
    (site / "assets" / "app.js").write_text("console.log(1)")

    await storage.upload_directory("buildshelf-docs", site, "b1")

    assert await storage.has_file("buildshelf-docs", "b1/index.html")
    js = await storage.download_file("buildshelf-docs", "b1/assets/app.js")
    assert await js.read() == b"console.log(1)"


# --- Paths ---


def test_paths_cannot_escape_container():
    assert normalize_file_path("../../etc/passwd") == "etc/passwd"
    assert normalize_file_path("/b1//index.html") == "b1/index.html"
    with pytest.raises(ValueError):
        normalize_file_path("/")
