"""Tests for the local filesystem storage backend."""

from __future__ import annotations

from pathlib import Path

import pytest

from postier.errors import StorageUnavailableError
from postier.services.storage import LocalFileStorage, StorageBackend, SupportsMove


@pytest.fixture
def root(tmp_path: Path) -> Path:
    base = tmp_path / "api"
    (base / "users").mkdir(parents=True)
    (base / "users" / "list.postier").write_text("{}", encoding="utf-8")
    (base / "ping.postier").write_text("{}", encoding="utf-8")
    (base / ".hidden").write_text("x", encoding="utf-8")
    return base


def test_local_storage_satisfies_protocols() -> None:
    storage = LocalFileStorage()

    assert isinstance(storage, StorageBackend)
    assert isinstance(storage, SupportsMove)


@pytest.mark.asyncio
async def test_get_directory_tree_orders_directories_first(root: Path) -> None:
    tree = await LocalFileStorage().get_directory_tree(str(root))

    assert tree.is_dir
    assert tree.entry.name == "api"
    assert [child.entry.name for child in tree.children or ()] == [
        "users",
        ".hidden",
        "ping.postier",
    ]
    users = tree.children[0]
    assert users.children is not None
    assert users.children[0].path == f"{root}/users/list.postier"
    assert users.children[0].children is None


@pytest.mark.asyncio
async def test_get_directory_tree_can_skip_hidden_entries(root: Path) -> None:
    tree = await LocalFileStorage(skip_hidden=True).get_directory_tree(str(root))

    assert tree.child_names() == {"users", "ping.postier"}


@pytest.mark.asyncio
async def test_missing_root_raises_storage_unavailable(tmp_path: Path) -> None:
    missing = str(tmp_path / "missing")

    with pytest.raises(StorageUnavailableError) as excinfo:
        await LocalFileStorage().get_directory_tree(missing)

    assert excinfo.value.path == missing
    assert "missing" in excinfo.value.message


@pytest.mark.asyncio
async def test_file_crud_roundtrip(tmp_path: Path) -> None:
    storage = LocalFileStorage()
    target = str(tmp_path / "new" / "a.postier")

    await storage.create_file(target, "one")
    assert await storage.read_file(target) == "one"
    await storage.update_file(target, "two")
    assert await storage.read_file(target) == "two"
    assert await storage.exists(target)
    await storage.delete_file(target)

    assert not await storage.exists(target)
    with pytest.raises(StorageUnavailableError):
        await storage.read_file(target)


@pytest.mark.asyncio
async def test_directory_create_and_recursive_delete(tmp_path: Path) -> None:
    storage = LocalFileStorage()
    folder = str(tmp_path / "folder")

    await storage.create_directory(folder)
    await storage.create_file(f"{folder}/inner/a.postier", "{}")
    await storage.delete_directory(folder)

    assert not Path(folder).exists()


@pytest.mark.asyncio
async def test_delete_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(StorageUnavailableError):
        await LocalFileStorage().delete_file(str(tmp_path / "nope.postier"))


@pytest.mark.asyncio
async def test_move_renames_and_refuses_to_overwrite(root: Path) -> None:
    storage = LocalFileStorage()

    await storage.move(str(root / "users"), str(root / "people"))

    assert (root / "people" / "list.postier").exists()
    assert not (root / "users").exists()
    with pytest.raises(StorageUnavailableError):
        await storage.move(str(root / "people"), str(root / "ping.postier"))
    assert (root / "people").exists()
