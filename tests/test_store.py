import os

import pytest

from veil.store import (
	DirEntry,
	DirectoryStore,
	InvalidPath,
	MemoryStore,
	NotFound,
	joinPath,
	validPath,
	walk,
)

VALID_PATHS = [".", "a", "a/b", "a/.b", ".env", "a..b", "x/y/z.html"]
INVALID_PATHS = ["", "/", "/a", "a/", "a//b", "./a", "a/.", "..", "a/../b", "a\\b", "a\x00b"]


@pytest.mark.parametrize("path", VALID_PATHS)
def test_valid_path(path):
	assert validPath(path)


@pytest.mark.parametrize("path", INVALID_PATHS)
def test_invalid_path(path):
	assert not validPath(path)


def test_join_path():
	assert joinPath(".", "index.html") == "index.html"
	assert joinPath("a/b", "index.html") == "a/b/index.html"


# -----------------------------------------------------------------------------
#
# MEMORY STORE
#
# -----------------------------------------------------------------------------


def test_memory_read(site):
	with site.open("css/styles.css") as handle:
		info = handle.stat()
		assert info.name == "styles.css"
		assert not info.isDirectory
		assert info.size == len(b"body { color: black; }")
		assert handle.read(4) == b"body"
		assert handle.read() == b" { color: black; }"
		assert handle.read() == b""


def test_memory_directories(site):
	assert site.stat(".").isDirectory
	assert site.stat("subdir").isDirectory
	assert site.readdir(".") == [
		DirEntry(".configs", True),
		DirEntry(".env", False),
		DirEntry("blog", True),
		DirEntry("css", True),
		DirEntry("docs", True),
		DirEntry("index.html", False),
		DirEntry("subdir", True),
	]
	with site.open("css") as handle:
		with pytest.raises(IsADirectoryError):
			handle.read()


def test_memory_errors(site):
	with pytest.raises(NotFound):
		site.open("missing.html")
	with pytest.raises(NotFound):
		site.open("index.html/child")
	with pytest.raises(InvalidPath):
		site.open("/index.html")
	with pytest.raises(InvalidPath):
		site.open("css/../index.html")
	assert site.exists("index.html")
	assert not site.exists("css/missing.css")
	assert not site.exists("")


def test_memory_rejects_conflicts():
	with pytest.raises(ValueError):
		MemoryStore({"a": b"", "a/b": b""})
	with pytest.raises(InvalidPath):
		MemoryStore({"/a": b""})


def test_memory_from_directory(siteDirectory):
	(siteDirectory / "_drafts").mkdir()
	(siteDirectory / "_drafts" / "next.html").write_bytes(b"next")
	store = MemoryStore.FromDirectory(siteDirectory)
	assert store.open("index.html").read() == b"<h1>Home</h1>"
	assert store.exists("subdir/page.txt")
	for path in (".env", ".configs/secret.txt", "blog/.draft.html", "_drafts/next.html"):
		assert not store.exists(path), path
	everything = MemoryStore.FromDirectory(siteDirectory, all=True)
	assert everything.open(".env").read() == b"SECRET=1"
	assert everything.exists("_drafts/next.html")


def test_walk(site):
	tree = [(depth, entry.name) for depth, entry in walk(site)]
	assert tree[:4] == [(0, ".configs"), (1, "secret.txt"), (0, ".env"), (0, "blog")]
	assert (1, "index.html") in tree
	assert len(tree) == 13


# -----------------------------------------------------------------------------
#
# DIRECTORY STORE
#
# -----------------------------------------------------------------------------


def test_directory_read(siteDirectory):
	store = DirectoryStore(siteDirectory)
	with store.open("css/styles.css") as handle:
		assert handle.stat().size == len(b"body { color: black; }")
		assert handle.read() == b"body { color: black; }"
	assert store.stat("subdir").isDirectory
	assert DirEntry(".env", False) in store.readdir(".")
	assert store.readdir("subdir") == [DirEntry("index.html", False), DirEntry("page.txt", False)]


def test_directory_errors(siteDirectory):
	store = DirectoryStore(siteDirectory)
	with pytest.raises(NotFound):
		store.open("missing.html")
	with pytest.raises(InvalidPath):
		store.open("../outside")
	with pytest.raises(InvalidPath):
		store.open("")


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="Requires symbolic links")
def test_directory_symlinks(siteDirectory, tmp_path_factory):
	outside = tmp_path_factory.mktemp("outside") / "passwd"
	outside.write_bytes(b"root:x:0:0")
	(siteDirectory / "escape.txt").symlink_to(outside)
	(siteDirectory / "alias.css").symlink_to(siteDirectory / "css" / "styles.css")
	store = DirectoryStore(siteDirectory)
	with pytest.raises(NotFound):
		store.open("escape.txt")
	with store.open("alias.css") as handle:
		assert handle.read() == b"body { color: black; }"


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="Requires symbolic links")
def test_walk_linked_directories(siteDirectory, tmp_path_factory):
	outside = tmp_path_factory.mktemp("outside")
	(outside / "leak.txt").write_bytes(b"leak")
	(siteDirectory / "shared").symlink_to(outside, target_is_directory=True)
	(siteDirectory / "subdir" / "loop").symlink_to(siteDirectory, target_is_directory=True)
	tree = [(depth, entry.name) for depth, entry in walk(DirectoryStore(siteDirectory))]
	# Listed, but neither the outside nor the loop are walked
	assert (0, "shared") in tree
	assert (1, "loop") in tree
	assert "leak.txt" not in [name for _, name in tree]
	assert len(tree) == 15


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="Requires symbolic links")
def test_memory_from_directory_links(siteDirectory, tmp_path_factory):
	outside = tmp_path_factory.mktemp("outside")
	(outside / "leak.txt").write_bytes(b"leak")
	(siteDirectory / "shared").symlink_to(outside, target_is_directory=True)
	(siteDirectory / "leak.txt").symlink_to(outside / "leak.txt")
	(siteDirectory / "subdir" / "loop").symlink_to(siteDirectory, target_is_directory=True)
	(siteDirectory / "alias").symlink_to(siteDirectory / "css", target_is_directory=True)
	store = MemoryStore.FromDirectory(siteDirectory)
	for path in ("shared", "leak.txt", "subdir/loop"):
		assert not store.exists(path), path
	assert store.open("alias/styles.css").read() == b"body { color: black; }"
	assert store.open("subdir/page.txt").read() == b"A page"


# EOF
