import pytest

from veil.store import DirEntry, FileHandle, FileInfo, FileStore, HandleCloseError, MemoryStore

# The site used throughout the tests: a public index, a directory without
# index, a directory with one, and things that must never be served.
SITE: dict[str, bytes] = {
	"index.html": b"<h1>Home</h1>",
	"css/styles.css": b"body { color: black; }",
	"subdir/index.html": b"<h1>Subdir</h1>",
	"subdir/page.txt": b"A page",
	"docs/guide.md": b"# Guide",
	".env": b"SECRET=1",
	".configs/secret.txt": b"hunter2",
	"blog/.draft.html": b"<p>Draft</p>",
}


class CountingHandle(FileHandle):
	"""Wraps a handle, reporting its closing to the store that opened it."""

	def __init__(self, store: "CountingStore", path: str, handle: FileHandle):
		self.store = store
		self.path = path
		self.handle = handle
		self.isClosed = False

	def stat(self) -> FileInfo:
		return self.handle.stat()

	def read(self, size: int = -1) -> bytes:
		return self.handle.read(size)

	def readdir(self) -> list[DirEntry]:
		return self.handle.readdir()

	def close(self) -> None:
		if self.isClosed:
			self.store.doubleClosed.append(self.path)
			return
		self.isClosed = True
		self.store.outstanding -= 1
		self.handle.close()
		if self.path in self.store.failClose:
			raise HandleCloseError(self.path, f"Simulated close failure: {self.path}")


class CountingStore(FileStore):
	"""Keeps track of the handles that are opened and not yet closed, and
	can be told to fail when closing given paths."""

	def __init__(self, store: FileStore, failClose: tuple[str, ...] = ()):
		self.store = store
		self.failClose = set(failClose)
		self.outstanding = 0
		self.opened: list[str] = []
		self.doubleClosed: list[str] = []

	def open(self, path: str) -> FileHandle:
		handle = self.store.open(path)
		self.opened.append(path)
		self.outstanding += 1
		return CountingHandle(self, path, handle)


class ForbiddenStore(FileStore):
	"""A store that fails the test whenever it is opened."""

	def open(self, path: str) -> FileHandle:
		pytest.fail(f"Store was accessed for {path!r}")


@pytest.fixture
def site() -> MemoryStore:
	return MemoryStore(SITE, mtime=0.0)


@pytest.fixture
def counting(site: MemoryStore) -> CountingStore:
	return CountingStore(site)


@pytest.fixture
def failingClose(site: MemoryStore):
	"""Creates counting stores failing to close the given paths."""
	return lambda *paths: CountingStore(site, paths)


@pytest.fixture
def counter() -> type[CountingStore]:
	"""Wraps any store so that its handles are counted."""
	return CountingStore


@pytest.fixture
def forbidden() -> ForbiddenStore:
	return ForbiddenStore()


@pytest.fixture
def siteDirectory(tmp_path):
	"""Writes the site to a temporary directory."""
	for path, data in SITE.items():
		local = tmp_path.joinpath(*path.split("/"))
		local.parent.mkdir(parents=True, exist_ok=True)
		local.write_bytes(data)
	return tmp_path


# EOF
