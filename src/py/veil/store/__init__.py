from abc import ABC, abstractmethod
from typing import Iterator, NamedTuple

from mypy_extensions import mypyc_attr

from ..utils.logging import warning

__doc__ = """
The file store abstraction: a read-only hierarchical namespace of files and
directories, addressed by slash-separated relative paths. Concrete stores
are the live directory (`DirectoryStore`) and the in-process bundle
(`MemoryStore`), and `FilteringFileSystem` wraps any of them.
"""

# The document a directory must contain to be served.
INDEX: str = "index.html"

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class StoreError(Exception):
	"""Base class for the errors raised by file stores."""

	def __init__(self, path: str, message: str | None = None):
		super().__init__(message or f"{self.__class__.__name__}: {path!r}")
		self.path: str = path


class NotFound(StoreError):
	"""The store has no entry at the given path."""


class InvalidPath(StoreError):
	"""The path is malformed or tries to escape the store root."""


class HandleCloseError(StoreError):
	"""Closing a handle failed. This takes precedence over any other error
	being reported at the same time."""


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class FileInfo(NamedTuple):
	"""Metadata for an opened file or directory."""

	name: str
	isDirectory: bool
	size: int = 0
	mtime: float | None = None


class DirEntry(NamedTuple):
	"""An entry in a directory listing."""

	name: str
	isDirectory: bool


@mypyc_attr(allow_interpreted_subclasses=True)
class FileHandle(ABC):
	"""An open reference to a file or a directory of a store."""

	@abstractmethod
	def stat(self) -> FileInfo: ...

	@abstractmethod
	def close(self) -> None:
		"""Releases the handle, raising `HandleCloseError` on failure."""

	def read(self, size: int = -1) -> bytes:
		"""Reads up to `size` bytes (everything when negative). Returns
		an empty bytes string at the end of the file."""
		raise IsADirectoryError(self.stat().name)

	def readdir(self) -> list[DirEntry]:
		"""Lists the directory entries, sorted by name."""
		raise NotADirectoryError(self.stat().name)

	def __enter__(self) -> "FileHandle":
		return self

	def __exit__(self, *args: object) -> None:
		self.close()


@mypyc_attr(allow_interpreted_subclasses=True)
class FileStore(ABC):
	"""A read-only hierarchical file store. Subclasses only need to
	implement `open`, the other operations are derived from it."""

	@abstractmethod
	def open(self, path: str) -> FileHandle:
		"""Opens the file or directory at `path`, raising `InvalidPath` when
		`validPath(path)` does not hold and `NotFound` when there is
		no such entry."""

	def stat(self, path: str) -> FileInfo:
		with self.open(path) as handle:
			return handle.stat()

	def readdir(self, path: str = ".") -> list[DirEntry]:
		with self.open(path) as handle:
			return handle.readdir()

	def exists(self, path: str) -> bool:
		try:
			self.stat(path)
		except (NotFound, InvalidPath):
			return False
		return True

	def identity(self, path: str) -> str:
		"""A key that is the same for every path leading to the same
		entry, which only differs from the path when the store has links."""
		return path


# -----------------------------------------------------------------------------
#
# PATHS
#
# -----------------------------------------------------------------------------


def validPath(path: str) -> bool:
	"""Tells if the path is a valid store path: `.` for the root, or a
	non-empty relative path without leading or trailing `/`, without
	empty, `.` or `..` elements."""
	if path == ".":
		return True
	if not path or "\\" in path or "\x00" in path:
		return False
	for element in path.split("/"):
		if element in ("", ".", ".."):
			return False
	return True


def joinPath(path: str, name: str) -> str:
	"""Joins a store path and an entry name, the root `.` being absorbed."""
	return name if path == "." else f"{path}/{name}"


def walk(
	store: FileStore,
	path: str = ".",
	depth: int = 0,
	ancestors: frozenset[str] = frozenset(),
) -> Iterator[tuple[int, DirEntry]]:
	"""Walks the store depth-first from `path`, yielding `(depth, entry)`.
	Directories that can't be listed are logged and skipped, and so are
	the ones that link back to a directory being walked."""
	try:
		key: str = store.identity(path)
		entries: list[DirEntry] = [] if key in ancestors else store.readdir(path)
	except StoreError as e:
		warning("Could not list directory", Path=path, Reason=str(e))
		return
	for entry in entries:
		yield depth, entry
		if entry.isDirectory:
			yield from walk(store, joinPath(path, entry.name), depth + 1, ancestors | {key})


from .filtering import FilteringFileSystem  # NOQA: F401,E402
from .local import DirectoryStore  # NOQA: F401,E402
from .memory import MemoryStore  # NOQA: F401,E402

# EOF
