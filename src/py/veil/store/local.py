import os
from pathlib import Path
from typing import BinaryIO

from . import (
	DirEntry,
	FileHandle,
	FileInfo,
	FileStore,
	HandleCloseError,
	InvalidPath,
	NotFound,
	StoreError,
	validPath,
)


class LocalFileHandle(FileHandle):
	"""A regular file opened from the local filesystem."""

	__slots__ = ["path", "name", "file"]

	def __init__(self, path: Path, file: BinaryIO, name: str):
		self.path: Path = path
		self.name: str = name
		self.file: BinaryIO = file

	def stat(self) -> FileInfo:
		st = os.fstat(self.file.fileno())
		return FileInfo(self.name, False, st.st_size, st.st_mtime)

	def read(self, size: int = -1) -> bytes:
		return self.file.read(size)

	def close(self) -> None:
		try:
			self.file.close()
		except OSError as e:
			raise HandleCloseError(str(self.path), str(e)) from e


class LocalDirectoryHandle(FileHandle):
	"""A directory of the local filesystem. There is no descriptor kept
	open, entries are listed on demand."""

	__slots__ = ["path", "name"]

	def __init__(self, path: Path, name: str):
		self.path: Path = path
		self.name: str = name

	def stat(self) -> FileInfo:
		return FileInfo(self.name, True, 0, self.path.stat().st_mtime)

	def readdir(self) -> list[DirEntry]:
		with os.scandir(self.path) as entries:
			return sorted(
				(DirEntry(_.name, _.is_dir()) for _ in entries),
				key=lambda _: _.name,
			)

	def close(self) -> None:
		pass


class DirectoryStore(FileStore):
	"""Serves a live directory of the local filesystem. Symbolic links are
	followed as long as they resolve within the root."""

	def __init__(self, root: str | Path):
		self.root: Path = Path(root).resolve()

	def resolve(self, path: str) -> Path:
		"""Resolves the store path to a local path, within the root."""
		if not validPath(path):
			raise InvalidPath(path)
		local_path = self.root if path == "." else self.root.joinpath(*path.split("/"))
		try:
			local_path = local_path.resolve(strict=True)
		except (FileNotFoundError, NotADirectoryError) as e:
			raise NotFound(path) from e
		except OSError as e:
			raise StoreError(path, str(e)) from e
		if local_path != self.root and self.root not in local_path.parents:
			raise NotFound(path)
		return local_path

	def identity(self, path: str) -> str:
		return str(self.resolve(path))

	def open(self, path: str) -> FileHandle:
		local_path = self.resolve(path)
		name: str = path.rsplit("/", 1)[-1]
		if local_path.is_dir():
			return LocalDirectoryHandle(local_path, name)
		try:
			return LocalFileHandle(local_path, open(local_path, "rb"), name)
		except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as e:
			raise NotFound(path) from e
		except OSError as e:
			raise StoreError(path, str(e)) from e

	def __repr__(self) -> str:
		return f"(DirectoryStore {str(self.root)!r})"


# EOF
