import os
import time
from pathlib import Path

from . import (
	DirEntry,
	FileHandle,
	FileInfo,
	FileStore,
	InvalidPath,
	NotFound,
	validPath,
)
from ..utils.logging import warning

__doc__ = """
An in-process store holding a snapshot of files as bytes, which is how
assets get bundled with the server instead of being read from a live
directory.
"""


class MemoryFileHandle(FileHandle):
	__slots__ = ["name", "data", "offset", "mtime"]

	def __init__(self, name: str, data: bytes, mtime: float | None = None):
		self.name: str = name
		self.data: bytes = data
		self.offset: int = 0
		self.mtime: float | None = mtime

	def stat(self) -> FileInfo:
		return FileInfo(self.name, False, len(self.data), self.mtime)

	def read(self, size: int = -1) -> bytes:
		start: int = self.offset
		end: int = len(self.data) if size < 0 else min(len(self.data), start + size)
		self.offset = end
		return self.data[start:end]

	def close(self) -> None:
		pass


class MemoryDirectoryHandle(FileHandle):
	__slots__ = ["name", "entries", "mtime"]

	def __init__(self, name: str, entries: list[DirEntry], mtime: float | None = None):
		self.name: str = name
		self.entries: list[DirEntry] = entries
		self.mtime: float | None = mtime

	def stat(self) -> FileInfo:
		return FileInfo(self.name, True, 0, self.mtime)

	def readdir(self) -> list[DirEntry]:
		return list(self.entries)

	def close(self) -> None:
		pass


class MemoryStore(FileStore):
	"""A read-only store backed by a mapping of paths to bytes. Directories
	are implied by the file paths."""

	@staticmethod
	def FromDirectory(root: str | Path, *, all: bool = False) -> "MemoryStore":
		"""Snapshots the files under `root`. Entries whose name starts with
		`.` or `_` are left out (along with everything below them) unless
		`all` is set. Symbolic links are followed within the root only, and
		a link back to a directory being walked is not descended into."""
		base = Path(root).resolve()
		files: dict[str, bytes] = {}
		# The resolved directories leading to each walked directory
		chains: dict[str, frozenset[Path]] = {str(base): frozenset((base,))}
		for dirpath, dirnames, filenames in os.walk(str(base), followlinks=True):
			chain = chains.pop(dirpath)
			if not all:
				dirnames[:] = [_ for _ in dirnames if not _.startswith((".", "_"))]
				filenames = [_ for _ in filenames if not _.startswith((".", "_"))]
			walked: list[str] = []
			for name in dirnames:
				local = os.path.join(dirpath, name)
				real = Path(local).resolve()
				if real in chain or not MemoryStore.IsWithin(base, real):
					warning("Skipped linked directory", Path=local, Target=str(real))
					continue
				chains[local] = chain | {real}
				walked.append(name)
			dirnames[:] = walked
			rel = Path(dirpath).relative_to(base).parts
			for name in filenames:
				local = os.path.join(dirpath, name)
				real = Path(local).resolve()
				if not (MemoryStore.IsWithin(base, real) and real.is_file()):
					warning("Skipped linked file", Path=local, Target=str(real))
					continue
				with open(real, "rb") as f:
					files["/".join(rel + (name,))] = f.read()
		return MemoryStore(files)

	@staticmethod
	def IsWithin(base: Path, path: Path) -> bool:
		return path == base or base in path.parents

	def __init__(self, files: dict[str, bytes], mtime: float | None = None):
		self.mtime: float = time.time() if mtime is None else mtime
		self.files: dict[str, bytes] = {}
		self.dirs: dict[str, dict[str, bool]] = {".": {}}
		for path, data in files.items():
			if not validPath(path) or path == ".":
				raise InvalidPath(path, f"Cannot bundle file at invalid path: {path!r}")
			self.files[path] = data
			parent: str = "."
			for i, name in enumerate(parts := path.split("/")):
				is_dir = i < len(parts) - 1
				entries = self.dirs[parent]
				if entries.get(name, is_dir) != is_dir:
					raise ValueError(f"Path is both a file and a directory: {path!r}")
				entries[name] = is_dir
				parent = name if parent == "." else f"{parent}/{name}"
				if is_dir:
					self.dirs.setdefault(parent, {})

	def open(self, path: str) -> FileHandle:
		if not validPath(path):
			raise InvalidPath(path)
		name: str = path.rsplit("/", 1)[-1]
		if path in self.files:
			return MemoryFileHandle(name, self.files[path], self.mtime)
		elif path in self.dirs:
			return MemoryDirectoryHandle(
				name,
				[DirEntry(k, v) for k, v in sorted(self.dirs[path].items())],
				self.mtime,
			)
		else:
			raise NotFound(path)

	def __repr__(self) -> str:
		return f"(MemoryStore :files {len(self.files)})"


# EOF
