from urllib.parse import quote, unquote

from ..decorators import on, pre
from ..guard import GUARD
from ..http.model import HTTPRequest, HTTPResponse
from ..model import Service
from ..store import (
	INDEX,
	FileStore,
	FilteringFileSystem,
	HandleCloseError,
	InvalidPath,
	NotFound,
	StoreError,
	joinPath,
	walk,
)
from ..utils.logging import error, info


class FileService(Service):
	"""Serves the files of a store. Requests for hidden paths are rejected
	by the guard before the store is consulted, and directories are only
	served through their index document."""

	def __init__(self, store: FileStore, *, listFiles: bool = False, prefix: str | None = None):
		super().__init__(prefix=prefix)
		self.store: FileStore = store
		self.fs: FilteringFileSystem = FilteringFileSystem(store)
		self.listFiles: bool = listFiles

	async def start(self) -> None:
		info("Serving files", icon="📂", Store=repr(self.store))
		if self.listFiles:
			for depth, entry in walk(self.store):
				info(f"{'    ' * depth}{entry.name}{'/' if entry.isDirectory else ''}")

	@staticmethod
	def storePath(path: str) -> str:
		"""Converts a (decoded) URL path to a store path."""
		return path.strip("/") or "."

	@on(GET_HEAD="/{path:any}")
	@pre(GUARD)
	def read(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		url_path: str = unquote(request.path)
		store_path: str = self.storePath(unquote(path))
		try:
			handle = self.fs.open(store_path)
		except (NotFound, InvalidPath):
			return request.notFound()
		except HandleCloseError as e:
			error("Could not close store handle", "HANDLECLOSE", Path=e.path, Reason=str(e))
			return request.fail()
		except StoreError as e:
			error("Could not open store path", "STOREERR", Path=e.path, Reason=str(e))
			return request.fail()
		try:
			is_dir: bool = handle.stat().isDirectory
		except Exception:
			handle.close()
			raise
		if not is_dir:
			return request.respondHandle(handle)
		handle.close()
		if not url_path.endswith("/"):
			# Relative links in the index document need the trailing slash. The
			# location comes from the store path, never from a raw `//name`.
			return request.redirect(f"{self.prefix.rstrip('/')}/{quote(store_path)}/", permanent=True)
		try:
			index = self.fs.open(joinPath(store_path, INDEX))
		except (NotFound, InvalidPath):
			# The index went away since the directory was opened
			return request.notFound()
		except StoreError as e:
			error("Could not open index document", "STOREERR", Path=e.path, Reason=str(e))
			return request.fail()
		return request.respondHandle(index)


# EOF
