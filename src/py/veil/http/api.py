from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from ..store import FileHandle
from ..utils.files import contentType as guessContentType
from .status import HTTP_STATUS

T = TypeVar("T")

# --
# The high level functions to create responses from a request, independent
# from the underlying response model.

TEXT_PLAIN: str = "text/plain; charset=utf-8"


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		status: int = 200,
		content: Any = None,
		*,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
	) -> T: ...

	def error(self, status: int, content: str | None = None, headers: dict[str, str] | None = None) -> T:
		"""A plain text error response, the default content being the
		status message."""
		text: str = HTTP_STATUS.get(status, "Server Error") if content is None else content
		return self.respond(status, text, contentType=TEXT_PLAIN, headers=headers)

	def notFound(self, content: str = "404 page not found") -> T:
		return self.error(404, content)

	def notAllowed(self, allow: str = "GET, HEAD") -> T:
		return self.error(405, headers={"Allow": allow})

	def fail(self, content: str | None = None, *, status: int = 500) -> T:
		return self.error(status, content)

	def redirect(self, url: str, permanent: bool = False) -> T:
		# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/Redirections
		return self.respond(301 if permanent else 302, headers={"Location": str(url)})

	def respondText(self, content: str | bytes, contentType: str = TEXT_PLAIN, status: int = 200) -> T:
		return self.respond(status, content, contentType=contentType)

	def respondHandle(
		self,
		handle: FileHandle,
		*,
		headers: dict[str, str] | None = None,
		contentType: str | None = None,
		status: int = 200,
	) -> T:
		"""Responds with the contents of the given file handle, which is
		then owned by the response and closed once sent."""
		try:
			info = handle.stat()
		except Exception:
			handle.close()
			raise
		return self.respond(
			status,
			handle,
			contentType=contentType or guessContentType(info.name),
			contentLength=info.size,
			headers=headers,
		)


# EOF
