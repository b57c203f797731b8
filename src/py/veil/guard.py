from typing import Any, ClassVar
from urllib.parse import unquote

from .http.model import HTTPRequest, HTTPResponse
from .utils.logging import LogLevel, debug, logged

__doc__ = """
The hidden path guard rejects requests for paths that have a segment
starting with `.` (dotfiles, `.git/`, `..` traversals), before the file
store is ever consulted. Rejections are plain 404s so that they don't
confirm the existence of anything.
"""


class HiddenPathGuard:
	"""Inspects request paths, rejecting those with hidden segments. The
	guard is stateless and can be shared by any number of handlers."""

	MARKER: ClassVar[str] = "."

	def __init__(self, marker: str = MARKER):
		self.marker: str = marker

	def admit(self, path: str) -> bool:
		"""Tells if the given (decoded) request path is free of hidden
		segments. Empty segments, from trailing or doubled separators,
		are admitted."""
		if path.startswith("/"):
			path = path[1:]
		for segment in path.split("/"):
			if segment and segment[0] == self.marker:
				return False
		return True

	def __call__(self, request: HTTPRequest, params: dict[str, Any] | None = None) -> HTTPResponse | None:
		"""Pre-processing transform: returns a 404 response for rejected
		requests, and `None` to let the request through unchanged."""
		if self.admit(unquote(request.path)):
			return None
		if logged(LogLevel.Debug):
			debug("Hidden path rejected", Path=request.path)
		return request.notFound()


def admits(path: str) -> bool:
	"""Tells if the path is admitted by the default guard."""
	return GUARD.admit(path)


GUARD: HiddenPathGuard = HiddenPathGuard()

# EOF
