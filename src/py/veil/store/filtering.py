from . import INDEX, FileHandle, FileStore, HandleCloseError, NotFound, joinPath


class FilteringFileSystem(FileStore):
	"""Wraps a store so that directories are only visible when they
	contain an index document. Files are passed through untouched: hidden
	names are the concern of the request guard, not of this layer."""

	__slots__ = ["store", "index"]

	def __init__(self, store: FileStore, index: str = INDEX):
		self.store: FileStore = store
		self.index: str = index

	def open(self, path: str) -> FileHandle:
		handle = self.store.open(path)
		try:
			is_dir = handle.stat().isDirectory
		except Exception as e:
			self._close(handle, path, e)
			raise
		if not is_dir:
			return handle
		# The probe goes straight to the wrapped store, the candidate being
		# a file this layer would pass through anyway.
		candidate: str = joinPath(path, self.index)
		try:
			probe = self.store.open(candidate)
		except Exception as e:
			self._close(handle, path, e)
			raise
		try:
			probe_is_dir = probe.stat().isDirectory
		except Exception as e:
			self._close(probe, candidate, e, handle)
			self._close(handle, path, e)
			raise
		self._close(probe, candidate, None, handle)
		if probe_is_dir:
			# A directory named like the index does not make an index.
			error = NotFound(candidate)
			self._close(handle, path, error)
			raise error
		return handle

	def identity(self, path: str) -> str:
		return self.store.identity(path)

	@staticmethod
	def _close(
		handle: FileHandle,
		path: str,
		cause: Exception | None,
		other: FileHandle | None = None,
	) -> None:
		"""Closes `handle`, surfacing a close failure as `HandleCloseError`
		chained to `cause`. When given, `other` is closed as well before
		the error is raised."""
		try:
			handle.close()
		except Exception as e:
			if other is not None:
				try:
					other.close()
				except Exception:  # nosec: B110
					# The first close failure is the one reported.
					pass
			error: HandleCloseError = (
				e
				if isinstance(e, HandleCloseError)
				else HandleCloseError(path, f"Could not close handle for {path!r}: {e}")
			)
			if cause is not None:
				raise error from cause
			elif error is e:
				raise
			else:
				raise error from e

	def __repr__(self) -> str:
		return f"(FilteringFileSystem {self.index!r} {self.store!r})"


# EOF
