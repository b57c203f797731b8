import pytest

from veil.store import (
	FilteringFileSystem,
	HandleCloseError,
	InvalidPath,
	MemoryStore,
	NotFound,
)


def test_files_pass_through(site):
	fs = FilteringFileSystem(site)
	for path, data in (("index.html", b"<h1>Home</h1>"), ("css/styles.css", b"body { color: black; }")):
		with fs.open(path) as handle:
			assert handle.read() == data
	# Hidden names are not the concern of this layer
	with fs.open(".env") as handle:
		assert handle.read() == b"SECRET=1"


def test_indexed_directories(site):
	fs = FilteringFileSystem(site)
	for path in (".", "subdir"):
		with fs.open(path) as handle:
			assert handle.stat().isDirectory


@pytest.mark.parametrize("path", ["css", "docs", "blog", ".configs"])
def test_unindexed_directories(site, path):
	with pytest.raises(NotFound):
		FilteringFileSystem(site).open(path)


def test_errors_are_passed_through(site):
	fs = FilteringFileSystem(site)
	with pytest.raises(NotFound):
		fs.open("missing.html")
	with pytest.raises(InvalidPath):
		fs.open("../index.html")


def test_index_must_be_a_file(counter):
	store = counter(MemoryStore({"trap/index.html/page.html": b"Not an index"}))
	with pytest.raises(NotFound):
		FilteringFileSystem(store).open("trap")
	assert store.outstanding == 0


def test_no_leaked_handles(counting):
	fs = FilteringFileSystem(counting)
	for path in (".", "subdir", "css", "docs", "index.html", "css/styles.css", "missing", "css/missing"):
		try:
			fs.open(path).close()
		except NotFound:
			pass
		assert counting.outstanding == 0, path
	assert not counting.doubleClosed


def test_probe_closed(counting):
	with FilteringFileSystem(counting).open("subdir"):
		assert counting.opened == ["subdir", "subdir/index.html"]
		# Only the directory handle is left open
		assert counting.outstanding == 1
	assert counting.outstanding == 0


def test_idempotent(site):
	fs = FilteringFileSystem(site)
	for _ in range(5):
		with fs.open("subdir") as handle:
			assert handle.stat().isDirectory
		with pytest.raises(NotFound):
			fs.open("css")
		with fs.open("css/styles.css") as handle:
			assert handle.read() == b"body { color: black; }"


def test_probe_close_failure(failingClose):
	store = failingClose("subdir/index.html")
	with pytest.raises(HandleCloseError) as error:
		FilteringFileSystem(store).open("subdir")
	assert error.value.path == "subdir/index.html"
	assert store.outstanding == 0


def test_close_failure_takes_precedence(failingClose):
	store = failingClose("css")
	with pytest.raises(HandleCloseError) as error:
		FilteringFileSystem(store).open("css")
	assert error.value.path == "css"
	# The original error is kept as the cause
	assert isinstance(error.value.__cause__, NotFound)
	assert store.outstanding == 0


# EOF
