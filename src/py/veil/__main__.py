import argparse
import sys
from pathlib import Path

from . import config
from .server import run
from .services.files import FileService
from .store import DirectoryStore, FileStore, MemoryStore
from .utils.logging import error, info


def main(args: list[str] | None = None) -> int:
	oparser = argparse.ArgumentParser(
		prog="veil",
		description="Serves a directory over HTTP, hiding dotfiles and unindexed directories",
	)
	oparser.add_argument("root", nargs="?", default=config.ROOT, help="The directory to serve")
	oparser.add_argument("-H", "--host", default=config.HOST, help="The interface to listen on")
	oparser.add_argument("-p", "--port", type=int, default=config.PORT, help="The port to listen on")
	oparser.add_argument(
		"-b",
		"--bundle",
		action="store_true",
		default=config.BUNDLE,
		help="Serves an in-memory snapshot of the directory taken at startup",
	)
	opts = oparser.parse_args(args)

	root = Path(opts.root)
	if not root.is_dir():
		error(f"Root is not a directory: {root}", "NOROOT")
		return 1
	store: FileStore = MemoryStore.FromDirectory(root) if opts.bundle else DirectoryStore(root)
	info("Starting Veil file server", Root=str(root), Bundle=opts.bundle)
	run(FileService(store, listFiles=config.LIST_FILES), host=opts.host, port=opts.port)
	return 0


if __name__ == "__main__":
	sys.exit(main())

# EOF
