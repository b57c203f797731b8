from os import getenv

PORT: int = int(getenv("PORT", 5000))

# Listens on all interfaces by default, so that the server is reachable from
# within a container.
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# The directory that is served
ROOT: str = getenv("VEIL_ROOT", "files")

# Serves an in-memory snapshot of ROOT (taken at startup, without hidden
# entries) instead of the live directory.
BUNDLE: bool = getenv("VEIL_BUNDLE", "0") == "1"

LOG_REQUESTS: bool = getenv("VEIL_LOG_REQUESTS", "1") == "1"

# Logs the served tree at startup
LIST_FILES: bool = getenv("VEIL_LIST_FILES", "1") == "1"

# EOF
