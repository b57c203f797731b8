from .http.model import HTTPRequest, HTTPResponse, HTTPRequestError  # NOQA: F401
from .decorators import on, pre  # NOQA: F401
from .model import Application, Service, mount  # NOQA: F401
from .guard import HiddenPathGuard  # NOQA: F401
from .store import (  # NOQA: F401
    DirectoryStore,
    FileStore,
    FilteringFileSystem,
    MemoryStore,
)
from .services.files import FileService  # NOQA: F401
from .server import run  # NOQA: F401


# EOF
