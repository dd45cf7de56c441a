"""Package index access over HTTP."""

from lockstep.index.http_client import IndexClient
from lockstep.index.pypi import DEFAULT_INDEX_URL, PyPIProvider

__all__ = ["DEFAULT_INDEX_URL", "IndexClient", "PyPIProvider"]
