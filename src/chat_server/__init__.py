"""Chat server package: message history, AI chat turns and voice turns over HTTP.

This package provides a FastAPI application factory named ``create_app``
inside ``chat_server/server.py`` (see :func:`create_app`).

Typical usage
-------------
from chat_server import create_app
app = create_app()

or, from the provided launcher:

python scripts/run_server.py --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

__all__ = ["create_app", "__version__"]

# ---------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------
__version__ = "0.1.0"


# ---------------------------------------------------------------------
# App factory export
# ---------------------------------------------------------------------
def create_app(*args, **kwargs):
    """Return a configured FastAPI application.

    This forwards to :func:`chat_server.server.create_app`. The import is
    deferred so that ``chat_server.errors`` and ``chat_server.config`` can be
    used by the storage package without pulling in FastAPI.
    """
    from .server import create_app as _create_app

    return _create_app(*args, **kwargs)
