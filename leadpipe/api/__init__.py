"""leadpipe HTTP API layer.

This package provides the Falcon ASGI application for the webhook intake
surface.

Usage
-----
Create and run the application::

    from leadpipe.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # webhook ingestion enabled
"""

from leadpipe.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
