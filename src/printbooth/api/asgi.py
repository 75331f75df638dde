"""ASGI entrypoint for the print booth API."""

from printbooth.api.app import create_app
from printbooth.containers import build_container

app = create_app(build_container())
