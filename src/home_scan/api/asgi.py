"""ASGI entrypoint for the home scan API."""

from home_scan.api.app import create_app
from home_scan.containers import build_container

app = create_app(build_container())
