"""ASGI entrypoint for the AutoQuote API."""

from autoquote.api.app import create_app
from autoquote.containers import build_container

app = create_app(build_container())
