"""WSGI entry point for gunicorn and managed function runtimes."""

from .app import create_app

app = create_app()
