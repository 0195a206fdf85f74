"""
asgi.py -- Application assembly for the helpdesk.

Settings are read from the environment exactly once, here. A missing or short
SECRET_KEY raises ConfigurationError at import time, so the server process
refuses to start instead of failing on the first request.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app

app = create_app()
