"""Lambda entry point: the reference app behind a Mangum adapter.

Built at import time so warm invocations reuse the app and its store.
Set ``SESSION_BACKEND=dynamodb`` (with ``DYNAMODB_TABLE``) in Lambda; the
in-memory store does not survive across containers.
"""

from mangum import Mangum

from signed_sessions.config import build_store, get_settings
from signed_sessions.main import create_app

session_store = build_store(get_settings())
app = create_app(store=session_store)

handler = Mangum(app, lifespan="auto")
