"""Identity and run ID generation."""

import uuid
from datetime import datetime
from typing import Tuple


def generate_user_id() -> str:
    """Generate a virtual user ID (UUID4)."""
    return str(uuid.uuid4())


def generate_session_id() -> str:
    """Generate a session ID (UUID4)."""
    return str(uuid.uuid4())


def generate_identity() -> Tuple[str, str]:
    """Generate a fresh ``(user_id, session_id)`` pair for a new VU."""
    return generate_user_id(), generate_session_id()


def generate_test_id() -> str:
    """Generate a load test run ID."""
    return f"load-test-{datetime.now().strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:6]}"
