import os
from pathlib import Path

from dotenv import load_dotenv
import pytest

# Load environment variables for tests before any vowmarket module reads settings
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')
os.environ.setdefault('PYTEST_RUN', '1')

from vowmarket.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Keep FastAPI overrides and app.state doubles from leaking between tests."""
    yield
    app.dependency_overrides.clear()
    for attr in ('identity_provider', 'payment_gateway'):
        if hasattr(app.state, attr):
            delattr(app.state, attr)
