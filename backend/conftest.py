from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure `import chatapi...` works when running pytest from the backend directory.
BACKEND_ROOT = Path(__file__).resolve().parent
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def _fresh_settings():
    from chatapi.ai.agent import get_orchestrator
    from chatapi.core.settings import get_settings

    get_settings.cache_clear()
    get_orchestrator.cache_clear()
    yield
    get_settings.cache_clear()
    get_orchestrator.cache_clear()
