from __future__ import annotations

import pytest

from fakes import RecordingSleep


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
