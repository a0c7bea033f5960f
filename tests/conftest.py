import pytest

from core import config


@pytest.fixture
def anyio_backend():
    """Configure the async test backend to use asyncio only."""
    return "asyncio"


@pytest.fixture
def settings():
    """Settings with a detector credential, independent of the environment."""
    return config.Settings(
        detector_api_key="test-key",
        detector_base_url="http://detector.test",
        detector_workspace="scalpscan",
        default_model="scalp-density-detector",
        target_class="bald",
        class_prompt="bald scalp",
    )
