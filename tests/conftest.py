import pytest
import responses

from anilist_mal_reconcile.progress import ProgressChannel


@pytest.fixture
def responses_mock():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def channel() -> ProgressChannel:
    return ProgressChannel()


@pytest.fixture
def events(channel: ProgressChannel) -> list:
    """Every event published on ``channel``."""
    recorded = []
    channel.subscribe(recorded.append)
    return recorded


@pytest.fixture
def config_file(tmp_path):
    """Write a config.yaml into tmp_path and return its path."""

    def write(text: str):
        path = tmp_path / "config.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    return write
