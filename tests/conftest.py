from __future__ import annotations

import pytest

from tests.fake_portal import _configure_temp_paths


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path_factory, monkeypatch):
    """Keep every test's downloads, archives and logs under a per-test temp dir."""

    return _configure_temp_paths(tmp_path_factory.mktemp("isolated"), monkeypatch)
