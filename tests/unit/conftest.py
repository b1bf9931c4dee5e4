"""
Unit tests build settings from the process environment only.

Neither a checked-out .env nor VERIFICATION_* variables exported in the
developer's shell may leak into AppSettings; tests set what they need with
monkeypatch.setenv().
"""

import os

import pytest


@pytest.fixture(autouse=True)
def isolated_settings_env(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})
    for name in list(os.environ):
        if name.startswith("VERIFICATION_"):
            monkeypatch.delenv(name, raising=False)
