"""Test settings and entry point wiring"""
import logging

from playlist_app.config import Settings
from playlist_app.main import build_controller, setup_logging
from playlist_app.services.supabase import SupabaseRepo


def test_defaults(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    settings = Settings(_env_file=None)

    assert settings.playlists_table == "channel_playlists"
    assert settings.drag_cooldown_ms == 500
    assert settings.refresh_debounce_ms == 1000
    assert settings.external_change_suppress_ms == 2000


def test_env_override(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
    monkeypatch.setenv("DRAG_COOLDOWN_MS", "250")

    settings = Settings(_env_file=None)

    assert settings.supabase_url == "https://env.supabase.co"
    assert settings.drag_cooldown_ms == 250


def test_build_controller_uses_settings():
    settings = Settings(
        _env_file=None,
        supabase_url="https://test.supabase.co",
        supabase_key="test-key",
        playlists_table="staging_playlists",
        drag_cooldown_ms=250,
        refresh_debounce_ms=400,
    )

    controller = build_controller(settings)

    assert isinstance(controller.store, SupabaseRepo)
    assert controller.store.playlists_table == "staging_playlists"
    assert controller.drag_cooldown == 0.25
    assert controller.refresh_debounce == 0.4
    assert controller.catalog is controller.store


def test_setup_logging_creates_log_dir(tmp_path):
    log_dir = tmp_path / "logs"

    log_file = setup_logging(Settings(_env_file=None, log_dir=str(log_dir)))

    assert log_dir.is_dir()
    assert log_file.parent == log_dir
    assert logging.getLogger("httpx").level == logging.WARNING
