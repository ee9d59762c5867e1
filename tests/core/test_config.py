from __future__ import annotations

import pytest

from course_access.core.config import AppEnv, Settings, load_settings

_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "PORT",
    "DATABASE_URL",
    "REDIS_URL",
    "EVENTS_QUEUE",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ---- valid values ----


def test_load_settings_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.port == 8000
    assert settings.database_url is None
    assert settings.redis_url is None
    assert settings.events_queue == "course_events"


def test_load_settings_respects_env_vars(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("APP_ENV", "prod")
    clean_env.setenv("LOG_LEVEL", "error")
    clean_env.setenv("LOG_JSON", "true")
    clean_env.setenv("PORT", "9000")
    clean_env.setenv("DATABASE_URL", "postgresql+asyncpg://db/course_access")
    clean_env.setenv("REDIS_URL", "redis://cache:6379/0")
    clean_env.setenv("EVENTS_QUEUE", "lms_events")

    settings = load_settings()

    assert settings.app_env == "prod"
    assert settings.log_level == "error"
    assert settings.log_json is True
    assert settings.port == 9000
    assert settings.database_url == "postgresql+asyncpg://db/course_access"
    assert settings.redis_url == "redis://cache:6379/0"
    assert settings.events_queue == "lms_events"


def test_load_settings_normalizes_case_and_whitespace(
    clean_env: pytest.MonkeyPatch,
) -> None:
    clean_env.setenv("APP_ENV", "  TEST ")
    clean_env.setenv("LOG_LEVEL", "Warning")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.log_level == "warning"


def test_blank_urls_mean_not_configured(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("DATABASE_URL", "   ")
    clean_env.setenv("REDIS_URL", "")
    settings = load_settings()
    assert settings.database_url is None
    assert settings.redis_url is None


@pytest.mark.parametrize("raw", ["1", "yes", "ON", "True"])
def test_log_json_truthy(clean_env: pytest.MonkeyPatch, raw: str) -> None:
    clean_env.setenv("LOG_JSON", raw)
    assert load_settings().log_json is True


@pytest.mark.parametrize("raw", ["0", "no", "off", "false", ""])
def test_log_json_falsy(clean_env: pytest.MonkeyPatch, raw: str) -> None:
    clean_env.setenv("LOG_JSON", raw)
    assert load_settings().log_json is False


# ---- invalid values ----


@pytest.mark.parametrize(
    ("name", "value", "match"),
    [
        ("APP_ENV", "staging", "APP_ENV must be dev|test|prod"),
        ("APP_ENV", "", "APP_ENV must be dev|test|prod"),
        ("LOG_LEVEL", "verbose", "LOG_LEVEL must be debug|info|warning|error"),
        ("LOG_JSON", "maybe", "LOG_JSON must be a boolean"),
        ("PORT", "eighty", "PORT must be an integer"),
        ("EVENTS_QUEUE", "  ", "EVENTS_QUEUE must be non-empty"),
    ],
)
def test_load_settings_rejects_invalid_values(
    clean_env: pytest.MonkeyPatch, name: str, value: str, match: str
) -> None:
    clean_env.setenv(name, value)
    with pytest.raises(ValueError, match=match):
        load_settings()


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
        events_queue="course_events",
    )


@pytest.mark.parametrize(
    ("app_env", "flags"),
    [
        ("dev", (True, False, False)),
        ("test", (False, True, False)),
        ("prod", (False, False, True)),
    ],
)
def test_settings_env_flags(app_env: AppEnv, flags: tuple[bool, bool, bool]) -> None:
    s = _make_settings(app_env)
    assert (s.is_dev, s.is_test, s.is_prod) == flags


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
