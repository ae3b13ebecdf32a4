import pytest

from nodekeeper import cli
from nodekeeper import settings as settings_mod
from nodekeeper.errors import ConfigError
from nodekeeper.registry import FATAL
from nodekeeper.settings import Settings


def test_run_flags_override_settings():
    args = cli.build_parser(Settings()).parse_args(
        ["run", "-u", "http://es:9200", "-t", "3", "-c", "/tmp/n.yaml", "--restart-exclusion-period", "120", "-n", "-v"]
    )
    cfg = cli.settings_from_args(args, Settings())

    assert cfg.es_url == "http://es:9200"
    assert cfg.http_timeout_s == 3
    assert cfg.config_path == "/tmp/n.yaml"
    assert cfg.restart_exclusion_period_s == 120
    assert cfg.dry_run is True
    assert cfg.verbose is True


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("NK_RESTART_EXCLUSION_PERIOD", "900")
    monkeypatch.setenv("NK_DRY_RUN", "yes")
    monkeypatch.setenv("NK_TIMEOUT", "not-a-number")
    monkeypatch.delenv("NK_VERBOSE", raising=False)

    assert settings_mod._env_int("NK_RESTART_EXCLUSION_PERIOD", 600) == 900
    assert settings_mod._env_bool("NK_DRY_RUN") is True
    assert settings_mod._env_int("NK_TIMEOUT", 10) == 10
    assert settings_mod._env_bool("NK_VERBOSE", default=False) is False


def test_on_config_error_choices():
    with pytest.raises(SystemExit):
        cli.build_parser(Settings()).parse_args(["run", "--on-config-error", "ignore"])


def test_build_reconciler_wires_settings(tmp_path):
    path = tmp_path / "nodes.yaml"
    path.write_text("nodes:\n  - {instance: es-1, service: elasticsearch}\n")
    cfg = Settings(config_path=str(path), restart_exclusion_period_s=42, dry_run=True, es_url="http://es:9200/")

    rec = cli.build_reconciler(cfg)

    assert rec.exclusion_period_s == 42
    assert rec.dry_run is True
    assert rec.controller.dry_run is True
    assert rec.cluster.base_url == "http://es:9200"
    assert rec.registry.get("elasticsearch").instance_name == "es-1"
    assert rec.notify is None


def test_build_reconciler_fatal_config(tmp_path):
    cfg = Settings(config_path=str(tmp_path / "missing.yaml"), on_config_error=FATAL)
    with pytest.raises(ConfigError):
        cli.build_reconciler(cfg)


def test_run_exits_nonzero_on_fatal_config_error(tmp_path):
    cfg = Settings(
        config_path=str(tmp_path / "missing.yaml"),
        on_config_error=FATAL,
        db_path=str(tmp_path / "events.db"),
    )
    assert cli.run(cfg) == 1


def test_run_with_empty_policy_starts_loop(tmp_path, monkeypatch):
    started = []
    monkeypatch.setattr(cli.Scheduler, "run_forever", lambda self: started.append(self.interval_s))
    monkeypatch.setattr(cli.signal, "signal", lambda *a: None)
    cfg = Settings(
        config_path=str(tmp_path / "missing.yaml"),
        on_config_error="empty",
        db_path=str(tmp_path / "events.db"),
        interval_s=7,
    )

    assert cli.run(cfg) == 0
    assert started == [7]


def test_events_command(monkeypatch, capsys):
    class _Resp:
        ok = True

        def json(self):
            return [{"level": "INFO", "message": "hello"}]

    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen["url"] = url
        seen["params"] = params
        return _Resp()

    monkeypatch.setattr(cli.requests, "get", fake_get)

    assert cli.main(["events", "--api", "http://nk:8080/", "--limit", "3"]) == 0
    assert seen == {"url": "http://nk:8080/events", "params": {"limit": 3}}
    assert '"hello"' in capsys.readouterr().out


def test_run_rejects_unknown_config_error_policy(tmp_path):
    cfg = Settings(
        config_path=str(tmp_path / "missing.yaml"),
        on_config_error="ignore",
        db_path=str(tmp_path / "events.db"),
    )

    assert cli.run(cfg) == 1
    assert any("Invalid config error policy" in e["message"] for e in cli.db.latest_events())


def test_run_accepts_policy_in_any_case(tmp_path, monkeypatch):
    started = []
    monkeypatch.setattr(cli.Scheduler, "run_forever", lambda self: started.append(True))
    monkeypatch.setattr(cli.signal, "signal", lambda *a: None)
    cfg = Settings(
        config_path=str(tmp_path / "missing.yaml"),
        on_config_error=" Empty",
        db_path=str(tmp_path / "events.db"),
    )

    assert cli.run(cfg) == 0
    assert started == [True]
