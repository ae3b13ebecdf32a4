import pytest

from fakes import make_registry
from nodekeeper import db
from nodekeeper.errors import ConfigError
from nodekeeper.registry import EMPTY, FATAL, load_registry

CONFIG = """
nodes:
  - instance: es-data-1
    service: elasticsearch-data-1
  - instance: es-data-2
    service: elasticsearch-data-2
"""


def test_load_registry(tmp_path):
    path = tmp_path / "nodes.yaml"
    path.write_text(CONFIG)

    registry = load_registry(str(path))

    entries = registry.snapshot()
    assert [(e.service_name, e.instance_name, e.last_restart) for e in entries] == [
        ("elasticsearch-data-1", "es-data-1", 0),
        ("elasticsearch-data-2", "es-data-2", 0),
    ]


def test_duplicate_service_last_declaration_wins(tmp_path):
    path = tmp_path / "nodes.yaml"
    path.write_text(
        "nodes:\n"
        "  - {instance: old, service: es}\n"
        "  - {instance: new, service: es}\n"
    )

    registry = load_registry(str(path))

    assert len(registry) == 1
    assert registry.get("es").instance_name == "new"


def test_empty_file_gives_empty_registry(tmp_path):
    path = tmp_path / "nodes.yaml"
    path.write_text("")
    assert len(load_registry(str(path))) == 0


@pytest.mark.parametrize(
    "content",
    [
        None,  # missing file
        "nodes: [\n",  # broken YAML
        "nodes:\n  - instance: es-1\n",  # service missing
        "nodes: 3\n",
    ],
)
def test_config_errors_fatal_policy(tmp_path, content):
    path = tmp_path / "nodes.yaml"
    if content is not None:
        path.write_text(content)

    with pytest.raises(ConfigError):
        load_registry(str(path), on_error=FATAL)


def test_config_errors_empty_policy(tmp_path):
    registry = load_registry(str(tmp_path / "missing.yaml"), on_error=EMPTY)

    assert len(registry) == 0
    assert any("using empty config" in e["message"] for e in db.latest_events())


def test_unknown_policy_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_registry(str(tmp_path / "x.yaml"), on_error="ignore")


def test_invalid_services():
    registry = make_registry(("a", "es-1"), ("b", "es-2"), ("c", "es-1"))

    assert [e.service_name for e in registry.invalid_services({"es-2"})] == ["a", "c"]
    assert registry.invalid_services({"es-1", "es-2", "es-9"}) == []


def test_mark_restarted_is_monotonic():
    registry = make_registry(("a", "es-1"))

    assert registry.mark_restarted("a", 100) is True
    assert registry.mark_restarted("a", 50) is False
    assert registry.mark_restarted("a", 100) is False
    assert registry.get("a").last_restart == 100


def test_mark_restarted_unknown_service():
    with pytest.raises(KeyError):
        make_registry().mark_restarted("nope", 1)


def test_snapshot_is_a_copy():
    registry = make_registry(("a", "es-1"))
    registry.snapshot()[0].last_restart = 999
    assert registry.get("a").last_restart == 0
