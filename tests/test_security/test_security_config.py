"""Route rules loaded from YAML."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from warehouse_ops.security.config import load_security_config
from warehouse_ops.settings import get_settings

CONFIG = """
security:
  cookie:
    name: sid
  default:
    auth_required: true
  routes:
    - path: /health
      methods: [GET]
      auth_required: false
    - path: /api/things/{id}
      methods: [GET, put]
      permissions: ["things:view", "things:edit"]
    - path: /api/things/special
      methods: [GET]
      permissions: ["special:view"]
"""


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "security.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return load_security_config(path)


def test_public_route(config):
    rule = config.match("/health", "get")
    assert rule.auth_required is False
    assert rule.permissions == frozenset()


def test_exact_match_preferred_over_template(config):
    rule = config.match("/api/things/special", "GET")
    assert rule.permissions == frozenset({("special", "view")})


def test_template_match_and_method_normalization(config):
    rule = config.match("/api/things/42", "PUT")
    assert rule.auth_required is True
    assert rule.permissions == frozenset({("things", "view"), ("things", "edit")})


def test_unmatched_route_falls_back_to_default(config):
    rule = config.match("/api/things/42", "DELETE")
    assert rule.auth_required is True
    assert rule.permissions == frozenset()
    assert config.cookie_name == "sid"


def test_missing_top_level_key(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("routes: []\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Missing top-level 'security'"):
        load_security_config(path)


def test_malformed_permission_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(
        "security:\n  routes:\n    - path: /x\n      permissions: ['nocolon']\n",
        encoding="utf-8",
    )
    with pytest.raises(ValidationError):
        load_security_config(path)


def test_shipped_config_protects_ledger_routes():
    config = load_security_config(get_settings().resolved_security_config_path())

    assert config.cookie_name == "session"
    assert config.match("/api/login", "POST").auth_required is False
    assert config.match("/api/productivity/save", "POST").permissions == frozenset({("productivity", "add")})
    delete_rule = config.match("/api/production/process-cases", "DELETE")
    assert delete_rule.permissions == frozenset({("production", "delete")})
    assert config.match("/api/me", "GET").auth_required is True
