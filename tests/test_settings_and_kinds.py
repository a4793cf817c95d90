# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

import pytest
from pydantic import ValidationError

from flowguard import scope
from flowguard.config import DEFAULT_MAX_NODES, PipelineSettings
from flowguard.kinds import (
    BUILTIN_KINDS,
    DEFAULT_ENTRY_KINDS,
    DEFAULT_EXIT_KINDS,
    DEVICE_EVENT_LISTEN_KIND,
    START_KIND,
    NodeKindRegistry,
)


def test_default_settings():
    settings = PipelineSettings()

    assert settings.max_nodes == DEFAULT_MAX_NODES
    assert settings.entry_kinds == ("start", "deviceEventListen")
    assert settings.exit_kinds == ("end",)
    assert settings.clone_before_repair is False


def test_settings_from_env():
    settings = PipelineSettings.from_env(
        {
            "FLOWGUARD_MAX_NODES": "5",
            "FLOWGUARD_ENTRY_KINDS": "start, trigger",
            "FLOWGUARD_EXIT_KINDS": "end,finish",
            "FLOWGUARD_CLONE_BEFORE_REPAIR": "yes",
        }
    )

    assert settings.max_nodes == 5
    assert settings.entry_kinds == ("start", "trigger")
    assert settings.exit_kinds == ("end", "finish")
    assert settings.clone_before_repair is True


def test_node_ceiling_can_be_disabled_from_env():
    assert PipelineSettings.from_env({"FLOWGUARD_MAX_NODES": "off"}).max_nodes is None
    assert PipelineSettings.from_env({}).max_nodes == DEFAULT_MAX_NODES


def test_negative_ceiling_is_rejected():
    with pytest.raises(ValidationError):
        PipelineSettings(max_nodes=-1)


def test_registry_knows_builtin_kinds():
    registry = NodeKindRegistry()

    assert all(registry.is_kind_supported(kind) for kind in BUILTIN_KINDS)
    assert not registry.is_kind_supported("lampControl")
    assert not registry.is_kind_supported(None)


def test_registry_registers_device_definitions():
    registry = NodeKindRegistry()

    registered = registry.register_definitions(
        [
            {"kind": "lampControl", "name": "灯光控制"},
            {"type": "curtainControl"},
            {"name": "no kind"},
            "garbage",
        ]
    )

    assert registered == ["lampControl", "curtainControl"]
    assert "curtainControl" in registry
    assert registry("lampControl")
    assert registry.definition("lampControl")["name"] == "灯光控制"


def test_registry_rejects_empty_kind():
    with pytest.raises(ValueError):
        NodeKindRegistry().register("")


def test_non_numeric_ceiling_from_env_is_rejected():
    with pytest.raises(ValueError, match="FLOWGUARD_MAX_NODES"):
        PipelineSettings.from_env({"FLOWGUARD_MAX_NODES": "lots"})


def test_entry_and_exit_defaults_are_shared():
    settings = PipelineSettings()

    assert settings.entry_kinds == DEFAULT_ENTRY_KINDS == (START_KIND, DEVICE_EVENT_LISTEN_KIND)
    assert settings.exit_kinds == DEFAULT_EXIT_KINDS
    assert scope.DEFAULT_ENTRY_KINDS is DEFAULT_ENTRY_KINDS
