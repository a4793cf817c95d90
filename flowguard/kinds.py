# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Registry of node kinds accepted by the downstream builder.

The structural validator only needs a ``Callable[[str], bool]``; this registry
is the default implementation. Device kinds are registered from definitions
the caller has already loaded (no file access happens here).
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from flowguard.logging_utils import log_debug, log_warn

KindOracle = Callable[[str], bool]

START_KIND = "start"
END_KIND = "end"
VARIABLE_DEF_KIND = "variableDef"
BATCH_ASSIGN_KIND = "batchAssignValue"
SELECTOR_KIND = "selector"
DEVICE_EVENT_LISTEN_KIND = "deviceEventListen"

BUILTIN_KINDS: tuple[str, ...] = (
    START_KIND,
    END_KIND,
    VARIABLE_DEF_KIND,
    BATCH_ASSIGN_KIND,
    SELECTOR_KIND,
    DEVICE_EVENT_LISTEN_KIND,
)

# Kinds that start a run and define workflow inputs, and kinds that end one.
DEFAULT_ENTRY_KINDS: tuple[str, ...] = (START_KIND, DEVICE_EVENT_LISTEN_KIND)
DEFAULT_EXIT_KINDS: tuple[str, ...] = (END_KIND,)


class NodeKindRegistry:
    """Built-in kinds plus dynamically registered device kinds."""

    def __init__(self, kinds: Iterable[str] = BUILTIN_KINDS):
        self._definitions: Dict[str, Dict[str, Any]] = {kind: {"kind": kind} for kind in kinds}

    def register(self, kind: str, definition: Mapping[str, Any] | None = None) -> None:
        if not isinstance(kind, str) or not kind:
            raise ValueError("节点类型必须是非空字符串")
        self._definitions[kind] = dict(definition or {"kind": kind})
        log_debug(f"注册节点类型: {kind}")

    def register_definitions(self, definitions: Iterable[Mapping[str, Any]]) -> List[str]:
        """Register device kinds from already-parsed definition objects.

        Definitions without a usable ``kind`` (or ``type``) are skipped with a
        warning. Returns the kinds that were registered.
        """

        registered: List[str] = []
        for definition in definitions:
            if not isinstance(definition, Mapping):
                log_warn(f"忽略非法的节点定义: {definition!r}")
                continue
            kind = definition.get("kind") or definition.get("type")
            if not isinstance(kind, str) or not kind:
                log_warn(f"节点定义缺少 kind 字段，已忽略: {dict(definition)}")
                continue
            self.register(kind, definition)
            registered.append(kind)
        return registered

    def is_kind_supported(self, kind: str) -> bool:
        return isinstance(kind, str) and kind in self._definitions

    def definition(self, kind: str) -> Optional[Dict[str, Any]]:
        return self._definitions.get(kind)

    @property
    def kinds(self) -> List[str]:
        return list(self._definitions)

    def __contains__(self, kind: object) -> bool:
        return isinstance(kind, str) and kind in self._definitions

    def __call__(self, kind: str) -> bool:
        return self.is_kind_supported(kind)


__all__ = [
    "KindOracle",
    "NodeKindRegistry",
    "BUILTIN_KINDS",
    "DEFAULT_ENTRY_KINDS",
    "DEFAULT_EXIT_KINDS",
    "START_KIND",
    "END_KIND",
    "VARIABLE_DEF_KIND",
    "BATCH_ASSIGN_KIND",
    "SELECTOR_KIND",
    "DEVICE_EVENT_LISTEN_KIND",
]
