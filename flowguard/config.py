# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Pipeline settings with ``FLOWGUARD_*`` environment overrides."""

from __future__ import annotations

import os
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from flowguard.kinds import DEFAULT_ENTRY_KINDS, DEFAULT_EXIT_KINDS

DEFAULT_MAX_NODES = 20


class PipelineSettings(BaseModel):
    """Knobs shared by the structural validator and the pipeline.

    ``max_nodes`` is a soft ceiling: exceeding it yields a warning only.
    ``None`` disables the check.
    """

    max_nodes: Optional[int] = Field(default=DEFAULT_MAX_NODES, ge=0)
    entry_kinds: Tuple[str, ...] = DEFAULT_ENTRY_KINDS
    exit_kinds: Tuple[str, ...] = DEFAULT_EXIT_KINDS
    clone_before_repair: bool = False

    @field_validator("entry_kinds", "exit_kinds", mode="before")
    @classmethod
    def split_kinds(cls, value):
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineSettings":
        """Build settings from ``FLOWGUARD_*`` variables.

        Raises ``ValueError`` (pydantic's ``ValidationError`` included) when a
        variable holds an unusable value.
        """

        env = os.environ if environ is None else environ
        overrides = {}

        max_nodes = env.get("FLOWGUARD_MAX_NODES")
        if max_nodes is not None:
            value = max_nodes.strip().lower()
            if value in {"", "none", "off"}:
                overrides["max_nodes"] = None
            else:
                try:
                    overrides["max_nodes"] = int(value)
                except ValueError as exc:
                    raise ValueError(
                        f"FLOWGUARD_MAX_NODES 必须是非负整数或 none/off: {max_nodes!r}"
                    ) from exc

        entry_kinds = env.get("FLOWGUARD_ENTRY_KINDS")
        if entry_kinds:
            overrides["entry_kinds"] = entry_kinds

        exit_kinds = env.get("FLOWGUARD_EXIT_KINDS")
        if exit_kinds:
            overrides["exit_kinds"] = exit_kinds

        clone = env.get("FLOWGUARD_CLONE_BEFORE_REPAIR")
        if clone is not None:
            overrides["clone_before_repair"] = clone.strip().lower() in {"1", "true", "yes", "on"}

        return cls(**overrides)


__all__ = ["DEFAULT_MAX_NODES", "PipelineSettings"]
