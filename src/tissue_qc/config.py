"""
Audit configuration.

Environment flags
----------------------------------------
TISSUE_QC_MISSING_BASIS=flag|skip : how the value checker treats (Code, Parameter)
                                    groups that lack one or more weight bases.
TISSUE_QC_PARAMETERS=<path>       : optional parameter registry file (one name per
                                    line). When unset the registry is open.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from .predicate import DEFAULT_SUSPECT_PREDICATE, SuspectRecordPredicate
from .records import ParameterRegistry


class MissingBasisPolicy(Enum):
    """
    FLAG: a group missing a basis is reported, since comparisons against a
          missing mean are false. This keeps the long-standing behavior.
    SKIP: a group missing a basis is not applicable and never reported.
    """
    FLAG = "flag"
    SKIP = "skip"

    @classmethod
    def from_label(cls, label: str) -> "MissingBasisPolicy":
        key = str(label).strip().lower()
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown missing-basis policy: {label!r} (expected 'flag' or 'skip')")


@dataclass(frozen=True)
class AuditConfig:
    missing_basis: MissingBasisPolicy = MissingBasisPolicy.FLAG
    predicate: SuspectRecordPredicate = DEFAULT_SUSPECT_PREDICATE
    registry: ParameterRegistry = field(default_factory=ParameterRegistry)

    @classmethod
    def from_env(cls) -> "AuditConfig":
        """Build a config from TISSUE_QC_* environment variables, falling back to defaults."""
        config = cls()
        policy = os.getenv("TISSUE_QC_MISSING_BASIS")
        if policy:
            config = replace(config, missing_basis=MissingBasisPolicy.from_label(policy))
        registry_path = os.getenv("TISSUE_QC_PARAMETERS")
        if registry_path:
            config = replace(config, registry=ParameterRegistry.from_file(registry_path))
        return config

    def with_overrides(
        self,
        missing_basis: Optional[str] = None,
        parameters_path: Optional[str] = None,
    ) -> "AuditConfig":
        """Apply CLI-level overrides on top of this config."""
        config = self
        if missing_basis:
            config = replace(config, missing_basis=MissingBasisPolicy.from_label(missing_basis))
        if parameters_path:
            config = replace(config, registry=ParameterRegistry.from_file(parameters_path))
        return config
