from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .config import ConnectionProfile, ImportConfig
from .constraints import ConstraintTarget
from .db import Connector, PgSession
from .prompts import Confirmer
from .settings import Settings


@dataclass
class RunContext:
    """What every stage of one wrapper run needs: config, sessions and the operator."""

    config: ImportConfig
    settings: Settings
    connector: Connector
    maintenance: PgSession
    target: PgSession
    confirmer: Confirmer
    constraint_targets: List[ConstraintTarget] = field(default_factory=list)

    @property
    def profile(self) -> ConnectionProfile:
        return self.config.profile

    @property
    def schema(self) -> str:
        return self.config.schema
