"""
Condition configuration for MonoFlow samples
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ConditionConfig:
    """How sample identifiers map onto experimental conditions

    ``markers`` maps each condition label to the substring that identifies it
    in a sample identifier. Markers are tested in insertion order and the
    first hit wins. ``fallback`` names the label given to identifiers that
    match nothing; when it is ``None`` such identifiers are an error.
    """

    markers: Dict[str, str] = field(
        default_factory=lambda: {"Ctrl": "Ctrl", "SLE": "SLE"}
    )
    fallback: Optional[str] = None
    column: str = "condition"

    @property
    def labels(self) -> List[str]:
        return list(self.markers)

    def validate(self) -> List[str]:
        """Validate condition configuration"""
        issues = []

        if len(self.markers) < 2:
            issues.append("At least two condition markers must be configured")

        for label, marker in self.markers.items():
            if not marker:
                issues.append(f"Condition '{label}' has an empty marker")

        if self.fallback is not None and self.fallback not in self.markers:
            issues.append(
                f"Fallback condition '{self.fallback}' is not one of {self.labels}"
            )

        return issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "markers": dict(self.markers),
            "fallback": self.fallback,
            "column": self.column,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionConfig":
        defaults = cls()
        return cls(
            markers=dict(data.get("markers") or defaults.markers),
            fallback=data.get("fallback"),
            column=data.get("column", defaults.column),
        )
