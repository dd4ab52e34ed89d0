"""
Core configuration management for MonoFlow
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..utils.validation import (validate_count_table, validate_directory_exists,
                                validate_lookup_file)
from .sample_config import ConditionConfig

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Main configuration class for a MonoFlow analysis"""

    # General settings
    project_name: str = "SLE_Monocyte_RNAseq"

    # Input/Output paths
    counts_file: Optional[str] = None
    output_dir: Optional[str] = "monoflow_results"

    # Stage parameters
    counts: Dict[str, Any] = field(default_factory=dict)
    conditions: Dict[str, Any] = field(default_factory=dict)
    differential: Dict[str, Any] = field(default_factory=dict)
    exploration: Dict[str, Any] = field(default_factory=dict)
    annotation: Dict[str, Any] = field(default_factory=dict)
    visualization: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Fill in defaults for any section key left unset"""
        self.counts = {**self._get_default_counts(), **(self.counts or {})}
        self.conditions = {**self._get_default_conditions(), **(self.conditions or {})}
        self.differential = _merge_differential(
            self._get_default_differential(), self.differential or {}
        )
        self.exploration = {
            **self._get_default_exploration(),
            **(self.exploration or {}),
        }
        self.annotation = {**self._get_default_annotation(), **(self.annotation or {})}
        self.visualization = {
            **self._get_default_visualization(),
            **(self.visualization or {}),
        }

    def _get_default_counts(self) -> Dict[str, Any]:
        """Default featureCounts parsing configuration"""
        return {
            "comment": "#",
            "annotation_columns": ["Chr", "Start", "End", "Strand", "Length"],
            "sample_suffixes": [".bam"],
            "sample_patterns": [r"[._]?Aligned\.sortedByCoord\.out$"],
        }

    def _get_default_conditions(self) -> Dict[str, Any]:
        """Default condition classification configuration"""
        return ConditionConfig().to_dict()

    def _get_default_differential(self) -> Dict[str, Any]:
        """Default differential expression configuration"""
        return {
            "comparison": {
                "name": "SLE_vs_Ctrl",
                "control": "Ctrl",
                "treatment": "SLE",
            },
            "fdr_threshold": 0.05,
            "logfc_threshold": 1.0,
            "min_replicates": 2,
            "refit_cooks": True,
            "cooks_filter": True,
            "independent_filter": True,
            "n_cpus": 1,
        }

    def _get_default_exploration(self) -> Dict[str, Any]:
        """Default exploratory projection configuration"""
        return {
            "n_top_genes": 500,
            "n_components": 2,
            "correlation_method": "pearson",
        }

    def _get_default_annotation(self) -> Dict[str, Any]:
        """Default gene symbol lookup configuration"""
        return {
            "enabled": True,
            "lookup_file": None,
            "biomart_url": "https://www.ensembl.org/biomart/martservice",
            "dataset": "hsapiens_gene_ensembl",
            "cache_dir": None,
            "timeout": 60,
        }

    def _get_default_visualization(self) -> Dict[str, Any]:
        """Default plotting configuration"""
        return {
            "p_cutoff": 0.05,
            "lfc_cutoff": 1.0,
            "ma_ylim": None,
            "volcano_xlim": None,
            "volcano_ylim": None,
            "label_top_genes": 10,
            "dpi": 300,
            "save_formats": ["png"],
        }

    @property
    def condition_config(self) -> ConditionConfig:
        return ConditionConfig.from_dict(self.conditions)


def _merge_differential(
    defaults: Dict[str, Any], user: Dict[str, Any]
) -> Dict[str, Any]:
    """Merge user settings over defaults, one level into the comparison"""
    merged = {**defaults, **user}
    user_comparison = user.get("comparison") or {}

    comparison = {**defaults["comparison"], **user_comparison}
    if "name" not in user_comparison:
        comparison["name"] = f"{comparison['treatment']}_vs_{comparison['control']}"
    merged["comparison"] = comparison

    return merged


def load_config(config_file: Union[str, Path]) -> Config:
    """Load configuration from YAML or JSON file"""
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        if config_path.suffix.lower() in [".yaml", ".yml"]:
            config_dict = yaml.safe_load(f) or {}
        elif config_path.suffix.lower() == ".json":
            config_dict = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {config_path.suffix}")

    return Config(**config_dict)


def config_to_dict(config: Config) -> Dict[str, Any]:
    return asdict(config)


def save_config(config: Config, output_file: Union[str, Path]) -> None:
    """Save configuration to a YAML or JSON file, chosen by suffix"""
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config_to_dict(config)

    with open(output_path, "w") as f:
        if output_path.suffix.lower() == ".json":
            json.dump(config_dict, f, indent=2)
        else:
            yaml.safe_dump(
                config_dict, f, default_flow_style=False, indent=2, sort_keys=False
            )

    logger.info(f"Configuration saved to {output_path}")


def validate_config(config: Config) -> List[str]:
    """Validate configuration and return list of issues"""
    issues = []

    if config.counts_file:
        issues.extend(
            validate_count_table(
                config.counts_file,
                comment=config.counts.get("comment", "#"),
                annotation_columns=config.counts.get("annotation_columns", []),
            )
        )

    if config.output_dir and not validate_directory_exists(
        config.output_dir, create_if_missing=True
    ):
        issues.append(f"Cannot create output directory: {config.output_dir}")

    issues.extend(config.condition_config.validate())

    comparison = config.differential.get("comparison", {})
    if not all(k in comparison for k in ["control", "treatment", "name"]):
        issues.append("Comparison must have 'control', 'treatment', and 'name'")
    else:
        labels = config.condition_config.labels
        for role in ("control", "treatment"):
            if comparison[role] not in labels:
                issues.append(
                    f"Comparison {role} '{comparison[role]}' is not a condition label"
                )
        if comparison["control"] == comparison["treatment"]:
            issues.append("Comparison control and treatment must differ")

    fdr = config.differential.get("fdr_threshold", 0.05)
    if not 0 < fdr < 1:
        issues.append("FDR threshold must be between 0 and 1")

    if config.differential.get("min_replicates", 2) < 2:
        issues.append("At least 2 replicates per condition are required")

    if config.exploration.get("n_top_genes", 500) <= 0:
        issues.append("Number of top-variance genes must be positive")

    lookup_file = config.annotation.get("lookup_file")
    if lookup_file:
        issues.extend(validate_lookup_file(lookup_file))

    return issues


def get_default_config() -> Config:
    """Get default configuration object"""
    return Config()
