"""
Sample condition classification
"""

from typing import Iterable, Mapping, Optional

import pandas as pd

from ..config import ConditionConfig
from ..exceptions import ConditionClassificationError
from ..utils import get_logger

logger = get_logger(__name__)

DEFAULT_MARKERS = {"Ctrl": "Ctrl", "SLE": "SLE"}


def classify_condition(
    sample_id: str,
    markers: Optional[Mapping[str, str]] = None,
    fallback: Optional[str] = None,
) -> str:
    """
    Assign a condition label to a sample identifier

    Markers are checked in order and the first one contained in the
    identifier decides the label. An identifier matching no marker gets
    ``fallback`` when one is given, and raises otherwise.

    Args:
        sample_id: Bare sample identifier, e.g. ``"Ctrl_06"``
        markers: Ordered mapping of label -> identifying substring
        fallback: Label for identifiers that match no marker

    Returns:
        Condition label

    Raises:
        ConditionClassificationError: No marker matched and no fallback given
        ValueError: ``fallback`` is not one of the marker labels
    """
    if markers is None:
        markers = DEFAULT_MARKERS

    if fallback is not None and fallback not in markers:
        raise ValueError(f"Fallback condition '{fallback}' is not one of {list(markers)}")

    for label, marker in markers.items():
        if marker in sample_id:
            return label

    if fallback is None:
        raise ConditionClassificationError(sample_id, markers.keys())

    logger.warning(
        f"Sample '{sample_id}' matches no condition marker; defaulting to '{fallback}'"
    )
    return fallback


def build_sample_metadata(
    samples: Iterable[str],
    condition_config: Optional[ConditionConfig] = None,
) -> pd.DataFrame:
    """
    Build one metadata record per sample

    Args:
        samples: Sample identifiers, typically the count matrix columns
        condition_config: Marker map, fallback and output column name

    Returns:
        DataFrame indexed by sample with a single condition column
    """
    if condition_config is None:
        condition_config = ConditionConfig()

    samples = list(samples)
    conditions = [
        classify_condition(sample, condition_config.markers, condition_config.fallback)
        for sample in samples
    ]

    metadata = pd.DataFrame(
        {condition_config.column: conditions},
        index=pd.Index(samples, name="sample"),
    )

    counts = metadata[condition_config.column].value_counts()
    logger.info(
        "Sample conditions: "
        + ", ".join(f"{label}={counts.get(label, 0)}" for label in condition_config.labels)
    )

    return metadata
