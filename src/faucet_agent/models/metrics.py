"""Metric samples and families produced from faucet events."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union


class MetricType(Enum):
    """Metric types, numbered as in the remote write metadata enum."""
    UNKNOWN = 0
    COUNTER = 1
    GAUGE = 2
    HISTOGRAM = 3
    GAUGEHISTOGRAM = 4
    SUMMARY = 5
    INFO = 6
    STATESET = 7


LabelPairs = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class MetricSample:
    """One labelled value at a millisecond timestamp."""
    labels: LabelPairs
    value: float
    timestamp_ms: Optional[int] = None

    def __post_init__(self):
        seen = set()
        for name, _ in self.labels:
            if name == "__name__":
                raise ValueError("Label name __name__ is reserved for the metric name")
            if name in seen:
                raise ValueError(f"Duplicate label name: {name}")
            seen.add(name)

    @classmethod
    def create(
        cls,
        labels: Union[Mapping[str, str], Iterable[Tuple[str, str]]],
        value: float,
        timestamp_ms: Optional[int] = None,
    ) -> "MetricSample":
        pairs = labels.items() if isinstance(labels, Mapping) else labels
        return cls(
            labels=tuple((str(k), str(v)) for k, v in pairs),
            value=float(value),
            timestamp_ms=timestamp_ms,
        )

    def label_dict(self) -> Dict[str, str]:
        return dict(self.labels)


@dataclass
class MetricFamily:
    name: str
    type: MetricType = MetricType.UNKNOWN
    help: str = ""
    samples: List[MetricSample] = field(default_factory=list)


MetricFamilies = Dict[str, MetricFamily]
