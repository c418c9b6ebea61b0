"""Runner module - probing and discovery cycle orchestration."""

from .executor import CycleResult, DiscoveryExecutor
from .merge import merge_endpoints
from .prober import GameServerProbe, ProbeRequest, ProbeSummary
from .result_collector import RecordCollector

__all__ = [
    "CycleResult",
    "DiscoveryExecutor",
    "merge_endpoints",
    "GameServerProbe",
    "ProbeRequest",
    "ProbeSummary",
    "RecordCollector",
]
