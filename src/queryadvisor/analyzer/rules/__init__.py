"""
Recommendation rules.

Importing this package registers every rule. Module order here is the
order rules run in for each plan node.
"""

from queryadvisor.analyzer.rules.base import Rule, RuleConfig
from queryadvisor.analyzer.rules.access import AccessPath, FullScan
from queryadvisor.analyzer.rules.joins import InefficientJoin, JoinBuffer
from queryadvisor.analyzer.rules.memory import HashSpill, TemporaryStructure
from queryadvisor.analyzer.rules.sorting import ExternalSort
from queryadvisor.analyzer.rules.indexes import IndexUsage
from queryadvisor.analyzer.rules.statistics import TableStatistics
from queryadvisor.analyzer.rules.structure import QueryStructure, SubqueryShape
from queryadvisor.analyzer.rules.partitioning import PartitionEffectiveness
from queryadvisor.analyzer.rules.parallelism import Parallelism
from queryadvisor.analyzer.rules.materialization import Materialization
from queryadvisor.analyzer.rules.grouping import Grouping, LooseIndexScan

__all__ = [
    "Rule",
    "RuleConfig",
    # Individual rules, in evaluation order
    "FullScan",
    "AccessPath",
    "InefficientJoin",
    "JoinBuffer",
    "HashSpill",
    "TemporaryStructure",
    "ExternalSort",
    "IndexUsage",
    "TableStatistics",
    "QueryStructure",
    "SubqueryShape",
    "PartitionEffectiveness",
    "Parallelism",
    "Materialization",
    "Grouping",
    "LooseIndexScan",
]
