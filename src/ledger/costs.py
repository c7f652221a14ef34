"""Cost aggregation over reprediction indices."""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

import structlog

from shared_types import SubjectKind

from .models import CostBucket
from .store import PredictionStore

logger = structlog.get_logger()


@dataclass
class IndexBuckets:
    """Costs folded into first prediction, first reprediction and the rest."""

    index0: CostBucket = field(default_factory=CostBucket)
    index1: CostBucket = field(default_factory=CostBucket)
    index2_plus: CostBucket = field(default_factory=CostBucket)
    total: CostBucket = field(default_factory=CostBucket)

    def __add__(self, other: "IndexBuckets") -> "IndexBuckets":
        return IndexBuckets(
            index0=self.index0 + other.index0,
            index1=self.index1 + other.index1,
            index2_plus=self.index2_plus + other.index2_plus,
            total=self.total + other.total,
        )


def bucket_costs(costs_by_index: Mapping[int, CostBucket]) -> IndexBuckets:
    buckets = IndexBuckets()
    for index, bucket in costs_by_index.items():
        if index == 0:
            buckets.index0 = buckets.index0 + bucket
        elif index == 1:
            buckets.index1 = buckets.index1 + bucket
        else:
            buckets.index2_plus = buckets.index2_plus + bucket
        buckets.total = buckets.total + bucket
    return buckets


@dataclass
class CostRow:
    community_context: str
    model: str
    category: SubjectKind
    buckets: IndexBuckets


@dataclass
class CostReport:
    rows: list[CostRow] = field(default_factory=list)
    by_category: dict[SubjectKind, IndexBuckets] = field(default_factory=dict)
    total: IndexBuckets = field(default_factory=IndexBuckets)


def aggregate_costs(
    store: PredictionStore,
    models: Iterable[str],
    community_contexts: Iterable[str],
    groups: Optional[Iterable[str | int]] = None,
    include_bonus: bool = False,
) -> CostReport:
    """Build the cost report across every (community context, model) pair.

    Match costs honor the group filter; bonus questions are not grouped and
    are always counted in full.
    """
    group_list = list(groups) if groups is not None else None
    model_list = list(models)
    context_list = list(community_contexts)
    categories = [SubjectKind.MATCH]
    if include_bonus:
        categories.append(SubjectKind.BONUS)

    report = CostReport(by_category={c: IndexBuckets() for c in categories})
    for community_context in context_list:
        for model in model_list:
            for category in categories:
                costs = store.costs_by_index(
                    model,
                    community_context,
                    kind=category,
                    groups=group_list if category == SubjectKind.MATCH else None,
                )
                if not costs:
                    continue
                buckets = bucket_costs(costs)
                report.rows.append(CostRow(community_context, model, category, buckets))
                report.by_category[category] = report.by_category[category] + buckets
                report.total = report.total + buckets

    report.rows.sort(key=lambda r: (r.community_context, r.model, r.category))
    logger.debug(
        "costs_aggregated",
        rows=len(report.rows),
        total_cost=report.total.total.cost,
        total_count=report.total.total.count,
    )
    return report
