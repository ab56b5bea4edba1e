"""
terraspec — architecture assessment.

File: src/terraspec/architecture/assessment.py
Last updated: 2026-10-19

Purpose
- Estimate the monthly cost of the resources an architecture declares and score its
  security, availability and performance posture.

Functional requirements
- Estimates read validated attributes only; tokens and absent values fall back to defaults.
- Autoscaling groups are priced through the launch template they reference, when that
  template belongs to the same architecture.
- Each score is the share of passing checks, as a percentage rounded to two places.
  A check with nothing to inspect passes.
- Deployment validation reports every output token that points outside the architecture.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from terraspec.domain.values import NOT_PROVIDED, OutputToken
from terraspec.synthesis.references import ResourceReference

INSTANCE_MONTHLY_COST: Final[dict[str, float]] = {
    "t3.micro": 8.5,
    "t3.small": 17.0,
    "t3.medium": 34.0,
    "t3.large": 67.0,
    "c5.large": 72.0,
}
DEFAULT_INSTANCE_MONTHLY_COST: Final[float] = 50.0

DATABASE_MONTHLY_COST: Final[dict[str, float]] = {
    "db.t3.micro": 16.0,
    "db.t3.small": 32.0,
    "db.r5.large": 180.0,
}
DEFAULT_DATABASE_MONTHLY_COST: Final[float] = 80.0

FLAT_MONTHLY_COST: Final[dict[str, float]] = {
    "aws_lb": 22.0,
    "aws_elasticache_cluster": 15.0,
    "aws_cloudfront_distribution": 10.0,
}

PRODUCTION: Final[str] = "production"

Check = Callable[[Sequence[ResourceReference], object], bool]


@dataclass(frozen=True, slots=True)
class CostBreakdown:
    """Estimated monthly cost per slot plus the rounded total."""

    components: tuple[tuple[str, float], ...]
    total: float

    def to_dict(self) -> dict[str, object]:
        return {"components": dict(self.components), "total": self.total}


def estimate_instance_cost(instance_type: object) -> float:
    if isinstance(instance_type, str):
        return INSTANCE_MONTHLY_COST.get(instance_type, DEFAULT_INSTANCE_MONTHLY_COST)
    return DEFAULT_INSTANCE_MONTHLY_COST


def estimate_database_cost(instance_class: object) -> float:
    if isinstance(instance_class, str):
        return DATABASE_MONTHLY_COST.get(instance_class, DEFAULT_DATABASE_MONTHLY_COST)
    return DEFAULT_DATABASE_MONTHLY_COST


def estimate_resource_cost(
    resource: ResourceReference, index: Mapping[str, ResourceReference]
) -> float:
    """Monthly cost of one managed resource; `index` resolves referenced launch templates."""
    if resource.data_source:
        return 0.0
    attributes = resource.attributes
    resource_type = resource.resource_type
    if resource_type in FLAT_MONTHLY_COST:
        return FLAT_MONTHLY_COST[resource_type]
    if resource_type == "aws_db_instance":
        return estimate_database_cost(attributes.get_path("instance_class"))
    if resource_type == "aws_instance":
        return estimate_instance_cost(attributes.get_path("instance_type"))
    if resource_type == "aws_autoscaling_group":
        instance_type: object = NOT_PROVIDED
        template = attributes.get_path("launch_template.id")
        if isinstance(template, OutputToken) and template.resource_address in index:
            instance_type = index[template.resource_address].attributes.get_path("instance_type")
        return estimate_instance_cost(instance_type) * _count(attributes.get_path("min_size"))
    return 0.0


def cost_breakdown(slots: Mapping[str, Sequence[ResourceReference]]) -> CostBreakdown:
    index = {
        resource.address: resource for resources in slots.values() for resource in resources
    }
    components = tuple(
        (slot, round(sum(estimate_resource_cost(item, index) for item in resources), 2))
        for slot, resources in slots.items()
    )
    return CostBreakdown(
        components=components, total=round(sum(cost for _, cost in components), 2)
    )


# ---------------------------------------------------------------------------
# Posture checks
# ---------------------------------------------------------------------------


def _managed(resources: Sequence[ResourceReference], resource_type: str) -> list[Any]:
    return [
        resource.attributes
        for resource in resources
        if resource.resource_type == resource_type and not resource.data_source
    ]


def _count(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 1


def _encryption_at_rest(resources: Sequence[ResourceReference], environment: object) -> bool:
    return all(
        db.get_path("storage_encrypted") is True
        for db in _managed(resources, "aws_db_instance")
    )


def _encryption_in_transit(resources: Sequence[ResourceReference], environment: object) -> bool:
    return all(
        listener.get_path("protocol") in ("HTTPS", "TLS")
        for listener in _managed(resources, "aws_lb_listener")
    )


def _network_isolation(resources: Sequence[ResourceReference], environment: object) -> bool:
    vpcs: set[str] = set()
    for resource in resources:
        vpc = resource.attributes.get_path("vpc_id", None)
        if vpc is not None and vpc is not NOT_PROVIDED:
            vpcs.add(str(vpc))
    return len(vpcs) <= 1


def _access_controls(resources: Sequence[ResourceReference], environment: object) -> bool:
    return all(
        bool(group.get_path("ingress", ())) for group in _managed(resources, "aws_security_group")
    )


def _monitoring_enabled(resources: Sequence[ResourceReference], environment: object) -> bool:
    return all(
        template.get_path("monitoring.enabled") is True
        for template in _managed(resources, "aws_launch_template")
    )


def _multi_az(resources: Sequence[ResourceReference], environment: object) -> bool:
    subnets = _managed(resources, "aws_subnet")
    zones = {
        subnet.get_path("availability_zone")
        for subnet in subnets
        if isinstance(subnet.get_path("availability_zone"), str)
    }
    return not subnets or len(zones) > 1


def _auto_scaling(resources: Sequence[ResourceReference], environment: object) -> bool:
    groups = _managed(resources, "aws_autoscaling_group")
    return not groups or any(
        _count(group.get_path("max_size")) > _count(group.get_path("min_size"))
        for group in groups
    )


def _load_balancer_present(resources: Sequence[ResourceReference], environment: object) -> bool:
    return bool(_managed(resources, "aws_lb"))


def _database_redundancy(resources: Sequence[ResourceReference], environment: object) -> bool:
    return all(db.get_path("multi_az") is True for db in _managed(resources, "aws_db_instance"))


def _backup_strategy(resources: Sequence[ResourceReference], environment: object) -> bool:
    retention = [
        db.get_path("backup_retention_period") for db in _managed(resources, "aws_db_instance")
    ]
    return all(isinstance(days, int) and days > 0 for days in retention)


def _caching(resources: Sequence[ResourceReference], environment: object) -> bool:
    return bool(_managed(resources, "aws_elasticache_cluster"))


def _cdn(resources: Sequence[ResourceReference], environment: object) -> bool:
    return bool(_managed(resources, "aws_cloudfront_distribution"))


def _compute_sizing(resources: Sequence[ResourceReference], environment: object) -> bool:
    if environment != PRODUCTION:
        return True
    sizes = [
        attributes.get_path("instance_type")
        for resource_type in ("aws_instance", "aws_launch_template")
        for attributes in _managed(resources, resource_type)
    ]
    return not any(isinstance(size, str) and size.startswith("t") for size in sizes)


def _database_sizing(resources: Sequence[ResourceReference], environment: object) -> bool:
    if environment != PRODUCTION:
        return True
    classes = [db.get_path("instance_class") for db in _managed(resources, "aws_db_instance")]
    return not any(isinstance(size, str) and size.startswith("db.t") for size in classes)


SECURITY_CHECKS: Final[tuple[Check, ...]] = (
    _encryption_at_rest,
    _encryption_in_transit,
    _network_isolation,
    _access_controls,
    _monitoring_enabled,
)
AVAILABILITY_CHECKS: Final[tuple[Check, ...]] = (
    _multi_az,
    _auto_scaling,
    _load_balancer_present,
    _database_redundancy,
    _backup_strategy,
)
PERFORMANCE_CHECKS: Final[tuple[Check, ...]] = (
    _caching,
    _cdn,
    _compute_sizing,
    _database_sizing,
)


def score(
    checks: Sequence[Check], resources: Sequence[ResourceReference], environment: object
) -> float:
    passed = sum(1 for check in checks if check(resources, environment))
    return round(passed / len(checks) * 100, 2)


def deployment_issues(resources: Sequence[ResourceReference]) -> tuple[str, ...]:
    """`resource -> token` pairs whose token targets a resource outside `resources`."""
    known = {resource.address for resource in resources}
    issues: list[str] = []
    for resource in resources:
        for token in _tokens(resource.attributes):
            if token.resource_address not in known:
                issues.append(f"{resource.address} -> {token.address}")
    return tuple(dict.fromkeys(issues))


def _tokens(value: object) -> Iterator[OutputToken]:
    if isinstance(value, OutputToken):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from _tokens(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _tokens(item)


__all__ = [
    "AVAILABILITY_CHECKS",
    "PERFORMANCE_CHECKS",
    "SECURITY_CHECKS",
    "CostBreakdown",
    "cost_breakdown",
    "deployment_issues",
    "estimate_database_cost",
    "estimate_instance_cost",
    "estimate_resource_cost",
    "score",
]
