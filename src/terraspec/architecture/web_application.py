"""
terraspec — bundled web application architecture.

File: src/terraspec/architecture/web_application.py
Last updated: 2026-10-19

Purpose
- Compose the `web_application` catalog schema into a VPC, security group, load balancer,
  auto-scaling compute tier and the optional database, cache and alarm tiers.

Functional requirements
- The schema's own tier defaults are layered over the engine's built-in environment table.
- Tiers run in order: network, security, load_balancer, compute, database, cache, monitoring.
- `database` follows `database_enabled`, `cache` follows `enable_caching`, and `monitoring`
  follows `monitoring.enable_alerting`.
- `load_balancer` terminates TLS with `ssl_certificate_arn`, or with a DNS-validated
  certificate it requests when none is given.
- Declared outputs resolve to `None` when the tier producing them is disabled. The
  estimated monthly cost and the capability flags are recomputed with the outputs.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Mapping
from itertools import islice
from typing import Any, Final

from terraspec.architecture.composer import Tier
from terraspec.architecture.reference import ArchitectureReference
from terraspec.schema.attributes import ValidatedAttributes
from terraspec.schema.catalog import SchemaCatalog
from terraspec.schema.fields import AttributeSchema
from terraspec.synthesis.environment import BUILTIN_ENVIRONMENT_DEFAULTS
from terraspec.synthesis.references import ResourceReference
from terraspec.synthesis.session import SynthesisSession

ARCHITECTURE_TYPE: Final[str] = "web_application"
AMI_OWNERS: Final[tuple[str, ...]] = ("amazon",)
AMI_NAME_FILTER: Final[str] = "al2023-ami-*-x86_64"
HTTP_PORTS: Final[tuple[int, ...]] = (80, 443)
CACHE_PORT: Final[int] = 6379
TLS_POLICY: Final[str] = "ELBSecurityPolicy-TLS13-1-2-2021-06"


def _slug(name: str, suffix: str = "", *, limit: int = 32) -> str:
    """Lower-case, hyphenated name usable where providers reject underscores."""
    base = re.sub(r"[^a-z0-9-]+", "-", name.lower()).strip("-")
    if not base or not base[0].isalpha():
        base = f"app-{base}".rstrip("-")
    tail = f"-{suffix}" if suffix else ""
    return f"{base[: max(1, limit - len(tail))].rstrip('-')}{tail}"


def _tags(name: str, attributes: ValidatedAttributes) -> dict[str, str]:
    tags = {
        "Application": name,
        "Environment": str(attributes.environment),
        "ManagedBy": "terraspec",
    }
    tags.update(attributes.tags)
    return tags


def _as_int(value: object) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def web_application_schema(catalog: SchemaCatalog | None = None) -> AttributeSchema:
    """Catalog schema with its tier defaults layered over the built-in table."""
    schema = (catalog or SchemaCatalog.builtin()).get(ARCHITECTURE_TYPE)
    return schema.with_environment_defaults(
        BUILTIN_ENVIRONMENT_DEFAULTS.layered(schema.environment_defaults)
    )


def web_application_tiers(
    session: SynthesisSession, name: str, catalog: SchemaCatalog
) -> list[Tier]:
    def network(ref: ArchitectureReference, attrs: ValidatedAttributes) -> dict[str, Any]:
        vpc = session.resource(
            "aws_vpc",
            name,
            catalog.get("aws_vpc"),
            {"cidr_block": attrs.vpc_cidr, "tags": _tags(name, attrs)},
        )
        cidr = ipaddress.ip_network(attrs.vpc_cidr, strict=False)
        zones = list(attrs.availability_zones)
        new_prefix = min(cidr.prefixlen + 8, 28)
        blocks = list(islice(cidr.subnets(new_prefix=new_prefix), len(zones)))
        if len(blocks) < len(zones):
            raise ValueError(f"{attrs.vpc_cidr} cannot hold {len(zones)} /{new_prefix} subnets")
        subnets: dict[str, ResourceReference] = {}
        for zone, block in zip(zones, blocks, strict=True):
            subnets[zone] = session.resource(
                "aws_subnet",
                f"{name}_{zone.replace('-', '_')}",
                catalog.get("aws_subnet"),
                {
                    "vpc_id": vpc,
                    "cidr_block": str(block),
                    "availability_zone": zone,
                    "map_public_ip_on_launch": True,
                    "tags": _tags(name, attrs),
                },
            )
        return {"vpc": vpc, "subnets": subnets}

    def security(ref: ArchitectureReference, attrs: ValidatedAttributes) -> ResourceReference:
        vpc = ref["network"]["vpc"]
        return session.resource(
            "aws_security_group",
            name,
            catalog.get("aws_security_group"),
            {
                "name": _slug(name, "web", limit=255),
                "description": f"Web traffic for {attrs.domain_name}",
                "vpc_id": vpc,
                "ingress": [
                    {"from_port": port, "to_port": port, "cidr_blocks": ["0.0.0.0/0"]}
                    for port in HTTP_PORTS
                ],
                "egress": [
                    {"from_port": 0, "to_port": 0, "protocol": "-1", "cidr_blocks": ["0.0.0.0/0"]}
                ],
                "tags": _tags(name, attrs),
            },
        )

    def load_balancer(ref: ArchitectureReference, attrs: ValidatedAttributes) -> dict[str, Any]:
        components: dict[str, Any] = {}
        certificate_arn = attrs.ssl_certificate_arn
        if not attrs.is_provided("ssl_certificate_arn"):
            certificate = session.resource(
                "aws_acm_certificate",
                name,
                catalog.get("aws_acm_certificate"),
                {"domain_name": attrs.domain_name, "tags": _tags(name, attrs)},
            )
            certificate_arn = certificate.output("arn")
            components["certificate"] = certificate
        balancer = session.resource(
            "aws_lb",
            name,
            catalog.get("aws_lb"),
            {
                "name": _slug(name, "lb"),
                "security_groups": [ref["security"]],
                "subnets": list(ref["network"]["subnets"].values()),
                "enable_deletion_protection": attrs.environment == "production",
                "tags": _tags(name, attrs),
            },
        )
        target_group = session.resource(
            "aws_lb_target_group",
            name,
            catalog.get("aws_lb_target_group"),
            {
                "name": _slug(name, "tg"),
                "port": HTTP_PORTS[0],
                "vpc_id": ref["network"]["vpc"],
                "tags": _tags(name, attrs),
            },
        )
        listener = session.resource(
            "aws_lb_listener",
            f"{name}_https",
            catalog.get("aws_lb_listener"),
            {
                "load_balancer_arn": balancer.output("arn"),
                "port": HTTP_PORTS[1],
                "protocol": "HTTPS",
                "ssl_policy": TLS_POLICY,
                "certificate_arn": certificate_arn,
                "default_action": [
                    {"type": "forward", "target_group_arn": target_group.output("arn")}
                ],
            },
        )
        components.update(balancer=balancer, target_group=target_group, listener=listener)
        return components

    def compute(ref: ArchitectureReference, attrs: ValidatedAttributes) -> dict[str, Any]:
        ami = session.data_source(
            "aws_ami",
            name,
            catalog.get("aws_ami"),
            {
                "owners": list(AMI_OWNERS),
                "filter": [{"name": "name", "values": [AMI_NAME_FILTER]}],
            },
        )
        template = session.resource(
            "aws_launch_template",
            name,
            catalog.get("aws_launch_template"),
            {
                "name_prefix": f"{_slug(name)}-",
                "image_id": ami.output("image_id"),
                "instance_type": attrs.instance_type,
                "vpc_security_group_ids": [ref["security"]],
                "monitoring": {"enabled": attrs.get_path("monitoring.detailed_monitoring")},
                "tags": _tags(name, attrs),
            },
        )
        group = session.resource(
            "aws_autoscaling_group",
            name,
            catalog.get("aws_autoscaling_group"),
            {
                "name": _slug(name, "asg", limit=255),
                "min_size": attrs.get_path("auto_scaling.min"),
                "max_size": attrs.get_path("auto_scaling.max"),
                "desired_capacity": attrs.get_path("auto_scaling.desired"),
                "vpc_zone_identifier": list(ref["network"]["subnets"].values()),
                "target_group_arns": [ref["load_balancer"]["target_group"].output("arn")],
                "health_check_type": "ELB",
                "launch_template": {
                    "id": template,
                    "version": template.output("latest_version"),
                },
                "tag": [
                    {"key": key, "value": value}
                    for key, value in sorted(_tags(name, attrs).items())
                ],
            },
        )
        return {"ami": ami, "launch_template": template, "autoscaling_group": group}

    def database(ref: ArchitectureReference, attrs: ValidatedAttributes) -> dict[str, Any]:
        subnet_group = session.resource(
            "aws_db_subnet_group",
            name,
            catalog.get("aws_db_subnet_group"),
            {
                "name": _slug(name, "db", limit=255),
                "subnet_ids": list(ref["network"]["subnets"].values()),
                "tags": _tags(name, attrs),
            },
        )
        production = attrs.environment == "production"
        instance = session.resource(
            "aws_db_instance",
            name,
            catalog.get("aws_db_instance"),
            {
                "identifier": _slug(name, "db", limit=63),
                "engine": attrs.database_engine,
                "instance_class": attrs.database_instance_class,
                "allocated_storage": attrs.database_allocated_storage,
                "multi_az": attrs.high_availability,
                "backup_retention_period": attrs.get_path("backup.retention_days"),
                "db_subnet_group_name": subnet_group.output("name"),
                "vpc_security_group_ids": [ref["security"]],
                "skip_final_snapshot": not production,
                "tags": _tags(name, attrs),
            },
        )
        return {"subnet_group": subnet_group, "instance": instance}

    def cache(ref: ArchitectureReference, attrs: ValidatedAttributes) -> ResourceReference:
        return session.resource(
            "aws_elasticache_cluster",
            name,
            catalog.get("aws_elasticache_cluster"),
            {
                "cluster_id": _slug(name, "cache", limit=40),
                "node_type": attrs.cache_node_type,
                "port": CACHE_PORT,
                "security_group_ids": [ref["security"]],
                "tags": _tags(name, attrs),
            },
        )

    def monitoring(ref: ArchitectureReference, attrs: ValidatedAttributes) -> dict[str, Any]:
        group = ref["compute"]["autoscaling_group"]
        cpu_high = session.resource(
            "aws_cloudwatch_metric_alarm",
            f"{name}_cpu_high",
            catalog.get("aws_cloudwatch_metric_alarm"),
            {
                "alarm_name": _slug(name, "cpu-high", limit=255),
                "comparison_operator": "GreaterThanOrEqualToThreshold",
                "evaluation_periods": 2,
                "metric_name": "CPUUtilization",
                "namespace": "AWS/EC2",
                "threshold": attrs.get_path("monitoring.cpu_alarm_threshold"),
                "alarm_description": f"CPU utilization for {attrs.domain_name}",
                "dimensions": {"AutoScalingGroupName": group.output("name")},
            },
        )
        return {"cpu_high": cpu_high}

    return [
        Tier("network", network),
        Tier("security", security),
        Tier("load_balancer", load_balancer),
        Tier("compute", compute),
        Tier("database", database, enabled="database_enabled"),
        Tier("cache", cache, enabled="enable_caching"),
        Tier("monitoring", monitoring, enabled="monitoring.enable_alerting"),
    ]


def web_application_outputs(ref: ArchitectureReference) -> Mapping[str, object]:
    def pick(slot: str, *path: str) -> Any:
        if slot not in ref:
            return None
        value: Any = ref[slot]
        for key in path:
            value = value[key]
        return value

    attrs = ref.attributes
    vpc = pick("network", "vpc")
    database = pick("database", "instance")
    cache = pick("cache")
    load_balancer = pick("load_balancer", "balancer")
    return {
        "application_url": f"https://{attrs.domain_name}",
        "vpc_id": vpc.id if vpc is not None else None,
        "load_balancer_dns": (
            load_balancer.output("dns_name") if load_balancer is not None else None
        ),
        "database_endpoint": database.output("endpoint") if database is not None else None,
        "cache_endpoint": (
            cache.output("configuration_endpoint") if cache is not None else None
        ),
        "estimated_monthly_cost": ref.estimated_monthly_cost(),
        "capabilities": {
            "high_availability": len(attrs.availability_zones) >= 2,
            "auto_scaling": _as_int(attrs.get_path("auto_scaling.max"))
            > _as_int(attrs.get_path("auto_scaling.min")),
            "caching": cache is not None,
            "ssl_termination": "load_balancer" in ref,
            "monitoring": "monitoring" in ref,
            "backup": database is not None
            and _as_int(database.attributes.backup_retention_period) > 0,
        },
    }


def build_web_application(
    session: SynthesisSession,
    name: str,
    raw: Mapping[str, object] | None = None,
    *,
    catalog: SchemaCatalog | None = None,
) -> ArchitectureReference:
    """Compose a `web_application` named `name` inside `session`."""
    catalog = catalog or SchemaCatalog.builtin()
    return session.architecture(
        ARCHITECTURE_TYPE,
        name,
        web_application_schema(catalog),
        web_application_tiers(session, name, catalog),
        raw,
        outputs=web_application_outputs,
    )


__all__ = [
    "ARCHITECTURE_TYPE",
    "build_web_application",
    "web_application_outputs",
    "web_application_schema",
    "web_application_tiers",
]
