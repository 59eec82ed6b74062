"""AWS inventory sources: RDS instances, DynamoDB tables and ElastiCache nodes.

All three share the same options:

    regions            : regions to scan (default: every region the service offers)
    access_key_id      : static credentials; both keys or neither
    secret_access_key  :

Without static credentials boto3's default chain (env, profile, instance
role) applies.
"""

from __future__ import annotations

from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from alert_spine.core.errors import SourceError
from alert_spine.core.logging import get_logger
from alert_spine.domain.models import HostContext, freeze_host
from alert_spine.framework.registry import ComponentContext, host_sources

logger = get_logger(__name__)


class AwsHostSource:
    """Base class: credentials, region list and per-region client creation."""

    service_name = ""
    source_name = ""

    def __init__(self, options: dict[str, Any], context: ComponentContext | None = None):
        self.context = context or ComponentContext()
        session_kwargs: dict[str, Any] = {}
        if options.get("access_key_id") and options.get("secret_access_key"):
            session_kwargs["aws_access_key_id"] = options["access_key_id"]
            session_kwargs["aws_secret_access_key"] = options["secret_access_key"]
        self.session = boto3.session.Session(**session_kwargs)
        self.regions = list(options.get("regions") or []) or self.session.get_available_regions(
            self.service_name
        )

    def client(self, region: str) -> Any:
        return self.session.client(self.service_name, region_name=region)

    def list_hosts(self) -> list[HostContext]:
        hosts: list[HostContext] = []
        for region in self.regions:
            if self.context.shutdown.requested:
                break
            try:
                records = self.list_region(region)
            except (BotoCoreError, ClientError) as e:
                raise SourceError(
                    f"Failed to list {self.service_name} resources in {region}: {e}", cause=e
                ).with_context(source_name=self.source_name, region=region) from e
            hosts.extend(freeze_host({"source": self.source_name, "region": region, **r}) for r in records)
            logger.debug("aws_region_listed", source=self.source_name, region=region, count=len(records))
        return hosts

    def list_region(self, region: str) -> list[dict[str, Any]]:
        raise NotImplementedError


def _csv(value: str | None) -> list[str]:
    return [item for item in (value or "").split(",") if item]


@host_sources.register("aws_rds")
class AwsRdsHostSource(AwsHostSource):
    """One record per RDS instance; ``owners``/``owner_groups``/``db_env``/``db_role`` come from tags."""

    service_name = "rds"
    source_name = "aws_rds"

    def list_region(self, region: str) -> list[dict[str, Any]]:
        rds = self.client(region)
        records = []
        for page in rds.get_paginator("describe_db_instances").paginate():
            for instance in page["DBInstances"]:
                tag_list = rds.list_tags_for_resource(ResourceName=instance["DBInstanceArn"])["TagList"]
                tags = {tag["Key"]: tag["Value"] for tag in tag_list}
                replicas = instance.get("ReadReplicaDBInstanceIdentifiers") or []
                replica_source = instance.get("ReadReplicaSourceDBInstanceIdentifier")
                records.append(
                    {
                        "instance_id": instance["DBInstanceIdentifier"],
                        "db_name": instance.get("DBName"),
                        "engine": instance.get("Engine"),
                        "engine_version": instance.get("EngineVersion"),
                        "allocated_storage": instance.get("AllocatedStorage"),
                        "iops": instance.get("Iops"),
                        "is_replica": replica_source is not None,
                        "replica_source_name": replica_source,
                        "replica_names": ",".join(replicas),
                        "replicas": len(replicas),
                        "owners": _csv(tags.get("owners")),
                        "owner_groups": _csv(tags.get("owner_groups")),
                        "db_env": tags.get("db_env"),
                        "db_role": tags.get("db_role"),
                    }
                )
        return records


@host_sources.register("aws_dynamo")
class AwsDynamoHostSource(AwsHostSource):
    """One record per DynamoDB table with its provisioned capacity."""

    service_name = "dynamodb"
    source_name = "aws_dynamo"

    def list_region(self, region: str) -> list[dict[str, Any]]:
        dynamo = self.client(region)
        records = []
        for page in dynamo.get_paginator("list_tables").paginate():
            for table_name in page["TableNames"]:
                table = dynamo.describe_table(TableName=table_name)["Table"]
                throughput = table.get("ProvisionedThroughput") or {}
                records.append(
                    {
                        "table_name": table_name,
                        "read_capacity": throughput.get("ReadCapacityUnits"),
                        "write_capacity": throughput.get("WriteCapacityUnits"),
                        "owners": [],
                        "owner_groups": [],
                    }
                )
        return records


@host_sources.register("aws_elasticache")
class AwsElasticacheHostSource(AwsHostSource):
    """One record per ElastiCache cache node."""

    service_name = "elasticache"
    source_name = "aws_elasticache"

    def list_region(self, region: str) -> list[dict[str, Any]]:
        elasticache = self.client(region)
        records = []
        paginator = elasticache.get_paginator("describe_cache_clusters")
        for page in paginator.paginate(ShowCacheNodeInfo=True):
            for cluster in page["CacheClusters"]:
                for node in cluster.get("CacheNodes") or []:
                    records.append(
                        {
                            "cluster_id": cluster["CacheClusterId"],
                            "cluster_status": cluster.get("CacheClusterStatus"),
                            "node_type": cluster.get("CacheNodeType"),
                            "peer_nodes": cluster.get("NumCacheNodes"),
                            "node_status": node.get("CacheNodeStatus"),
                            "owners": [],
                            "owner_groups": [],
                        }
                    )
        return records


__all__ = ["AwsRdsHostSource", "AwsDynamoHostSource", "AwsElasticacheHostSource"]
