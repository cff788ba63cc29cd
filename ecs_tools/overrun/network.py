# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Fargate awsvpc network configuration resolved from EC2 filters."""

from ecs_tools.consts import MAX_SECURITY_GROUPS, MAX_SUBNETS
from ecs_tools.overrun.filters import (
    FILTER_INSTANCE_ID,
    FILTER_VPC_ID,
    Filter,
    filter_string,
    to_boto_filters,
)
from enum import Enum
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Iterable, List, Optional, Sequence


class NetworkResolutionError(Exception):
    """Base error for network configuration resolution."""


class NoMatchError(NetworkResolutionError):
    """A required lookup matched nothing."""


class FilterMode(str, Enum):
    """How the network configuration is discovered."""

    CLUSTER = 'cluster'
    HOST = 'host'
    SUBNET = 'subnet'


class NetworkRequest(BaseModel):
    """Filter groups collected from --fargate:* options."""

    cluster: str
    host_filters: List[Filter] = Field(default_factory=list)
    net_filters: List[Filter] = Field(default_factory=list)
    sg_filters: List[Filter] = Field(default_factory=list)
    vpc_filters: List[Filter] = Field(default_factory=list)
    assign_public_ip: bool = False

    @property
    def mode(self) -> FilterMode:
        if self.host_filters:
            return FilterMode.HOST
        if self.net_filters:
            return FilterMode.SUBNET
        return FilterMode.CLUSTER

    @property
    def restrict_vpc(self) -> bool:
        return bool(self.vpc_filters)


class NetworkConfiguration(BaseModel):
    """Resolved awsvpc configuration for ecs:RunTask."""

    model_config = ConfigDict(frozen=True)

    subnets: List[str] = Field(..., min_length=1)
    security_groups: List[str] = Field(default_factory=list)
    assign_public_ip: bool = False

    def to_boto(self) -> Dict[str, Any]:
        """Render as the ``networkConfiguration`` parameter of ``run_task``."""
        awsvpc: Dict[str, Any] = {
            'subnets': list(self.subnets),
            'assignPublicIp': 'ENABLED' if self.assign_public_ip else 'DISABLED',
        }
        if self.security_groups:
            awsvpc['securityGroups'] = list(self.security_groups)
        return {'awsvpcConfiguration': awsvpc}


def unique_capped(ids: Iterable[str], limit: int) -> List[str]:
    """Return the first ``limit`` distinct ids in order of appearance."""
    seen: Dict[str, None] = {}
    for item in ids:
        if len(seen) >= limit:
            break
        seen.setdefault(item, None)
    return list(seen)


class NetworkResolver:
    """Resolves a NetworkRequest against the EC2 and ECS APIs.

    Every lookup is a blocking call whose result decides the next one. Errors
    raised by the clients are not caught.
    """

    def __init__(
        self,
        ec2_client,
        ecs_client,
        max_subnets: int = MAX_SUBNETS,
        max_security_groups: int = MAX_SECURITY_GROUPS,
    ):
        self.ec2 = ec2_client
        self.ecs = ecs_client
        self.max_subnets = max_subnets
        self.max_security_groups = max_security_groups

    def resolve(self, request: NetworkRequest) -> NetworkConfiguration:
        global_filters = self.vpc_restriction(request.vpc_filters) if request.restrict_vpc else []

        mode = request.mode
        logger.debug(f'Resolving Fargate network configuration by {mode.value}')
        if mode is FilterMode.HOST:
            return self.resolve_for_host(request, request.host_filters, global_filters)
        if mode is FilterMode.SUBNET:
            return self.resolve_for_net(request, request.net_filters, global_filters)
        return self.resolve_for_cluster(request, global_filters)

    def vpc_restriction(self, vpc_filters: Sequence[Filter]) -> List[Filter]:
        """Build the vpc-id filter applied to every later query.

        An explicit vpc-id filter is used as given. Otherwise the VPCs matching
        the filters are looked up; when none match, no restriction applies.
        """
        explicit = [f for f in vpc_filters if f.name == FILTER_VPC_ID]
        if explicit:
            return explicit

        response = self.ec2.describe_vpcs(Filters=to_boto_filters(vpc_filters))
        vpc_ids = [vpc['VpcId'] for vpc in response.get('Vpcs', []) if vpc.get('VpcId')]
        if not vpc_ids:
            logger.warning(
                f'No VPC matches filters {filter_string(vpc_filters)}. Not restricting by VPC.'
            )
            return []

        logger.debug(f'Restricting network lookups to VPCs {vpc_ids}')
        return [Filter(name=FILTER_VPC_ID, values=tuple(vpc_ids))]

    def security_groups_query(
        self, filters: Sequence[Filter], global_filters: Sequence[Filter]
    ) -> List[str]:
        response = self.ec2.describe_security_groups(
            Filters=to_boto_filters([*filters, *global_filters])
        )
        return [group['GroupId'] for group in response.get('SecurityGroups', [])]

    def resolve_for_cluster(
        self, request: NetworkRequest, global_filters: Sequence[Filter]
    ) -> NetworkConfiguration:
        no_instances = NoMatchError(
            f'no describable container instances running in cluster {request.cluster}. '
            'please specify --fargate:net or --fargate:host'
        )

        listed = self.ecs.list_container_instances(cluster=request.cluster)
        instance_arns = listed.get('containerInstanceArns', [])
        if not instance_arns:
            raise no_instances

        described = self.ecs.describe_container_instances(
            cluster=request.cluster, containerInstances=instance_arns
        )
        instance_ids = [
            ci['ec2InstanceId']
            for ci in described.get('containerInstances', [])
            if ci.get('ec2InstanceId')
        ]
        if not instance_ids:
            raise no_instances

        host_filter = Filter(name=FILTER_INSTANCE_ID, values=tuple(instance_ids))
        return self.resolve_for_host(request, [host_filter], global_filters)

    def resolve_for_host(
        self,
        request: NetworkRequest,
        filters: Sequence[Filter],
        global_filters: Sequence[Filter],
    ) -> NetworkConfiguration:
        query = [*filters, *global_filters]
        response = self.ec2.describe_instances(Filters=to_boto_filters(query))

        instance = self._first_instance(response.get('Reservations', []))
        # terminated instances are still listed but have no subnet
        if instance is None or not instance.get('SubnetId'):
            raise NoMatchError(f'failed to find instance matching filters: {filter_string(query)}')

        logger.info(f'Using network configuration of instance {instance.get("InstanceId")}')
        instance_groups = [group['GroupId'] for group in instance.get('SecurityGroups', [])]
        if request.sg_filters:
            groups = self.security_groups_query(request.sg_filters, global_filters)
            security_groups = unique_capped(
                [*groups, *instance_groups], self.max_security_groups
            )
        else:
            security_groups = unique_capped(instance_groups, self.max_security_groups)

        return NetworkConfiguration(
            subnets=[instance['SubnetId']],
            security_groups=security_groups,
            assign_public_ip=request.assign_public_ip,
        )

    def resolve_for_net(
        self,
        request: NetworkRequest,
        filters: Sequence[Filter],
        global_filters: Sequence[Filter],
    ) -> NetworkConfiguration:
        query = [*filters, *global_filters]
        response = self.ec2.describe_subnets(Filters=to_boto_filters(query))
        found = response.get('Subnets', [])
        if not found or not found[0].get('VpcId'):
            raise NoMatchError(f'failed to find subnet matching filters: {filter_string(query)}')

        vpc_id = found[0]['VpcId']
        in_vpc = [subnet['SubnetId'] for subnet in found if subnet.get('VpcId') == vpc_id]
        if len(in_vpc) < len(found):
            logger.warning(f'Ignoring subnets outside of {vpc_id}')
        subnets = unique_capped(in_vpc, self.max_subnets)

        security_groups: List[str] = []
        if request.sg_filters:
            groups = self.security_groups_query(request.sg_filters, global_filters)
            security_groups = unique_capped(groups, self.max_security_groups)

        return NetworkConfiguration(
            subnets=subnets,
            security_groups=security_groups,
            assign_public_ip=request.assign_public_ip,
        )

    @staticmethod
    def _first_instance(reservations: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        for reservation in reservations[:1]:
            instances = reservation.get('Instances', [])
            if instances:
                return instances[0]
        return None
