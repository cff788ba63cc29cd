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

"""Pydantic models for overrun."""

from ecs_tools.overrun.filters import Filter
from ecs_tools.overrun.network import NetworkRequest
from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class OverrunArgs(BaseModel):
    """Parsed overrun command line."""

    profile: Optional[str] = None
    region: Optional[str] = None
    task_def: str
    cluster: str
    container_name: Optional[str] = None

    dry_run: bool = False
    stream_log: bool = False
    wait_stopped: bool = False

    env_overrides: Dict[str, str] = Field(default_factory=dict)
    cpu: int = Field(default=0, ge=0)
    memory: int = Field(default=0, ge=0)
    memory_reservation: int = Field(default=0, ge=0)
    exec_role_arn: Optional[str] = None
    task_role_arn: Optional[str] = None

    shell_prefix: str = ''
    no_shell: bool = False

    launch_fargate: bool = False
    net_filters: List[Filter] = Field(default_factory=list)
    host_filters: List[Filter] = Field(default_factory=list)
    sg_filters: List[Filter] = Field(default_factory=list)
    vpc_filters: List[Filter] = Field(default_factory=list)
    net_public_ip: bool = False

    overrides_cmd: bool = False
    cmd_override: List[str] = Field(default_factory=list)

    def network_request(self) -> NetworkRequest:
        return NetworkRequest(
            cluster=self.cluster,
            host_filters=self.host_filters,
            net_filters=self.net_filters,
            sg_filters=self.sg_filters,
            vpc_filters=self.vpc_filters,
            assign_public_ip=self.net_public_ip,
        )
