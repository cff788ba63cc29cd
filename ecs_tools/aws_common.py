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

"""AWS client utilities with profile and region support."""

import sys
from boto3 import Session
from botocore.config import Config
from ecs_tools import __user_agent__
from ecs_tools.consts import DEFAULT_LOG_LEVEL, DEFAULT_REGION, LOG_LEVEL_ENV
from loguru import logger
from os import getenv


def get_aws_client(
    service_name: str,
    region_name: str | None = None,
    profile_name: str | None = None,
):
    """AWS Client handler with profile support.

    Args:
        service_name: AWS service name (e.g., 'ecs', 'ec2', 'logs')
        region_name: AWS region. Defaults to AWS_REGION env var, the profile's
            configured region, or us-east-1
        profile_name: AWS CLI profile name. Falls back to AWS_PROFILE env var if not specified,
            or uses default AWS credential chain

    Returns:
        boto3 client for the specified service
    """
    if profile_name is None:
        profile_name = getenv('AWS_PROFILE', None)

    if region_name is None:
        region_name = getenv('AWS_REGION', None)

    config = Config(user_agent_extra=__user_agent__)

    if profile_name:
        session = Session(profile_name=profile_name)
    else:
        session = Session()

    region = region_name or session.region_name or DEFAULT_REGION
    logger.debug(f'Creating {service_name} client in {region}')

    return session.client(service_name, region_name=region, config=config)


def configure_logging() -> None:
    """Send log records to stderr at the level named by ECS_TOOLS_LOG_LEVEL."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL),
        format='{time:YYYY/MM/DD HH:mm:ss} {level}: {message}',
    )
