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

"""Defines constants used across the tools."""

import os
from loguru import logger


def _int_from_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        logger.warning(
            f'Invalid value for {name} environment variable. Using default value of {default}.'
        )
        return default


def _float_from_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        logger.warning(
            f'Invalid value for {name} environment variable. Using default value of {default}.'
        )
        return default


# AWS defaults
DEFAULT_REGION = 'us-east-1'

# Logging
LOG_LEVEL_ENV = 'ECS_TOOLS_LOG_LEVEL'
DEFAULT_LOG_LEVEL = 'INFO'

# awsvpc configuration limits accepted by ecs:RunTask
MAX_SUBNETS = _int_from_env('ECS_TOOLS_MAX_SUBNETS', 10)
MAX_SECURITY_GROUPS = _int_from_env('ECS_TOOLS_MAX_SECURITY_GROUPS', 10)

# Log tailing
LOG_POLL_SECONDS = _float_from_env('ECS_TOOLS_LOG_POLL_SECONDS', 2.0)
LOG_EVENT_CACHE_SIZE = 10000

# SSM
SSM_PAGE_SIZE = 10
SSM_DELETE_BATCH_SIZE = 10
SECURE_STRING_KEY_ID_SUFFIX = '_SecureStringKeyId'

# ecs tasks_stopped waiter, polled every TASK_WAIT_DELAY_SECONDS
TASK_WAIT_DELAY_SECONDS = 6
TASK_WAIT_MAX_ATTEMPTS = _int_from_env('ECS_TOOLS_TASK_WAIT_MAX_ATTEMPTS', 100)
