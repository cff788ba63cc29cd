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

"""CloudWatch Logs streaming for containers using the awslogs log driver."""

import sys
import threading
from botocore.exceptions import BotoCoreError, ClientError
from cachetools import LRUCache
from ecs_tools.consts import LOG_EVENT_CACHE_SIZE, LOG_POLL_SECONDS
from ecs_tools.overrun.task import task_id_from_arn
from loguru import logger
from pydantic import BaseModel
from typing import Any, Dict, Optional, TextIO


LOG_DRIVER_AWSLOGS = 'awslogs'
AWSLOGS_KEY_GROUP = 'awslogs-group'
AWSLOGS_KEY_STREAM_PREFIX = 'awslogs-stream-prefix'

ERROR_ALREADY_EXISTS = 'ResourceAlreadyExistsException'
ERROR_NOT_FOUND = 'ResourceNotFoundException'


class AwslogsError(Exception):
    """The log stream of a task cannot be located or created."""


class AwslogsLocation(BaseModel):
    """Log group and stream of one task container."""

    log_group_name: str
    log_stream_name: str


def error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def uses_awslogs(container_def: Optional[Dict[str, Any]]) -> bool:
    log_config = (container_def or {}).get('logConfiguration') or {}
    return log_config.get('logDriver') == LOG_DRIVER_AWSLOGS


def locate_awslogs_for_task(
    container_def: Optional[Dict[str, Any]], task: Optional[Dict[str, Any]]
) -> AwslogsLocation:
    """Derive the awslogs stream name of a task container.

    The stream is named ``<stream prefix>/<container name>/<task id>``.
    """
    if not uses_awslogs(container_def):
        raise AwslogsError('no awslogs stream available')

    options = container_def['logConfiguration'].get('options') or {}
    group = options.get(AWSLOGS_KEY_GROUP)
    if not group:
        raise AwslogsError(
            f'container definition log options does not contain key {AWSLOGS_KEY_GROUP}'
        )
    prefix = options.get(AWSLOGS_KEY_STREAM_PREFIX)
    if not prefix:
        raise AwslogsError(
            f'log streaming requires the container definition to define the {AWSLOGS_KEY_STREAM_PREFIX}'
        )

    if not task or not task.get('taskArn'):
        raise AwslogsError('failed to locate log stream without task arn')
    if not container_def.get('name'):
        raise AwslogsError('failed to locate log stream without container name')

    task_id = task_id_from_arn(task['taskArn'])
    return AwslogsLocation(
        log_group_name=group,
        log_stream_name=f'{prefix}/{container_def["name"]}/{task_id}',
    )


def get_or_create_stream(logs_client, location: AwslogsLocation) -> Dict[str, Any]:
    """Create the log group and stream unless they exist, then describe the stream."""
    try:
        logs_client.create_log_group(logGroupName=location.log_group_name)
    except ClientError as e:
        if error_code(e) != ERROR_ALREADY_EXISTS:
            raise

    try:
        logs_client.create_log_stream(
            logGroupName=location.log_group_name, logStreamName=location.log_stream_name
        )
    except ClientError as e:
        if error_code(e) != ERROR_ALREADY_EXISTS:
            raise

    response = logs_client.describe_log_streams(
        logGroupName=location.log_group_name,
        logStreamNamePrefix=location.log_stream_name,
    )
    streams = response.get('logStreams', [])
    if not streams:
        raise AwslogsError('failed to establish log stream')
    return streams[0]


class LogTailer(threading.Thread):
    """Prints new events of one log stream until finished.

    Events are fetched from the newest timestamp seen so far, so pages overlap;
    event IDs already printed are remembered in a bounded LRU cache.
    """

    def __init__(
        self,
        logs_client,
        location: AwslogsLocation,
        poll_seconds: float = LOG_POLL_SECONDS,
        out: Optional[TextIO] = None,
    ):
        super().__init__(name='overrun-log-tailer', daemon=True)
        self.logs = logs_client
        self.location = location
        self.poll_seconds = poll_seconds
        self.out = out or sys.stdout
        self.start_time = 0
        self.seen: LRUCache = LRUCache(maxsize=LOG_EVENT_CACHE_SIZE)
        self._stopping = threading.Event()

    def run(self) -> None:
        while not self._stopping.is_set():
            self.poll()
            self._stopping.wait(self.poll_seconds)
        self.poll()

    def poll(self) -> None:
        """Fetch and print every event not printed yet."""
        paginator = self.logs.get_paginator('filter_log_events')
        try:
            for page in paginator.paginate(
                logGroupName=self.location.log_group_name,
                logStreamNames=[self.location.log_stream_name],
                startTime=self.start_time,
            ):
                for event in page.get('events', []):
                    self._emit(event)
        except (BotoCoreError, ClientError) as e:
            if isinstance(e, ClientError) and error_code(e) == ERROR_NOT_FOUND:
                return
            logger.warning(f'log stream error: {e}')

    def _emit(self, event: Dict[str, Any]) -> None:
        event_id = event.get('eventId')
        if event_id is None or event_id in self.seen:
            return
        self.seen[event_id] = True
        print(event.get('message', ''), file=self.out, flush=True)
        timestamp = event.get('timestamp') or 0
        if timestamp > self.start_time:
            self.start_time = timestamp

    def finish(self, timeout: Optional[float] = None) -> None:
        """Fetch once more and stop."""
        self._stopping.set()
        self.join(timeout)
