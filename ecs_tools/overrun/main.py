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

"""overrun: run a one-off ECS task with container overrides."""

import argparse
import json
import signal
import sys
from botocore.exceptions import BotoCoreError, ClientError
from ecs_tools.aws_common import configure_logging, get_aws_client
from ecs_tools.consts import TASK_WAIT_DELAY_SECONDS, TASK_WAIT_MAX_ATTEMPTS
from ecs_tools.overrun.awslogs import (
    AwslogsError,
    LogTailer,
    get_or_create_stream,
    locate_awslogs_for_task,
    uses_awslogs,
)
from ecs_tools.overrun.environment import (
    EnvOverrideError,
    env_list_to_dict,
    parse_env_file,
    validate_env,
)
from ecs_tools.overrun.filters import FILTER_TAG_NAME, Filter, parse_ec2_filter
from ecs_tools.overrun.models import OverrunArgs
from ecs_tools.overrun.network import NetworkResolutionError, NetworkResolver
from ecs_tools.overrun.task import (
    TaskConfigurationError,
    build_run_task_input,
    container_exit_code,
    select_container_definition,
)
from loguru import logger
from typing import List, Optional, Sequence


FARGATE_HELP = """
FARGATE: any of the following options implies the FARGATE launch type.
  Filter options consume the tokens that follow them until the next token
  starting with '-'. A token may be Name=<name>,Values=<v1,v2>, <name>=<v1,v2>,
  an i-, subnet-, vpc- or sg- resource ID, or a value for tag:Name.
  A lone '-' or a '-' token containing a space is read as a filter, not as
  an option, and is rejected as invalid.

  -f:ip   | --fargate:ip    request a public IP address for the task
  -f:net  | --fargate:net   choose subnets by ID or tag; the VPC default
                            security group is used unless -f:sg is given
  -f:host | --fargate:host  copy subnet and security groups of an EC2 instance
  -f:sg   | --fargate:sg    security groups to attach, by sg- ID or tag
  -f:vpc  | --fargate:vpc   restrict all lookups to matching VPCs

  With none of -f:net or -f:host, the network configuration of the first
  container instance of the cluster is used.

  -- <command> [ <arg> ... ] overrides the container command.
"""

STOP_REASON = 'overrun SIGINT'


def _filter_arg(token: str) -> Filter:
    parsed = parse_ec2_filter(token, FILTER_TAG_NAME)
    if parsed is None:
        raise argparse.ArgumentTypeError(f'invalid filter: "{token}"')
    return parsed


def _env_arg(entry: str) -> str:
    try:
        return validate_env(entry)
    except EnvOverrideError as e:
        raise argparse.ArgumentTypeError(str(e))


def _env_file_arg(path: str) -> List[str]:
    try:
        return parse_env_file(path)
    except (OSError, EnvOverrideError) as e:
        raise argparse.ArgumentTypeError(f'{path}: {e}')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='overrun',
        description='Run a one-off ECS task based on an existing task definition.',
        epilog=FARGATE_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument('-p', '--profile', help='AWS profile')
    parser.add_argument('-r', '--region', help='AWS region')
    parser.add_argument(
        '-t',
        '--task-def',
        '--task-definition',
        dest='task_def',
        help='base ECS task definition family, family:revision or ARN',
    )
    parser.add_argument('-c', '--cluster', help='ECS cluster on which to run the task')
    parser.add_argument(
        '-n',
        '--container-name',
        help='container definition to override. defaults to the first in the task definition',
    )
    parser.add_argument(
        '-x',
        '--dry-run',
        action=argparse.BooleanOptionalAction,
        default=False,
        help='print the run-task request instead of submitting it',
    )
    parser.add_argument(
        '-w',
        '--wait',
        dest='wait_stopped',
        action=argparse.BooleanOptionalAction,
        default=False,
        help='wait for the task to stop and exit with the container exit code',
    )
    parser.add_argument(
        '-l',
        '--stream-log',
        action=argparse.BooleanOptionalAction,
        default=False,
        help='tail the awslogs stream of the container until the task stops',
    )
    parser.add_argument(
        '-e',
        '--env',
        dest='env_entries',
        action='append',
        type=_env_arg,
        metavar='NAME[=VALUE]',
        help='override an environment variable. without =VALUE, the value is read from this environment',
    )
    parser.add_argument(
        '--env-file',
        dest='env_entries',
        action='extend',
        type=_env_file_arg,
        metavar='FILE',
        help='override environment variables from an env-file',
    )
    parser.add_argument('--cpu', type=int, default=0, help='override container CPU units')
    parser.add_argument('--mem', dest='memory', type=int, default=0, help='override memory limit')
    parser.add_argument(
        '--mem-res',
        dest='memory_reservation',
        type=int,
        default=0,
        help='override memory reservation',
    )
    parser.add_argument('--exec-role', dest='exec_role_arn', help='override execution role ARN')
    parser.add_argument('--task-role', dest='task_role_arn', help='override task role ARN')
    parser.add_argument(
        '--shell',
        dest='shell_prefix',
        default='',
        help="shell prefix for running the command as one single-quoted argument, e.g. 'sh -c'",
    )
    parser.add_argument(
        '--no-shell',
        action='store_true',
        help='pass the command arguments as-is. overrides --shell',
    )
    parser.add_argument(
        '-f',
        '--fargate',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='launch on FARGATE',
    )
    parser.add_argument(
        '-f:ip',
        '--fargate:ip',
        dest='net_public_ip',
        action=argparse.BooleanOptionalAction,
        default=None,
        help=argparse.SUPPRESS,
    )
    for short, long, dest in (
        ('-f:net', '--fargate:net', 'net_filters'),
        ('-f:host', '--fargate:host', 'host_filters'),
        ('-f:sg', '--fargate:sg', 'sg_filters'),
        ('-f:vpc', '--fargate:vpc', 'vpc_filters'),
    ):
        parser.add_argument(
            short,
            long,
            dest=dest,
            nargs='*',
            action='extend',
            type=_filter_arg,
            metavar='FILTER',
            help=argparse.SUPPRESS,
        )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> OverrunArgs:
    """Parse the overrun command line.

    Everything after the first ``--`` is the container command override.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    cmd_override: List[str] = []
    overrides_cmd = '--' in argv
    if overrides_cmd:
        split = argv.index('--')
        argv, cmd_override = argv[:split], argv[split + 1 :]

    parser = build_parser()
    ns = parser.parse_args(argv)

    if not ns.task_def:
        parser.error('You must specify a --task-def.')
    if not ns.cluster:
        parser.error("No --cluster specified. Specify 'default' to run on the default cluster.")

    filter_groups = (ns.net_filters, ns.host_filters, ns.sg_filters, ns.vpc_filters)
    launch_fargate = bool(ns.fargate) or ns.net_public_ip is not None
    launch_fargate = launch_fargate or any(group is not None for group in filter_groups)
    if ns.fargate is False:
        launch_fargate = False

    return OverrunArgs(
        profile=ns.profile,
        region=ns.region,
        task_def=ns.task_def,
        cluster=ns.cluster,
        container_name=ns.container_name,
        dry_run=ns.dry_run,
        stream_log=ns.stream_log,
        wait_stopped=ns.wait_stopped,
        env_overrides=env_list_to_dict(ns.env_entries or []),
        cpu=ns.cpu,
        memory=ns.memory,
        memory_reservation=ns.memory_reservation,
        exec_role_arn=ns.exec_role_arn,
        task_role_arn=ns.task_role_arn,
        shell_prefix=ns.shell_prefix,
        no_shell=ns.no_shell,
        launch_fargate=launch_fargate,
        net_filters=ns.net_filters or [],
        host_filters=ns.host_filters or [],
        sg_filters=ns.sg_filters or [],
        vpc_filters=ns.vpc_filters or [],
        net_public_ip=bool(ns.net_public_ip),
        overrides_cmd=overrides_cmd,
        cmd_override=cmd_override,
    )


class StopTaskOnInterrupt:
    """SIGINT handler that stops the submitted task.

    The handler stays installed until a stop request succeeds, so repeated
    ctrl-c retries a failed stop.
    """

    def __init__(self, ecs_client, cluster: str, task_arn: str):
        self.ecs = ecs_client
        self.cluster = cluster
        self.task_arn = task_arn
        self.previous = None

    def install(self) -> None:
        self.previous = signal.signal(signal.SIGINT, self)

    def __call__(self, signum, frame) -> None:
        try:
            self.ecs.stop_task(cluster=self.cluster, task=self.task_arn, reason=STOP_REASON)
        except (BotoCoreError, ClientError) as e:
            logger.error(f'SIGINT failed to stop task {self.task_arn}! keep mashing that ctrl-c! {e}')
            return
        signal.signal(signal.SIGINT, self.previous or signal.SIG_DFL)
        logger.info(f'user requested to stop task {self.task_arn} using ctrl-c/SIGINT')


def run(args: OverrunArgs) -> int:
    """Submit the task and follow it as requested.

    Returns:
        the process exit status
    """
    ecs = get_aws_client('ecs', args.region, args.profile)

    task_definition = ecs.describe_task_definition(taskDefinition=args.task_def)['taskDefinition']
    container_def = select_container_definition(task_definition, args.container_name)
    container_name = container_def['name']

    stream_log = args.stream_log
    if stream_log and not uses_awslogs(container_def):
        driver = (container_def.get('logConfiguration') or {}).get('logDriver')
        logger.warning(f'Cannot stream logs for this log driver: {driver}')
        stream_log = False

    resolver = None
    if args.launch_fargate:
        resolver = NetworkResolver(get_aws_client('ec2', args.region, args.profile), ecs)

    run_task_input = build_run_task_input(args, container_name, resolver)

    if args.dry_run:
        print(json.dumps(run_task_input, indent=2))
        return 0

    response = ecs.run_task(**run_task_input)
    if not response.get('tasks'):
        raise TaskConfigurationError(f'Failed to run task: {response.get("failures")}')

    task = response['tasks'][0]
    task_arn = task['taskArn']
    logger.info(f'Submitted task {task_arn} on cluster {args.cluster}.')

    if not (args.wait_stopped or stream_log):
        return 0

    StopTaskOnInterrupt(ecs, args.cluster, task_arn).install()

    tailer = None
    if stream_log:
        location = locate_awslogs_for_task(container_def, task)
        logs = get_aws_client('logs', args.region, args.profile)
        try:
            get_or_create_stream(logs, location)
        except (ClientError, AwslogsError) as e:
            logger.warning(str(e))
        tailer = LogTailer(logs, location)
        tailer.start()

    ecs.get_waiter('tasks_stopped').wait(
        cluster=args.cluster,
        tasks=[task_arn],
        WaiterConfig={'Delay': TASK_WAIT_DELAY_SECONDS, 'MaxAttempts': TASK_WAIT_MAX_ATTEMPTS},
    )

    if tailer is not None:
        tailer.finish()

    final_task = ecs.describe_tasks(cluster=args.cluster, tasks=[task_arn])['tasks'][0]
    exit_code = container_exit_code(final_task, container_name)
    if exit_code is None:
        logger.error(final_task.get('stoppedReason', 'task stopped'))
        return 1
    return exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the overrun command."""
    configure_logging()
    args = parse_args(argv)
    try:
        return run(args)
    except (
        NetworkResolutionError,
        TaskConfigurationError,
        AwslogsError,
        BotoCoreError,
        ClientError,
    ) as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
