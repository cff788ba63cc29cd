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

"""Construction of ecs:RunTask requests."""

from ecs_tools.overrun.models import OverrunArgs
from ecs_tools.overrun.network import NetworkResolver
from loguru import logger
from typing import Any, Dict, List, Optional


LAUNCH_TYPE_FARGATE = 'FARGATE'
LAUNCH_TYPE_EC2 = 'EC2'

# exit status when the container stopped with a reason but no exit code
EXIT_CODE_CONTAINER_REASON = 42


class TaskConfigurationError(Exception):
    """The task definition cannot be run as requested."""


def select_container_definition(
    task_definition: Dict[str, Any], container_name: Optional[str] = None
) -> Dict[str, Any]:
    """Pick the container definition to override.

    Args:
        task_definition: the ``taskDefinition`` from ecs:DescribeTaskDefinition
        container_name: name of the container, or None for the first one

    Returns:
        the matching container definition
    """
    definitions = task_definition.get('containerDefinitions', [])
    if not container_name:
        if not definitions:
            raise TaskConfigurationError(
                f'No container definitions found for task def {task_definition.get("taskDefinitionArn")}'
            )
        return definitions[0]

    for definition in definitions:
        if definition.get('name') == container_name:
            return definition

    available = [d.get('name') for d in definitions]
    raise TaskConfigurationError(
        f'No container definition found with specified name {container_name}. '
        f'Available names: {available}'
    )


def construct_command(cmd: List[str], shell_prefix: str = '', no_shell: bool = False) -> List[str]:
    """Build the container command override.

    Without ``no_shell`` the arguments are joined into a single command line,
    double quoting arguments that contain spaces. A shell prefix such as
    ``sh -c`` receives that command line as one single-quoted argument.
    """
    if no_shell:
        return list(cmd)

    escaped = []
    for arg in cmd:
        if ' ' in arg:
            arg = '"{}"'.format(arg.replace('"', '\\"'))
        escaped.append(arg)
    command_line = ' '.join(escaped)

    if shell_prefix and shell_prefix != ' ':
        quoted = command_line.replace("'", "'\"'\"'")
        return [f"{shell_prefix} '{quoted}'"]
    return [command_line]


def build_overrides(args: OverrunArgs, container_name: str) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.exec_role_arn:
        overrides['executionRoleArn'] = args.exec_role_arn
    if args.task_role_arn:
        overrides['taskRoleArn'] = args.task_role_arn

    container: Dict[str, Any] = {'name': container_name}
    if args.overrides_cmd:
        container['command'] = construct_command(
            args.cmd_override, args.shell_prefix, args.no_shell
        )
    if args.env_overrides:
        container['environment'] = [
            {'name': name, 'value': value} for name, value in args.env_overrides.items()
        ]
    if args.cpu > 0:
        container['cpu'] = args.cpu
    if args.memory > 0:
        container['memory'] = args.memory
    if args.memory_reservation > 0:
        container['memoryReservation'] = args.memory_reservation

    overrides['containerOverrides'] = [container]
    return overrides


def build_run_task_input(
    args: OverrunArgs,
    container_name: str,
    resolver: Optional[NetworkResolver] = None,
) -> Dict[str, Any]:
    """Assemble the keyword arguments for ``ecs.run_task``.

    Args:
        args: parsed command line
        container_name: container receiving the overrides
        resolver: network resolver, required when launching on Fargate

    Returns:
        run_task keyword arguments
    """
    run_task_input: Dict[str, Any] = {
        'cluster': args.cluster,
        'taskDefinition': args.task_def,
    }

    if args.launch_fargate:
        if resolver is None:
            raise TaskConfigurationError('Fargate launch requires a network resolver')
        network = resolver.resolve(args.network_request())
        logger.info(f'Resolved Fargate network configuration: {network.to_boto()}')
        run_task_input['launchType'] = LAUNCH_TYPE_FARGATE
        run_task_input['networkConfiguration'] = network.to_boto()
    else:
        run_task_input['launchType'] = LAUNCH_TYPE_EC2

    run_task_input['overrides'] = build_overrides(args, container_name)
    return run_task_input


def task_id_from_arn(task_arn: str) -> str:
    return task_arn.split('/')[-1]


def container_exit_code(task: Dict[str, Any], container_name: str) -> Optional[int]:
    """Exit status for the named container of a stopped task.

    Returns:
        the container exit code when positive, 42 when the container stopped
        with a reason, 0 otherwise, or None when the container is not in the task
    """
    for container in task.get('containers', []):
        if container.get('name') != container_name:
            continue
        exit_code = 0
        if container.get('reason'):
            exit_code = EXIT_CODE_CONTAINER_REASON
            logger.info(container['reason'])
        if (container.get('exitCode') or 0) > 0:
            return container['exitCode']
        return exit_code
    return None
