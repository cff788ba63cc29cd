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

"""ssmple: sync config files with SSM Parameter Store."""

import argparse
import os
import sys
from botocore.exceptions import BotoCoreError, ClientError
from ecs_tools.aws_common import configure_logging, get_aws_client
from ecs_tools.ssmple.filestore import FileStore
from ecs_tools.ssmple.kms import KmsAliasMap
from ecs_tools.ssmple.serial import SerialError
from ecs_tools.ssmple.ssm_ops import SsmCommands, SsmOptions
from loguru import logger
from typing import Optional, Sequence


COMMANDS = ('get', 'put', 'delete', 'clear')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ssmple',
        description='Copy parameters between SSM Parameter Store paths and '
        '.properties, .json or .yaml files.',
        allow_abbrev=False,
    )
    parser.add_argument('command', nargs='?', default='get', choices=COMMANDS)
    parser.add_argument('-p', '--profile', help='AWS profile')
    parser.add_argument('-r', '--region', help='AWS region')
    parser.add_argument(
        '-C', '--conf-dir', default='.', help='directory of the config files (default: .)'
    )
    parser.add_argument(
        '-f',
        '--filename',
        dest='filenames',
        action='append',
        default=[],
        help='config file name, like instance.properties. repeatable',
    )
    parser.add_argument(
        '-s',
        '--starts-with',
        dest='prefixes',
        action='append',
        default=[],
        help='parameter path prefix, like /ecs/dev/myapp. repeatable for get',
    )
    parser.add_argument(
        '-k', '--key-id-put-all', help='put every parameter as a SecureString with this KMS key'
    )
    parser.add_argument(
        '-o',
        '--overwrite-put',
        action=argparse.BooleanOptionalAction,
        default=False,
        help='overwrite existing parameters on put',
    )
    parser.add_argument(
        '--clear-on-put',
        action=argparse.BooleanOptionalAction,
        default=False,
        help='delete all parameters under the path before put',
    )
    parser.add_argument(
        '--store-secure-string',
        action=argparse.BooleanOptionalAction,
        default=True,
        help='store SecureString parameters in files on get',
    )
    parser.add_argument(
        '--put-secure-string',
        action=argparse.BooleanOptionalAction,
        default=True,
        help='put SecureString entries from files',
    )
    return parser


def require_dir(path: str, mkdir: bool) -> None:
    if not os.path.exists(path):
        if not mkdir:
            raise FileNotFoundError(f'No such directory {path}')
        os.makedirs(path, mode=0o755, exist_ok=True)
    if not os.path.isdir(path):
        raise NotADirectoryError(f'File exists and is not a directory {path}')


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ssmple command."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.prefixes:
        parser.error('At least one -s/--starts-with path is required, like /ecs/dev/myapp')
    if not args.filenames:
        parser.error('At least one -f/--filename argument is required, like instance.properties')
    if args.command != 'get' and len(args.prefixes) != 1:
        parser.error(f'{args.command} command requires exactly one -s/--starts-with argument.')

    conf_dir = os.path.abspath(args.conf_dir)
    options = SsmOptions(
        prefixes=args.prefixes,
        key_id_put_all=args.key_id_put_all,
        overwrite_put=args.overwrite_put,
        clear_on_put=args.clear_on_put,
        no_store_secure_string=not args.store_secure_string,
        no_put_secure_string=not args.put_secure_string,
    )

    try:
        if args.command == 'get':
            require_dir(conf_dir, mkdir=True)

        stores = {}
        for filename in args.filenames:
            store = FileStore(conf_dir, filename)
            store.load()
            stores[filename] = store

        kms_map = KmsAliasMap()
        needs_aliases = (args.command == 'get' and args.store_secure_string) or (
            args.command == 'put' and args.put_secure_string
        )
        if needs_aliases:
            kms_map = KmsAliasMap.build(get_aws_client('kms', args.region, args.profile))

        commands = SsmCommands(
            get_aws_client('ssm', args.region, args.profile), stores, kms_map, options
        )
        for filename in args.filenames:
            if args.command == 'get':
                commands.get(filename)
            elif args.command == 'put':
                commands.put(filename, args.prefixes[0])
            elif args.command == 'delete':
                commands.delete(filename, args.prefixes[0])
            else:
                commands.clear(filename, args.prefixes[0])
    except (BotoCoreError, ClientError, SerialError, OSError) as e:
        logger.error(f'Failed to {args.command} parameters. reason: {e}')
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
