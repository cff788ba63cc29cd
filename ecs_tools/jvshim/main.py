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

"""jvshim: run java with heap and metaspace fitted to the cgroup memory limit."""

import os
import sys
from ecs_tools.aws_common import configure_logging
from ecs_tools.jvshim.jvm import (
    MINIMUM_MAX_METASPACE_SIZE,
    JvmArgs,
    compute_memory_flags,
    determine_java_executable,
    determine_total_mem_limit,
    parse_jvm_args,
)
from loguru import logger
from typing import List, Optional, Sequence


SHOWMEM_ARGS = ['-XshowSettings:vm', '-XX:+PrintCommandLineFlags', '-version']

USAGE = """{prog} [ --testlimit <totalMemory> ] [ --javacmd <javaexec> ] [ --showmem or --showjava ] <javaArgs> ...
  --testlimit <totalMemory>       : Override the cgroup memory limit, to test outside of a cgroup.
  --javacmd <javaexec>            : The java command to use. Relative names are searched on the PATH.
                                    Overrides $JRE_HOME/bin/java and $JAVA_HOME/bin/java.
  --showjava                      : Print the java command and exit.
  --showmem                       : Print jvm settings and flags with -version.
  --help                          : Print this help message and exit.

  <javaArgs> ...                  : Arguments passed to java. Special cases:
    -XX:MaxMetaspaceSize=?        : If not specified and a cgroup limit applies, set to at least {min_meta},
                                    and at least -XX:MetaspaceSize when that flag is specified.
    -Xmx|-XX:MaxHeapSize=?        : May be lowered to fit the cgroup limit minus -XX:MaxMetaspaceSize.
    -Xms|-XX:InitialHeapSize=?    : If specified, may be lowered to fit -Xmx.
"""


def usage(prog: str) -> str:
    return USAGE.format(prog=os.path.basename(prog), min_meta=MINIMUM_MAX_METASPACE_SIZE)


def build_java_argv(args: JvmArgs, argv0: str = 'jvshim') -> List[str]:
    """The full java argv, with the executable first."""
    java_exec = determine_java_executable(args.java_cmd, argv0=argv0)
    jvm_args = compute_memory_flags(args, determine_total_mem_limit(args.test_limit))
    jvm_args.extend(args.passthru_args)
    if args.show_mem:
        return [java_exec] + jvm_args + SHOWMEM_ARGS
    return [java_exec] + jvm_args + args.program_args


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the jvshim command. Replaces the process with java on success."""
    configure_logging()
    prog = sys.argv[0] if sys.argv and sys.argv[0] else 'jvshim'
    argv = list(sys.argv[1:] if argv is None else argv)

    try:
        args = parse_jvm_args(argv)
        if args.show_help:
            print(usage(prog), end='')
            return 1
        java_argv = build_java_argv(args, prog)
    except (ValueError, OSError) as e:
        logger.error(f'Failed to determine java command. reason: {e}')
        return 1

    if args.show_java and not args.show_mem:
        print(' '.join(java_argv))
        return 0

    logger.debug(f'exec {java_argv}')
    try:
        os.execv(java_argv[0], java_argv)
    except OSError as e:
        logger.error(f'Failed to exec {java_argv[0]}. reason: {e}')
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
