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

"""Fit JVM heap and metaspace flags inside the cgroup memory limit.

ECS places tasks by their memory limit, and the JVM's container support
sizes the heap only; metaspace is unlimited by default. The limit is
therefore split as ``limit = max heap + max metaspace``:

- ``-XX:MaxMetaspaceSize`` is always set when a limit applies, to at least
  64m and at least ``-XX:MetaspaceSize``.
- ``-Xmx`` is derived from the limit unless a smaller value was requested.
- ``-Xms`` is kept when requested, lowered to ``-Xmx`` when larger.
"""

import os
from ecs_tools.jvshim.memory import fmt_mem, parse_mem
from pydantic import BaseModel, Field
from typing import List, Mapping, Optional, Sequence


CGROUP_V1_MEM_LIMIT_FILE = '/sys/fs/cgroup/memory/memory.limit_in_bytes'
CGROUP_V2_MEM_LIMIT_FILE = '/sys/fs/cgroup/memory.max'

# cgroup v1 reports "no limit" as a page-aligned LONG_MAX
UNLIMITED_THRESHOLD = 1 << 60

MINIMUM_MAX_HEAP_SIZE = '2m'
MINIMUM_MAX_METASPACE_SIZE = '64m'

XX_MAX_METASPACE_SIZE = '-XX:MaxMetaspaceSize='
XX_METASPACE_SIZE = '-XX:MetaspaceSize='
XX_INITIAL_HEAP_SIZE = '-XX:InitialHeapSize='
XX_MAX_HEAP_SIZE = '-XX:MaxHeapSize='
XMS = '-Xms'
XMX = '-Xmx'


class JvmArgs(BaseModel):
    """Parsed jvshim command line."""

    test_limit: int = 0
    java_cmd: str = ''

    pref_max_meta: int = 0
    pref_meta: int = 0
    pref_init_heap: int = 0
    pref_max_heap: int = 0

    show_help: bool = False
    show_mem: bool = False
    show_java: bool = False

    passthru_args: List[str] = Field(default_factory=list)
    mem_pref_args: List[str] = Field(default_factory=list)
    program_args: List[str] = Field(default_factory=list)


def parse_jvm_args(argv: Sequence[str]) -> JvmArgs:
    """Split java arguments into shim options, memory flags, other flags and the program.

    The program starts at ``-jar`` or at the first argument that is not a flag.
    """
    args = JvmArgs()
    i = 0
    while i < len(argv):
        opt = argv[i]
        if opt == '--help':
            args.show_help = True
        elif opt == '--showmem':
            args.show_mem = True
        elif opt == '--showjava':
            args.show_java = True
        elif opt == '--testlimit':
            if i + 1 < len(argv):
                args.test_limit = parse_mem(argv[i + 1])
                i += 1
        elif opt == '--javacmd':
            if i + 1 < len(argv):
                args.java_cmd = argv[i + 1]
                i += 1
        elif opt.startswith(XX_MAX_METASPACE_SIZE):
            args.pref_max_meta = parse_mem(opt[len(XX_MAX_METASPACE_SIZE) :])
            args.mem_pref_args.append(opt)
        elif opt.startswith(XX_METASPACE_SIZE):
            args.pref_meta = parse_mem(opt[len(XX_METASPACE_SIZE) :])
            args.mem_pref_args.append(opt)
        elif opt.startswith(XX_INITIAL_HEAP_SIZE):
            args.pref_init_heap = parse_mem(opt[len(XX_INITIAL_HEAP_SIZE) :])
            args.mem_pref_args.append(opt)
        elif opt.startswith(XMS):
            args.pref_init_heap = parse_mem(opt[len(XMS) :])
            args.mem_pref_args.append(opt)
        elif opt.startswith(XX_MAX_HEAP_SIZE):
            args.pref_max_heap = parse_mem(opt[len(XX_MAX_HEAP_SIZE) :])
            args.mem_pref_args.append(opt)
        elif opt.startswith(XMX):
            args.pref_max_heap = parse_mem(opt[len(XMX) :])
            args.mem_pref_args.append(opt)
        elif opt in ('-cp', '-classpath'):
            # the only java flags other than -jar that take the next argument
            args.passthru_args.extend(argv[i : i + 2])
            i += 1
        elif opt == '-jar' or not opt.startswith('-'):
            # @argfiles are passed through below and not inspected
            if not opt.startswith('@'):
                args.program_args = list(argv[i:])
                break
            args.passthru_args.append(opt)
        else:
            args.passthru_args.append(opt)
        i += 1
    return args


def compute_memory_flags(args: JvmArgs, total_limit: int) -> List[str]:
    """Memory flags to pass to java for a memory limit in bytes (0 for none).

    Without a usable limit the requested memory flags are returned unchanged.
    """
    min_max_heap = parse_mem(MINIMUM_MAX_HEAP_SIZE)
    min_max_meta = parse_mem(MINIMUM_MAX_METASPACE_SIZE)

    if total_limit <= min_max_heap + min_max_meta:
        return list(args.mem_pref_args)

    if args.pref_meta > min_max_meta:
        min_max_meta = args.pref_meta

    max_meta = args.pref_max_meta
    if max_meta == 0:
        if 0 < args.pref_max_heap < total_limit - min_max_meta:
            max_meta = total_limit - args.pref_max_heap
        else:
            max_meta = min_max_meta

    # metaspace first, so that it is most visible in `ps -ef`
    flags = [XX_MAX_METASPACE_SIZE + fmt_mem(max_meta)]
    if args.pref_meta > 0:
        flags.append(XX_METASPACE_SIZE + fmt_mem(args.pref_meta))

    ergo_xmx = max(total_limit - max_meta, min_max_heap)
    if args.pref_max_heap == 0 or ergo_xmx < args.pref_max_heap:
        flags.append(XMX + fmt_mem(ergo_xmx))
        if args.pref_init_heap > 0:
            flags.append(XMS + fmt_mem(min(args.pref_init_heap, ergo_xmx)))
    else:
        flags.append(XMX + fmt_mem(args.pref_max_heap))
        if args.pref_init_heap > 0:
            flags.append(XMS + fmt_mem(args.pref_init_heap))
    return flags


def is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def look_path_not_me(
    file: str, argv0: Optional[str] = None, path_env: Optional[str] = None
) -> str:
    """Search PATH for an executable like ``which``, skipping this shim.

    This lets the shim itself be installed on the PATH as ``java``.

    Raises:
        FileNotFoundError: when no executable is found
    """
    if '/' in file:
        if is_executable(file):
            return file
        raise FileNotFoundError(f'{file}: not an executable file')

    if path_env is None:
        path_env = os.environ.get('PATH', '')
    me = os.path.abspath(argv0) if argv0 else None
    for directory in path_env.split(os.pathsep):
        candidate = os.path.join(directory or '.', file)
        if me is not None and os.path.abspath(candidate) == me:
            continue
        if is_executable(candidate):
            return candidate
    raise FileNotFoundError(f'{file}: executable file not found in $PATH')


def determine_java_executable(
    java_cmd: str = '',
    environ: Optional[Mapping[str, str]] = None,
    argv0: Optional[str] = None,
) -> str:
    """Pick --javacmd, then $JRE_HOME/bin/java, then $JAVA_HOME/bin/java, then java on the PATH."""
    environ = os.environ if environ is None else environ
    if java_cmd:
        return look_path_not_me(java_cmd, argv0, environ.get('PATH', ''))
    if environ.get('JRE_HOME'):
        return os.path.join(environ['JRE_HOME'], 'bin', 'java')
    if environ.get('JAVA_HOME'):
        return os.path.join(environ['JAVA_HOME'], 'bin', 'java')
    return look_path_not_me('java', argv0, environ.get('PATH', ''))


def _read_limit(path: str) -> int:
    try:
        with open(path, 'r') as f:
            content = f.read().strip()
    except OSError:
        return 0
    if not content or content == 'max':
        return 0
    limit = parse_mem(content)
    return 0 if limit >= UNLIMITED_THRESHOLD else limit


def determine_total_mem_limit(
    test_limit: int = 0,
    v1_path: str = CGROUP_V1_MEM_LIMIT_FILE,
    v2_path: str = CGROUP_V2_MEM_LIMIT_FILE,
) -> int:
    """The memory limit in bytes, or 0 when there is none."""
    if test_limit > 0:
        return test_limit
    return _read_limit(v1_path) or _read_limit(v2_path)
