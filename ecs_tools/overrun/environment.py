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

"""Container environment overrides from --env and --env-file."""

import os
from dotenv import dotenv_values
from typing import Dict, Iterable, List, Mapping, Optional


class EnvOverrideError(ValueError):
    """An environment override could not be resolved."""


def validate_env(entry: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Normalize an ``name[=value]`` override to ``name=value``.

    A bare name takes its value from this process's environment.
    """
    environ = os.environ if environ is None else environ
    name, sep, value = entry.partition('=')
    name = name.strip()
    if not name:
        raise EnvOverrideError(f'Invalid environment override: "{entry}"')
    if sep:
        return f'{name}={value}'
    if name not in environ:
        raise EnvOverrideError(f'Environment variable {name} is not set')
    return f'{name}={environ[name]}'


def parse_env_file(path: str, environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Read overrides from an env-file, one per line, ignoring blanks and # comments.

    A line with a bare name takes its value from this process's environment.
    """
    with open(path, 'r', encoding='utf-8') as f:
        values = dotenv_values(stream=f, interpolate=False)

    entries = []
    for name, value in values.items():
        entry = name if value is None else f'{name}={value}'
        entries.append(validate_env(entry, environ))
    return entries


def env_list_to_dict(entries: Iterable[str]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for entry in entries:
        name, _, value = entry.partition('=')
        env[name] = value
    return env
