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

"""Parameter names and values as stored in SSM Parameter Store."""


def build_parameter_path(prefix: str, filename: str, key: str = '') -> str:
    """Build an SSM parameter path or name.

    Args:
        prefix: hierarchy levels 0 to N-2
        filename: hierarchy level N-1, without its extension (``$`` when empty)
        key: optional hierarchy level N

    Returns:
        the parameter path, or the parameter name when a key is given
    """
    path = prefix if prefix.endswith('/') else prefix + '/'
    if not filename:
        path += '$'
    elif '.' in filename:
        path += filename[: filename.rindex('.')]
    else:
        path += filename
    if key:
        if not path.endswith('/'):
            path += '/'
        path += key
    return path


def _all_spaces(value: str) -> bool:
    return all(c == ' ' for c in value)


def escape_value_before_put(value: str) -> str:
    """SSM rejects empty values, so empty or all-space values get one more space."""
    if _all_spaces(value):
        return value + ' '
    return value


def unescape_value_after_get(value: str) -> str:
    """Reverse escape_value_before_put."""
    if value and _all_spaces(value):
        return value[:-1]
    return value
