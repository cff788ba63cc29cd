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

"""EC2 filter tokens as accepted on the overrun command line.

A token is one of:

- ``Name=<name>,Values=<v1,v2,...>`` (the aws-cli long form)
- ``<name>=<v1,v2,...>`` (short form)
- a resource ID such as ``i-0123abcd``, ``subnet-...``, ``vpc-...`` or ``sg-...``
- any other word, matched against a fallback attribute such as ``tag:Name``

Tokens starting with ``-`` are never filters; they end a run of filter tokens.
"""

import re
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional, Sequence, Tuple


FILTER_INSTANCE_ID = 'instance-id'
FILTER_SUBNET_ID = 'subnet-id'
FILTER_SECURITY_GROUP_ID = 'group-id'
FILTER_VPC_ID = 'vpc-id'
FILTER_TAG_NAME = 'tag:Name'

LONG_FILTER_PATTERN = re.compile(r'Name=([^,]+),Values=(.*)', re.DOTALL)
SHORT_FILTER_PATTERN = re.compile(r'([^=]+)=(.*)', re.DOTALL)

# prefixes are mutually exclusive, so order does not matter
RESOURCE_ID_PREFIXES = {
    'i-': FILTER_INSTANCE_ID,
    'subnet-': FILTER_SUBNET_ID,
    'vpc-': FILTER_VPC_ID,
    'sg-': FILTER_SECURITY_GROUP_ID,
}


class Filter(BaseModel):
    """An EC2 describe-* filter. Values are OR'd, filters are AND'd."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    values: Tuple[str, ...] = Field(..., min_length=1)

    def to_boto(self) -> Dict[str, object]:
        """Render as the dict accepted by boto3 ``Filters=`` parameters."""
        return {'Name': self.name, 'Values': list(self.values)}

    def __str__(self) -> str:
        return f'Name={self.name},Values={",".join(self.values)}'


def parse_ec2_filter(token: str, default_name: Optional[str] = None) -> Optional[Filter]:
    """Parse one command line token into a Filter.

    Args:
        token: the raw command line token
        default_name: attribute to match the token against when no other pattern applies

    Returns:
        the parsed Filter, or None when the token is not a filter
    """
    if token.startswith('-'):
        return None

    long_match = LONG_FILTER_PATTERN.fullmatch(token)
    if long_match:
        return Filter(name=long_match.group(1), values=tuple(long_match.group(2).split(',')))

    short_match = SHORT_FILTER_PATTERN.fullmatch(token)
    if short_match:
        return Filter(name=short_match.group(1), values=tuple(short_match.group(2).split(',')))

    for prefix, name in RESOURCE_ID_PREFIXES.items():
        if token.startswith(prefix):
            return Filter(name=name, values=(token,))

    if default_name:
        return Filter(name=default_name, values=(token,))

    return None


def read_filter_args(
    tokens: Sequence[str], default_name: Optional[str] = FILTER_TAG_NAME
) -> Tuple[int, List[Filter]]:
    """Consume leading filter tokens.

    Returns:
        the number of tokens consumed and the filters they produced
    """
    filters = []
    for token in tokens:
        parsed = parse_ec2_filter(token, default_name)
        if parsed is None:
            break
        filters.append(parsed)
    return len(filters), filters


def filter_string(filters: Sequence[Filter]) -> str:
    """Render filters for error messages."""
    return ' '.join(str(f) for f in filters)


def to_boto_filters(filters: Sequence[Filter]) -> List[Dict[str, object]]:
    return [f.to_boto() for f in filters]
