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

"""JVM memory sizes such as ``512m`` or ``2G``."""

import re
from typing import Tuple


BASE_PATTERN = re.compile(r'^[0-9]+')
UNIT_PATTERN = re.compile(r'[kKmMgG]?$')

UNIT_POWERS = {'k': 1, 'm': 2, 'g': 3}
POWER_UNITS = {1: 'K', 2: 'M', 3: 'G'}


def unit_to_pow(unit: str) -> int:
    return UNIT_POWERS.get(unit.lower(), 0)


def long_mem(base: int, power: int) -> int:
    """Bytes in ``base`` units of 1024**power."""
    return base << (10 * power)


def parse_mem(mem: str) -> int:
    """Parse a JVM memory size into bytes.

    Raises:
        ValueError: when the value does not start with digits
    """
    mem = mem.strip()
    base = BASE_PATTERN.match(mem)
    if not base:
        raise ValueError(f'Failed to parse memory value {mem}')
    unit = UNIT_PATTERN.search(mem)
    return long_mem(int(base.group(0)), unit_to_pow(unit.group(0) if unit else ''))


def short_mem(base: int, power: int) -> Tuple[int, int]:
    """Express a size in the largest unit that keeps it exact.

    Bytes are always shortened to at least K, rounding down, so the result is a
    multiple of 1024 as the JVM requires for heap sizes.
    """
    if power < 0:
        raise ValueError('memory unit power must not be negative')
    if power > 3:
        return short_mem(base << 10, power - 1)
    if power == 3:
        return base, power
    if base >= 1024 and (power == 0 or base % 1024 == 0):
        return short_mem(base >> 10, power + 1)
    return base, power


def fmt_mem(base: int, power: int = 0) -> str:
    short_base, short_power = short_mem(base, power)
    return f'{short_base}{POWER_UNITS.get(short_power, "")}'
