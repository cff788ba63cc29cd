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

"""Flat key/value file formats, chosen by file extension."""

import javaproperties
import json
import yaml
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping


class SerialError(ValueError):
    """A file cannot be represented as flat string key/value pairs."""


def _flatten(data: Any, path: str) -> Dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SerialError(f'top level of {path} must be an object')

    flat = {}
    for key, value in data.items():
        if isinstance(value, (list, dict)):
            raise SerialError(f'nested arrays and objects are not supported. key {key}')
        if isinstance(value, bool):
            flat[str(key)] = 'true' if value else 'false'
        elif value is None:
            flat[str(key)] = ''
        else:
            flat[str(key)] = str(value)
    return flat


class Serial(ABC):
    """Loads and saves a flat mapping of strings."""

    @abstractmethod
    def load(self, path: str) -> Dict[str, str]:
        """Read the file at path."""

    @abstractmethod
    def save(self, path: str, data: Mapping[str, str]) -> None:
        """Write data to the file at path, replacing it."""


class PropertiesSerial(Serial):
    """Java .properties files, the default format."""

    def load(self, path: str) -> Dict[str, str]:
        with open(path, 'r', encoding='utf-8') as f:
            try:
                return dict(javaproperties.load(f))
            except ValueError as e:
                raise SerialError(f'invalid properties file {path}: {e}') from e

    def save(self, path: str, data: Mapping[str, str]) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            javaproperties.dump(dict(data), f, timestamp=False, sort_keys=True)


class JsonSerial(Serial):
    def load(self, path: str) -> Dict[str, str]:
        with open(path, 'r', encoding='utf-8') as f:
            try:
                return _flatten(json.load(f), path)
            except json.JSONDecodeError as e:
                raise SerialError(f'invalid json file {path}: {e}') from e

    def save(self, path: str, data: Mapping[str, str]) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(dict(data), f, indent=2, sort_keys=True)
            f.write('\n')


class YamlSerial(Serial):
    def load(self, path: str) -> Dict[str, str]:
        with open(path, 'r', encoding='utf-8') as f:
            try:
                return _flatten(yaml.safe_load(f), path)
            except yaml.YAMLError as e:
                raise SerialError(f'invalid yaml file {path}: {e}') from e

    def save(self, path: str, data: Mapping[str, str]) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(dict(data), f, default_flow_style=False)


DEFAULT_SERIAL = PropertiesSerial()

SERIALS: Dict[str, Serial] = {
    '.json': JsonSerial(),
    '.yml': YamlSerial(),
    '.yaml': YamlSerial(),
}


def get_serial_for(path: str) -> Serial:
    """Pick the format for a file by its extension, defaulting to .properties."""
    return SERIALS.get(Path(path).suffix, DEFAULT_SERIAL)
