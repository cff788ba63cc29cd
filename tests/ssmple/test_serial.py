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

"""Tests for config file formats."""

import pytest
from ecs_tools.ssmple.serial import (
    JsonSerial,
    PropertiesSerial,
    SerialError,
    YamlSerial,
    get_serial_for,
)


class TestGetSerialFor:
    """Test get_serial_for function."""

    @pytest.mark.parametrize(
        'path,serial_class',
        [
            ('conf/app.json', JsonSerial),
            ('conf/app.yml', YamlSerial),
            ('conf/app.yaml', YamlSerial),
            ('conf/app.properties', PropertiesSerial),
            ('conf/app.conf', PropertiesSerial),
            ('conf/app', PropertiesSerial),
        ],
    )
    def test_by_extension(self, path, serial_class):
        """Test the format follows the extension, defaulting to properties."""
        assert isinstance(get_serial_for(path), serial_class)


class TestPropertiesSerial:
    """Test PropertiesSerial class."""

    def test_save_and_load(self, tmp_path):
        """Test properties survive a save and load."""
        path = str(tmp_path / 'app.properties')
        data = {'db.url': 'jdbc:postgresql://db:5432/app', 'greeting': 'hello world', 'e': ''}

        PropertiesSerial().save(path, data)

        assert PropertiesSerial().load(path) == data

    def test_load(self, tmp_path):
        """Test comments and separators of hand-written files."""
        path = tmp_path / 'app.properties'
        path.write_text('# comment\na=1\nb: 2\nc 3\n')

        assert PropertiesSerial().load(str(path)) == {'a': '1', 'b': '2', 'c': '3'}

    def test_invalid_escape(self, tmp_path):
        """Test an invalid unicode escape is a SerialError."""
        path = tmp_path / 'app.properties'
        path.write_text('a=\\uZZZZ\n')

        with pytest.raises(SerialError):
            PropertiesSerial().load(str(path))


class TestJsonSerial:
    """Test JsonSerial class."""

    def test_scalars_become_strings(self, tmp_path):
        """Test scalar values are stringified."""
        path = tmp_path / 'app.json'
        path.write_text('{"s": "x", "i": 1, "f": 1.5, "b": true, "n": null}')

        assert JsonSerial().load(str(path)) == {
            's': 'x',
            'i': '1',
            'f': '1.5',
            'b': 'true',
            'n': '',
        }

    def test_nested_rejected(self, tmp_path):
        """Test nested objects are rejected."""
        path = tmp_path / 'app.json'
        path.write_text('{"a": {"b": 1}}')

        with pytest.raises(SerialError, match='nested arrays and objects are not supported. key a'):
            JsonSerial().load(str(path))

    def test_top_level_array_rejected(self, tmp_path):
        """Test the top level must be an object."""
        path = tmp_path / 'app.json'
        path.write_text('[1, 2]')

        with pytest.raises(SerialError):
            JsonSerial().load(str(path))

    def test_invalid_json(self, tmp_path):
        """Test malformed JSON is a SerialError."""
        path = tmp_path / 'app.json'
        path.write_text('{')

        with pytest.raises(SerialError):
            JsonSerial().load(str(path))

    def test_save_sorted(self, tmp_path):
        """Test keys are written sorted."""
        path = tmp_path / 'app.json'

        JsonSerial().save(str(path), {'b': '2', 'a': '1'})

        assert path.read_text() == '{\n  "a": "1",\n  "b": "2"\n}\n'


class TestYamlSerial:
    """Test YamlSerial class."""

    def test_save_and_load(self, tmp_path):
        """Test YAML values survive a save and load."""
        path = str(tmp_path / 'app.yaml')
        data = {'a': '1', 'b': 'true', 'c': ''}

        YamlSerial().save(path, data)

        assert YamlSerial().load(path) == data

    def test_empty_file(self, tmp_path):
        """Test an empty document is an empty mapping."""
        path = tmp_path / 'app.yml'
        path.write_text('')

        assert YamlSerial().load(str(path)) == {}

    def test_list_rejected(self, tmp_path):
        """Test list values are rejected."""
        path = tmp_path / 'app.yml'
        path.write_text('a:\n  - 1\n')

        with pytest.raises(SerialError):
            YamlSerial().load(str(path))

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML is a SerialError."""
        path = tmp_path / 'app.yml'
        path.write_text('a: [\n')

        with pytest.raises(SerialError):
            YamlSerial().load(str(path))
