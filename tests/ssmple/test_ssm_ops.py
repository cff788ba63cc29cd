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

"""Tests for the ssmple get, put, delete and clear operations."""

import boto3
import pytest
from ecs_tools.ssmple.filestore import FileStore
from ecs_tools.ssmple.kms import KmsAliasMap
from ecs_tools.ssmple.ssm_ops import SsmCommands, SsmOptions
from moto import mock_aws
from unittest.mock import MagicMock


PATH = '/ecs/dev/app/instance'
FILENAME = 'instance.properties'


@pytest.fixture
def store(tmp_path):
    """Empty properties file store."""
    return FileStore(str(tmp_path), FILENAME)


@pytest.fixture
def ssm():
    """MagicMock SSM client with an empty parameter path."""
    client = MagicMock()
    client.get_paginator.return_value.paginate.return_value = [{'Parameters': []}]
    client.delete_parameters.return_value = {'DeletedParameters': [], 'InvalidParameters': []}
    return client


def with_parameters(ssm, *pages):
    ssm.get_paginator.return_value.paginate.return_value = [{'Parameters': p} for p in pages]


class TestGet:
    """Test SsmCommands.get."""

    def test_get_writes_file(self, ssm, store):
        """Test String and SecureString parameters are stored, StringList is skipped."""
        with_parameters(
            ssm,
            [
                {'Name': f'{PATH}/a', 'Type': 'String', 'Value': '1'},
                {'Name': f'{PATH}/list', 'Type': 'StringList', 'Value': 'x,y'},
            ],
            [
                {'Name': f'{PATH}/empty', 'Type': 'String', 'Value': ' '},
                {'Name': f'{PATH}/secret', 'Type': 'SecureString', 'Value': 'hunter2'},
            ],
        )
        ssm.describe_parameters.return_value = {'Parameters': [{'KeyId': 'key-1'}]}
        commands = SsmCommands(
            ssm,
            {FILENAME: store},
            KmsAliasMap({'alias/app': 'key-1'}),
            SsmOptions(prefixes=['/ecs/dev/app']),
        )

        commands.get(FILENAME)

        assert store.data == {
            'a': '1',
            'empty': '',
            'secret': 'hunter2',
            'secret_SecureStringKeyId': 'alias/app',
        }
        ssm.get_paginator.return_value.paginate.assert_called_with(
            Path=PATH,
            Recursive=False,
            WithDecryption=True,
            PaginationConfig={'PageSize': 10},
        )
        ssm.describe_parameters.assert_called_once_with(
            ParameterFilters=[{'Key': 'Name', 'Option': 'Equals', 'Values': [f'{PATH}/secret']}]
        )
        reloaded = FileStore(store.path.rsplit('/', 1)[0], FILENAME)
        reloaded.load()
        assert reloaded.data == store.data

    def test_get_skips_secure_strings(self, ssm, store):
        """Test SecureString parameters are not stored when disabled."""
        with_parameters(ssm, [{'Name': f'{PATH}/secret', 'Type': 'SecureString', 'Value': 's'}])
        commands = SsmCommands(
            ssm,
            {FILENAME: store},
            options=SsmOptions(prefixes=['/ecs/dev/app'], no_store_secure_string=True),
        )

        commands.get(FILENAME)

        assert store.data == {}
        ssm.describe_parameters.assert_not_called()

    def test_later_prefixes_win(self, ssm, store):
        """Test parameters of later prefixes override earlier ones."""
        ssm.get_paginator.return_value.paginate.side_effect = [
            [{'Parameters': [{'Name': '/base/instance/a', 'Type': 'String', 'Value': 'base'}]}],
            [{'Parameters': [{'Name': '/env/instance/a', 'Type': 'String', 'Value': 'env'}]}],
        ]
        commands = SsmCommands(
            ssm, {FILENAME: store}, options=SsmOptions(prefixes=['/base', '/env'])
        )

        commands.get(FILENAME)

        assert store.data == {'a': 'env'}


class TestPut:
    """Test SsmCommands.put."""

    def test_put_string_and_secure_string(self, ssm, store):
        """Test entries with a key id entry are put as SecureString."""
        store.data = {
            'a': '1',
            'empty': '',
            'secret': 's',
            'secret_SecureStringKeyId': 'alias/app',
        }
        commands = SsmCommands(
            ssm,
            {FILENAME: store},
            KmsAliasMap({'alias/app': 'key-1'}),
            SsmOptions(overwrite_put=True),
        )

        commands.put(FILENAME, '/ecs/dev/app')

        assert ssm.put_parameter.call_count == 3
        ssm.put_parameter.assert_any_call(
            Name=f'{PATH}/a', Value='1', Overwrite=True, Type='String'
        )
        ssm.put_parameter.assert_any_call(
            Name=f'{PATH}/empty', Value=' ', Overwrite=True, Type='String'
        )
        ssm.put_parameter.assert_any_call(
            Name=f'{PATH}/secret', Value='s', Overwrite=True, Type='SecureString', KeyId='key-1'
        )

    def test_put_skips_secure_strings(self, ssm, store):
        """Test SecureString entries are skipped when disabled."""
        store.data = {'secret': 's', 'secret_SecureStringKeyId': 'alias/app'}
        commands = SsmCommands(
            ssm, {FILENAME: store}, options=SsmOptions(no_put_secure_string=True)
        )

        commands.put(FILENAME, '/ecs/dev/app')

        ssm.put_parameter.assert_not_called()

    def test_key_id_put_all(self, ssm, store):
        """Test every entry is put as SecureString with the given key."""
        store.data = {'a': '1'}
        commands = SsmCommands(
            ssm, {FILENAME: store}, options=SsmOptions(key_id_put_all='alias/all')
        )

        commands.put(FILENAME, '/ecs/dev/app')

        ssm.put_parameter.assert_called_once_with(
            Name=f'{PATH}/a', Value='1', Overwrite=False, Type='SecureString', KeyId='alias/all'
        )

    def test_clear_on_put(self, ssm, store):
        """Test the path is cleared before putting."""
        with_parameters(ssm, [{'Name': f'{PATH}/old', 'Type': 'String', 'Value': 'x'}])
        store.data = {'a': '1'}
        commands = SsmCommands(ssm, {FILENAME: store}, options=SsmOptions(clear_on_put=True))

        commands.put(FILENAME, '/ecs/dev/app')

        ssm.delete_parameters.assert_called_once_with(Names=[f'{PATH}/old'])
        ssm.put_parameter.assert_called_once()


class TestDeleteAndClear:
    """Test SsmCommands.delete, clear and delete_parameters."""

    def test_delete_only_existing_keys(self, ssm, store):
        """Test only file keys that exist as parameters are deleted."""
        with_parameters(
            ssm,
            [
                {'Name': f'{PATH}/a', 'Type': 'String', 'Value': '1'},
                {'Name': f'{PATH}/other', 'Type': 'String', 'Value': '2'},
            ],
        )
        store.data = {'a': '1', 'missing': '3'}

        SsmCommands(ssm, {FILENAME: store}).delete(FILENAME, '/ecs/dev/app')

        ssm.delete_parameters.assert_called_once_with(Names=[f'{PATH}/a'])

    def test_delete_nothing(self, ssm, store):
        """Test no request is made when nothing matches."""
        store.data = {'missing': '3'}

        SsmCommands(ssm, {FILENAME: store}).delete(FILENAME, '/ecs/dev/app')

        ssm.delete_parameters.assert_not_called()

    def test_clear(self, ssm, store):
        """Test every parameter under the path is deleted."""
        with_parameters(
            ssm,
            [{'Name': f'{PATH}/a', 'Type': 'String', 'Value': '1'}],
            [{'Name': f'{PATH}/b', 'Type': 'String', 'Value': '2'}],
        )

        SsmCommands(ssm, {FILENAME: store}).clear(FILENAME, '/ecs/dev/app')

        ssm.delete_parameters.assert_called_once_with(Names=[f'{PATH}/a', f'{PATH}/b'])

    def test_delete_in_batches_of_ten(self, ssm):
        """Test deletes are sent ten names at a time."""
        names = [f'{PATH}/k{i}' for i in range(25)]

        SsmCommands(ssm, {}).delete_parameters(names)

        batches = [c[1]['Names'] for c in ssm.delete_parameters.call_args_list]
        assert [len(b) for b in batches] == [10, 10, 5]
        assert sum(batches, []) == names


class TestWithMoto:
    """Round trips against moto's Parameter Store."""

    @mock_aws
    def test_put_then_get(self, tmp_path, mock_aws_credentials):
        """Test a file put under a prefix is read back into another directory."""
        ssm = boto3.client('ssm', region_name='us-east-1')
        source = FileStore(str(tmp_path), FILENAME)
        source.data = {'a': '1', 'blank': '', 'url': 'http://example.com/?q=1'}

        SsmCommands(ssm, {FILENAME: source}).put(FILENAME, '/ecs/dev/app')

        assert ssm.get_parameter(Name=f'{PATH}/blank')['Parameter']['Value'] == ' '

        target_dir = tmp_path / 'target'
        target_dir.mkdir()
        target = FileStore(str(target_dir), FILENAME)
        SsmCommands(ssm, {FILENAME: target}, options=SsmOptions(prefixes=['/ecs/dev/app'])).get(
            FILENAME
        )

        assert target.data == source.data

    @mock_aws
    def test_clear(self, tmp_path, mock_aws_credentials):
        """Test clear removes every parameter under the path."""
        ssm = boto3.client('ssm', region_name='us-east-1')
        for i in range(12):
            ssm.put_parameter(Name=f'{PATH}/k{i}', Value=str(i), Type='String')
        ssm.put_parameter(Name='/ecs/dev/app/keep', Value='x', Type='String')
        store = FileStore(str(tmp_path), FILENAME)

        SsmCommands(ssm, {FILENAME: store}).clear(FILENAME, '/ecs/dev/app')

        remaining = ssm.get_parameters_by_path(Path='/ecs/dev/app', Recursive=True)['Parameters']
        assert [p['Name'] for p in remaining] == ['/ecs/dev/app/keep']
