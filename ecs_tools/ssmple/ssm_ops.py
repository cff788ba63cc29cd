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

"""get, put, delete and clear of parameters mirrored by config files.

A file ``instance.properties`` under prefix ``/ecs/dev/app`` maps to the
parameter path ``/ecs/dev/app/instance``; each key of the file is one
parameter directly under that path. SecureString parameters are recorded
in the file with a ``<key>_SecureStringKeyId`` entry naming their KMS key.
"""

from ecs_tools.consts import SECURE_STRING_KEY_ID_SUFFIX, SSM_DELETE_BATCH_SIZE, SSM_PAGE_SIZE
from ecs_tools.ssmple.filestore import FileStore
from ecs_tools.ssmple.kms import KmsAliasMap
from ecs_tools.ssmple.paths import (
    build_parameter_path,
    escape_value_before_put,
    unescape_value_after_get,
)
from loguru import logger
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Sequence


PARAMETER_TYPE_STRING = 'String'
PARAMETER_TYPE_STRING_LIST = 'StringList'
PARAMETER_TYPE_SECURE_STRING = 'SecureString'


class SsmOptions(BaseModel):
    """Options shared by all ssmple commands."""

    prefixes: List[str] = Field(default_factory=list)
    key_id_put_all: Optional[str] = None
    overwrite_put: bool = False
    clear_on_put: bool = False
    no_store_secure_string: bool = False
    no_put_secure_string: bool = False


class SsmCommands:
    def __init__(
        self,
        ssm_client,
        stores: Dict[str, FileStore],
        kms_map: Optional[KmsAliasMap] = None,
        options: Optional[SsmOptions] = None,
    ):
        self.ssm = ssm_client
        self.stores = stores
        self.kms_map = kms_map or KmsAliasMap()
        self.options = options or SsmOptions()

    def find_all_parameters_for_path(self, param_path: str) -> List[Dict[str, Any]]:
        """Every parameter directly under param_path, decrypted."""
        params = []
        paginator = self.ssm.get_paginator('get_parameters_by_path')
        for page in paginator.paginate(
            Path=param_path,
            Recursive=False,
            WithDecryption=True,
            PaginationConfig={'PageSize': SSM_PAGE_SIZE},
        ):
            params.extend(page.get('Parameters', []))
        return params

    def secure_string_key_id(self, name: str) -> Optional[str]:
        response = self.ssm.describe_parameters(
            ParameterFilters=[{'Key': 'Name', 'Option': 'Equals', 'Values': [name]}]
        )
        found = response.get('Parameters', [])
        if found:
            return found[0].get('KeyId')
        return None

    def get_params_per_path(self, param_path: str, data: Dict[str, str]) -> None:
        for param in self.find_all_parameters_for_path(param_path):
            name = param['Name']
            param_type = param.get('Type')

            if param_type == PARAMETER_TYPE_STRING_LIST:
                continue
            if param_type == PARAMETER_TYPE_SECURE_STRING and self.options.no_store_secure_string:
                continue
            if not name.startswith(param_path + '/'):
                continue

            key = name[len(param_path) + 1 :]
            data[key] = unescape_value_after_get(param.get('Value', ''))

            if param_type == PARAMETER_TYPE_SECURE_STRING:
                key_id = self.secure_string_key_id(name)
                if key_id:
                    data[key + SECURE_STRING_KEY_ID_SUFFIX] = self.kms_map.alias_for(key_id)

    def get(self, filename: str) -> None:
        """Merge the parameters of every prefix into the file, later prefixes winning."""
        store = self.stores[filename]
        for prefix in self.options.prefixes:
            param_path = build_parameter_path(prefix, filename)
            logger.info(f'Getting parameters under {param_path}')
            self.get_params_per_path(param_path, store.data)

        if store.data:
            store.save()

    def put(self, filename: str, prefix: str) -> None:
        if self.options.clear_on_put:
            self.clear(filename, prefix)

        store = self.stores[filename]
        for key, value in store.data.items():
            if key.endswith(SECURE_STRING_KEY_ID_SUFFIX):
                continue

            name = build_parameter_path(prefix, filename, key)
            key_id = store.data.get(key + SECURE_STRING_KEY_ID_SUFFIX)
            is_secure = key_id is not None
            if is_secure and self.options.no_put_secure_string:
                logger.debug(f'Skipping SecureString {name}')
                continue

            if self.options.key_id_put_all:
                is_secure = True
                key_id = self.options.key_id_put_all

            kwargs: Dict[str, Any] = {
                'Name': name,
                'Value': escape_value_before_put(value),
                'Overwrite': self.options.overwrite_put,
                'Type': PARAMETER_TYPE_STRING,
            }
            if is_secure:
                kwargs['Type'] = PARAMETER_TYPE_SECURE_STRING
                kwargs['KeyId'] = self.kms_map.deref(key_id)

            logger.info(f'Putting {kwargs["Type"]} parameter {name}')
            self.ssm.put_parameter(**kwargs)

    def delete(self, filename: str, prefix: str) -> None:
        """Delete the parameters named by the keys of the file."""
        store = self.stores[filename]
        candidates = [build_parameter_path(prefix, filename, key) for key in store.data]

        param_path = build_parameter_path(prefix, filename)
        existing = {param['Name'] for param in self.find_all_parameters_for_path(param_path)}

        self.delete_parameters([name for name in candidates if name in existing])

    def clear(self, filename: str, prefix: str) -> None:
        """Delete every parameter under the path of the file."""
        param_path = build_parameter_path(prefix, filename)
        names = [param['Name'] for param in self.find_all_parameters_for_path(param_path)]
        self.delete_parameters(names)

    def delete_parameters(self, names: Sequence[str]) -> None:
        for start in range(0, len(names), SSM_DELETE_BATCH_SIZE):
            batch = list(names[start : start + SSM_DELETE_BATCH_SIZE])
            logger.info(f'Deleting {len(batch)} parameters')
            response = self.ssm.delete_parameters(Names=batch)
            invalid = response.get('InvalidParameters', [])
            if invalid:
                logger.warning(f'Parameters not deleted: {invalid}')
