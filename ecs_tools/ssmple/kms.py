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

"""KMS key aliases, so stored files name keys by alias rather than key id."""

from loguru import logger
from typing import Dict, Optional


ALIAS_PREFIX = 'alias/'


class KmsAliasMap:
    def __init__(self, aliases_to_keys: Optional[Dict[str, str]] = None):
        self.aliases_to_keys: Dict[str, str] = dict(aliases_to_keys or {})
        self.keys_to_aliases: Dict[str, str] = {
            key: alias for alias, key in self.aliases_to_keys.items()
        }

    @classmethod
    def build(cls, kms_client) -> 'KmsAliasMap':
        """List every alias that targets a key."""
        alias_map = cls()
        paginator = kms_client.get_paginator('list_aliases')
        for page in paginator.paginate():
            for entry in page.get('Aliases', []):
                alias = entry.get('AliasName')
                key_id = entry.get('TargetKeyId')
                if alias and key_id:
                    alias_map.aliases_to_keys[alias] = key_id
                    alias_map.keys_to_aliases[key_id] = alias
        logger.debug(f'Loaded {len(alias_map.aliases_to_keys)} KMS aliases')
        return alias_map

    def deref(self, alias: str) -> str:
        """Resolve an alias, with or without the alias/ prefix, to its key id.

        Unknown aliases are returned in their alias/ form, which KMS accepts too.
        Known key ids and ARNs are returned unchanged.
        """
        if alias in self.keys_to_aliases or alias.startswith('arn:'):
            return alias
        qualified = alias if alias.startswith(ALIAS_PREFIX) else ALIAS_PREFIX + alias
        return self.aliases_to_keys.get(qualified, qualified)

    def alias_for(self, key_id: str) -> str:
        return self.keys_to_aliases.get(key_id, key_id)
