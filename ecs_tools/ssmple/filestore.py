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

"""A key/value config file under the conf dir."""

import os
from ecs_tools.ssmple.serial import get_serial_for
from loguru import logger
from typing import Dict


class FileStore:
    def __init__(self, conf_dir: str, filename: str):
        self.filename = filename
        self.path = os.path.join(conf_dir, filename)
        self.data: Dict[str, str] = {}

    def load(self) -> None:
        """Read the file. A missing file leaves the store empty."""
        try:
            self.data = get_serial_for(self.path).load(self.path)
        except FileNotFoundError:
            logger.debug(f'{self.path} does not exist yet')

    def save(self) -> None:
        get_serial_for(self.path).save(self.path, self.data)
        logger.info(f'Saved {len(self.data)} keys to {self.path}')
