######################################################################################################################
# Copyright 2020-2021 Amazon.com, Inc. or its affiliates. All Rights Reserved.                                      #
#                                                                                                                   #
# Licensed under the Apache License, Version 2.0 (the "License"). You may not use this file except in compliance    #
# with the License. A copy of the License is located at                                                             #
#                                                                                                                   #
#     http://www.apache.org/licenses/LICENSE-2.0                                                                    #
#                                                                                                                   #
# or in the 'license' file accompanying this file. This file is distributed on an 'AS IS' BASIS, WITHOUT WARRANTIES #
# OR CONDITIONS OF ANY KIND, express or implied. See the License for the specific language governing permissions    #
# and limitations under the License.                                                                                #
######################################################################################################################

import os
import os.path as path
from dataclasses import dataclass


@dataclass(frozen=True)
class LocalFile:
    path: str
    filename: str


def find_local_file(configured_path, search_dir, pattern):
    """Locate a file uploaded as a CDK asset.

    An explicitly configured path wins when it exists; otherwise the first
    matching name in ``search_dir`` (sorted) is returned.
    """
    if configured_path and path.isfile(configured_path):
        return LocalFile(configured_path, path.basename(configured_path))

    if not path.isdir(search_dir):
        return None

    for filename in sorted(os.listdir(search_dir)):
        candidate = path.join(search_dir, filename)
        if pattern.search(filename) and path.isfile(candidate):
            return LocalFile(candidate, filename)
    return None
