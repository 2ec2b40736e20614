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

"""Splunk Enterprise license file discovery and the boot commands that install or consume it."""

import logging
import os
import os.path as path
import re

from splunk_on_aws.config import SplunkConfig
from splunk_on_aws.util.local_files import find_local_file
from splunk_on_aws.util.manifest_reader import load_script_replace_var_local

logger = logging.getLogger(__name__)

DEFAULT_LICENSE_DIR = 'licenses'
LICENSE_FILE_PATTERN = re.compile(r'\.(xml|lic|license)$', re.IGNORECASE)


def is_license_install_enabled(config: SplunkConfig) -> bool:
    return config.enable_license_install is True


def check_local_license(config: SplunkConfig, search_root=None):
    search_root = search_root or os.getcwd()
    return find_local_file(config.license_package_local_path,
                           path.join(search_root, DEFAULT_LICENSE_DIR),
                           LICENSE_FILE_PATTERN)


def display_license_instructions(config: SplunkConfig, search_root=None) -> None:
    if config.license_package_local_path:
        licenses_dir = path.dirname(config.license_package_local_path)
    else:
        licenses_dir = path.join(search_root or os.getcwd(), DEFAULT_LICENSE_DIR)

    logger.warning('=' * 80)
    logger.warning('Splunk Enterprise License File Not Found')
    logger.warning('=' * 80)
    logger.warning('To add a license file:')
    logger.warning('1. Obtain a license file from Splunk')
    logger.warning('2. Place the license file in: %s/', path.abspath(licenses_dir))
    logger.warning('3. Supported formats: .xml (splunk-enterprise.xml), .lic (splunk-20gb.lic), '
                   '.License (Splunk.License)')


def generate_install_script(uploaded_path):
    return load_script_replace_var_local('bootstrap/license-install.sh', fields={
        '{{licenseFile}}': uploaded_path,
    })


def generate_license_manager_script():
    # installing a license turns this node into the license manager
    return load_script_replace_var_local('bootstrap/license-manager.sh')


def generate_license_peer_script(license_manager_ip):
    return load_script_replace_var_local('bootstrap/license-peer.sh', fields={
        '{{licenseManagerIp}}': license_manager_ip,
    })
