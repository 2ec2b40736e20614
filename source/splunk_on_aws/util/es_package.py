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

"""Splunk Enterprise Security package discovery and installation commands."""

import logging
import os
import os.path as path
import re

from splunk_on_aws.config import ConfigurationError, SplunkConfig
from splunk_on_aws.util.local_files import find_local_file
from splunk_on_aws.util.manifest_reader import load_script_replace_var_local

logger = logging.getLogger(__name__)

DEFAULT_ES_PACKAGE_DIR = 'packages'
ES_PACKAGE_PATTERN = re.compile(r'splunk-(es-|enterprise-security).*\.(tgz|tar\.gz|spl)$', re.IGNORECASE)


class PackageNotFoundError(ConfigurationError):
    """Enterprise Security is enabled but no package is available to upload."""


def check_local_package(config: SplunkConfig, search_root=None):
    search_root = search_root or os.getcwd()
    return find_local_file(config.es_package_local_path,
                           path.join(search_root, DEFAULT_ES_PACKAGE_DIR),
                           ES_PACKAGE_PATTERN)


def display_download_instructions(config: SplunkConfig, search_root=None) -> None:
    if config.es_package_local_path:
        packages_dir = path.dirname(config.es_package_local_path)
    else:
        packages_dir = path.join(search_root or os.getcwd(), DEFAULT_ES_PACKAGE_DIR)

    logger.warning('=' * 80)
    logger.warning('Splunk Enterprise Security Package Not Found')
    logger.warning('=' * 80)
    logger.warning('1. Download ES from Splunkbase (https://splunkbase.splunk.com/app/263)')
    logger.warning('2. Place the downloaded file in: %s/', path.abspath(packages_dir))
    logger.warning('3. Example filename: splunk-es-8.1.1.tgz')


def validate_config(config: SplunkConfig, search_root=None) -> None:
    if not config.enable_enterprise_security:
        return

    package = check_local_package(config, search_root)
    if package is None:
        display_download_instructions(config, search_root)
        raise PackageNotFoundError(
            'Enterprise Security package not found. Please follow the instructions above to add the package.')

    logger.info('ES package found: %s', package.filename)


def generate_download_script(s3_url, local_file):
    return load_script_replace_var_local('bootstrap/es-download.sh', fields={
        '{{esPackageUrl}}': s3_url,
        '{{esPackageFile}}': local_file,
    })


def generate_install_script(uploaded_path):
    return load_script_replace_var_local('bootstrap/es-install.sh', fields={
        '{{esPackageFile}}': uploaded_path,
    })


def generate_health_check_script():
    return load_script_replace_var_local('bootstrap/es-health-check.sh')


def generate_manual_install_notice():
    return load_script_replace_var_local('bootstrap/es-manual-install.sh')
