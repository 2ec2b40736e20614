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

"""
Splunk Enterprise download URLs.

Releases from 10.x onward embed the build id in the package name
(``splunk-10.0.0-e8eb0c4654f8-linux-amd64.tgz``); 9.x and earlier use
``splunk-<version>-Linux-x86_64.tgz``.
"""

import logging

from splunk_on_aws.config import ConfigurationError, SplunkConfig
from splunk_on_aws.util.manifest_reader import load_script_replace_var_local

logger = logging.getLogger(__name__)

BASE_URL = 'https://download.splunk.com/products/splunk/releases'


def major_version(config: SplunkConfig) -> int:
    try:
        return int(config.splunk_version.split('.')[0])
    except ValueError:
        raise ConfigurationError(f'Invalid Splunk version: {config.splunk_version!r}')


def _uses_build_id(config: SplunkConfig) -> bool:
    return major_version(config) >= 10


def legacy_filename(config: SplunkConfig) -> str:
    return f'splunk-{config.splunk_version}-Linux-x86_64.tgz'


def get_filename(config: SplunkConfig) -> str:
    if _uses_build_id(config):
        if not config.splunk_build_id:
            raise ConfigurationError(f'Build ID is required for Splunk version {config.splunk_version}')
        return f'splunk-{config.splunk_version}-{config.splunk_build_id}-linux-amd64.tgz'
    return legacy_filename(config)


def get_download_url(config: SplunkConfig) -> str:
    return f'{BASE_URL}/{config.splunk_version}/linux/{get_filename(config)}'


def generate_download_script(config: SplunkConfig):
    if config.splunk_download_url:
        download_url = config.splunk_download_url
        filename = download_url.rstrip('/').rsplit('/', 1)[-1]
    else:
        download_url = get_download_url(config)
        filename = get_filename(config)
    fallback = legacy_filename(config)

    return load_script_replace_var_local('bootstrap/splunk-download.sh', fields={
        '{{filename}}': filename,
        '{{downloadUrl}}': download_url,
        '{{fallbackFilename}}': fallback,
        '{{fallbackUrl}}': f'{BASE_URL}/{config.splunk_version}/linux/{fallback}',
    })


def validate_config(config: SplunkConfig) -> None:
    if _uses_build_id(config) and not config.splunk_build_id and not config.splunk_download_url:
        logger.warning(
            "Splunk %s typically requires a build ID. Consider adding 'splunk_build_id' to your "
            "configuration or providing a custom 'splunk_download_url'.", config.splunk_version)
