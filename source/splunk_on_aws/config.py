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
Configuration parameters for the Splunk Enterprise deployment.

The deployment is tuned for us-west-2 (Oregon). Instance types use the M7i
family, which gives noticeably better CPU throughput than M5 for a small
price increase.
"""

from dataclasses import dataclass, replace
from typing import List, Optional

from aws_cdk import Tags
from constructs import IConstruct


class ConfigurationError(Exception):
    """The deployment configuration cannot be synthesized."""


@dataclass(frozen=True)
class SplunkConfig:
    # network
    vpc_cidr: str = '10.0.0.0/16'
    max_azs: int = 3

    # instances
    indexer_instance_type: str = 'm7i.xlarge'
    search_head_instance_type: str = 'm7i.large'
    es_search_head_instance_type: str = 'm7i.2xlarge'
    cluster_manager_instance_type: str = 'm7i.large'

    # splunk
    splunk_version: str = '10.0.0'
    splunk_build_id: Optional[str] = 'e8eb0c4654f8'
    splunk_download_url: Optional[str] = None
    enable_enterprise_security: bool = False

    # enterprise security
    es_version: Optional[str] = None
    es_package_local_path: Optional[str] = None

    # license
    enable_license_install: bool = False
    license_package_local_path: Optional[str] = None

    # storage, GB
    root_volume_size: int = 100
    indexer_hot_volume_size: int = 200
    indexer_cold_volume_size: int = 500
    search_head_volume_size: int = 100
    es_data_model_volume_size: int = 500

    # indexer cluster
    replication_factor: int = 3
    search_factor: int = 2
    indexer_count: int = 3
    replication_port: int = 9100
    hec_default_token: str = 'aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee'

    # security
    allowed_ip_ranges: Optional[List[str]] = None
    enable_encryption: bool = True

    # tags
    environment: str = 'development'
    project: str = 'splunk-cluster'
    data_classification: Optional[str] = 'sensitive'
    owner: Optional[str] = 'platform-team'
    cost_center: Optional[str] = None

    def with_overrides(self, **overrides) -> 'SplunkConfig':
        return replace(self, **overrides)

    def validate(self) -> 'SplunkConfig':
        if min(self.replication_factor, self.search_factor, self.indexer_count) < 1:
            raise ConfigurationError(
                'replication_factor, search_factor and indexer_count must all be at least 1')
        if self.search_factor > self.replication_factor:
            raise ConfigurationError(
                f'search_factor ({self.search_factor}) cannot exceed '
                f'replication_factor ({self.replication_factor})')
        if self.replication_factor > self.indexer_count:
            raise ConfigurationError(
                f'replication_factor ({self.replication_factor}) cannot exceed '
                f'indexer_count ({self.indexer_count})')

        volumes = {
            'root_volume_size': self.root_volume_size,
            'indexer_hot_volume_size': self.indexer_hot_volume_size,
            'indexer_cold_volume_size': self.indexer_cold_volume_size,
            'search_head_volume_size': self.search_head_volume_size,
            'es_data_model_volume_size': self.es_data_model_volume_size,
        }
        for name, size in volumes.items():
            if size <= 0:
                raise ConfigurationError(f'{name} must be a positive number of GB, got {size}')
        return self


@dataclass(frozen=True)
class CommonTags:
    splunkit_environment_type: str = 'non-prd'
    splunkit_data_classification: str = 'private'
    project: Optional[str] = None
    owner: Optional[str] = None
    cost_center: Optional[str] = None

    def as_dict(self):
        tags = {
            'splunkit_environment_type': self.splunkit_environment_type,
            'splunkit_data_classification': self.splunkit_data_classification,
        }
        # optional tags are only written when set
        for key, value in (('Project', self.project), ('Owner', self.owner), ('CostCenter', self.cost_center)):
            if value:
                tags[key] = value
        return tags


DEFAULT_CONFIG = SplunkConfig()

CONFIG_WITH_ES = DEFAULT_CONFIG.with_overrides(enable_enterprise_security=True)

PRODUCTION_CONFIG = DEFAULT_CONFIG.with_overrides(
    indexer_instance_type='m7i.2xlarge',
    search_head_instance_type='m7i.xlarge',
    es_search_head_instance_type='m7i.4xlarge',
    cluster_manager_instance_type='m7i.large',
    indexer_hot_volume_size=500,
    indexer_cold_volume_size=1000,
    search_head_volume_size=200,
    es_data_model_volume_size=1000,
    environment='production',
)

DEFAULT_TAGS = CommonTags(
    project=DEFAULT_CONFIG.project,
    owner=DEFAULT_CONFIG.owner,
)


def apply_common_tags(scope: IConstruct, tags: CommonTags = DEFAULT_TAGS) -> None:
    for key, value in tags.as_dict().items():
        Tags.of(scope).add(key, value)
