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
Deployment options for the Splunk CDK app.

Options are read, in priority order, from:
1. command-line context (``--context key=value``)
2. environment variables
3. ``cdk.json`` context
4. defaults
"""

import logging
import os
import os.path as path
from dataclasses import dataclass
from typing import Optional

from aws_cdk import App

from splunk_on_aws.config import DEFAULT_CONFIG, SplunkConfig
from splunk_on_aws.util import es_package, license_helper
from splunk_on_aws.util.manifest_reader import load_yaml_local

logger = logging.getLogger(__name__)

DEFAULT_DEPLOYMENT_SIZE = 'medium'

# indexer counts up to this value map onto the medium size
MEDIUM_MAX_INDEXERS = 4


def load_deployment_sizes():
    return load_yaml_local('deployment-sizes.yaml')


SPLUNK_CONFIGURATIONS = load_deployment_sizes()


@dataclass
class DeploymentOptions:
    enable_enterprise_security: bool
    enable_license_install: bool
    deployment_size: str
    indexer_count: int
    replication_factor: int
    search_factor: int
    indexer_instance_type: str
    search_head_instance_type: str
    es_search_head_instance_type: str
    skip_confirmation: bool = False
    es_package_path: Optional[str] = None
    license_path: Optional[str] = None


class DeploymentOptionsManager:

    def __init__(self, app: App, environ=None, search_root: Optional[str] = None) -> None:
        self.app = app
        self.environ = os.environ if environ is None else environ
        self.search_root = search_root or os.getcwd()
        self.options = self._collect_options()

    def _collect_options(self) -> DeploymentOptions:
        deployment_size = self.get_string_option('deploymentSize', 'DEPLOYMENT_SIZE')
        if deployment_size not in SPLUNK_CONFIGURATIONS:
            if deployment_size:
                logger.warning("Unknown deployment size '%s' ignored", deployment_size)
            deployment_size = None

        # a custom indexer count is mapped onto the closest preset size
        custom_indexer_count = self.get_number_option('indexerCount', 'INDEXER_COUNT')
        if custom_indexer_count and not deployment_size:
            deployment_size = 'medium' if custom_indexer_count <= MEDIUM_MAX_INDEXERS else 'large'
            logger.warning("Custom indexer count (%d) mapped to '%s' deployment (%d indexers)",
                           custom_indexer_count, deployment_size,
                           SPLUNK_CONFIGURATIONS[deployment_size]['indexer_count'])
            logger.info('Use --context deploymentSize=<size> to explicitly set deployment size')

        deployment_size = deployment_size or DEFAULT_DEPLOYMENT_SIZE
        selected = SPLUNK_CONFIGURATIONS[deployment_size]

        options = DeploymentOptions(
            enable_enterprise_security=self.get_boolean_option('enableES', 'ENABLE_ES', False),
            enable_license_install=self.get_boolean_option('enableLicense', 'ENABLE_LICENSE', False),
            deployment_size=deployment_size,
            indexer_count=selected['indexer_count'],
            replication_factor=selected['replication_factor'],
            search_factor=selected['search_factor'],
            indexer_instance_type=selected['indexer_instance_type'],
            search_head_instance_type=selected['search_head_instance_type'],
            es_search_head_instance_type=selected['es_search_head_instance_type'],
            skip_confirmation=self.get_boolean_option('skipConfirmation', 'SKIP_CONFIRMATION', False),
        )

        if options.enable_enterprise_security:
            found = es_package.check_local_package(DEFAULT_CONFIG, self.search_root)
            options.es_package_path = found.path if found else None
        if options.enable_license_install:
            found = license_helper.check_local_license(DEFAULT_CONFIG, self.search_root)
            options.license_path = found.path if found else None

        return options

    # %% option lookup

    def get_boolean_option(self, context_key, env_key, default_value=False):
        context_value = self.app.node.try_get_context(context_key)
        if context_value is not None:
            return context_value is True or str(context_value).lower() == 'true'

        env_value = self.environ.get(env_key)
        if env_value is not None:
            return env_value.lower() == 'true'

        return default_value

    def get_string_option(self, context_key, env_key, default_value=None):
        return self.app.node.try_get_context(context_key) or self.environ.get(env_key) or default_value

    def get_number_option(self, context_key, env_key, default_value=None):
        value = self.app.node.try_get_context(context_key) or self.environ.get(env_key)
        if value is None:
            return default_value
        try:
            return int(value)
        except (TypeError, ValueError):
            return default_value

    # %% reporting

    def display_summary(self) -> None:
        options = self.options
        logger.info('=' * 80)
        logger.info('Splunk Deployment Configuration Summary')
        logger.info('=' * 80)
        logger.info('Core Configuration:')
        logger.info('  Deployment Size: %s - %s', options.deployment_size.upper(),
                    SPLUNK_CONFIGURATIONS[options.deployment_size]['description'])
        logger.info('  Indexer Count: %d', options.indexer_count)
        logger.info('  Replication Factor: %d', options.replication_factor)
        logger.info('  Search Factor: %d', options.search_factor)
        logger.info('  Indexer Instance Type: %s', options.indexer_instance_type)
        logger.info('  Search Head Instance Type: %s', options.search_head_instance_type)

        logger.info('Optional Components:')
        logger.info('  Enterprise Security: %s', 'Enabled' if options.enable_enterprise_security else 'Disabled')
        if options.enable_enterprise_security:
            if options.es_package_path:
                logger.info('    ES Package: %s', path.basename(options.es_package_path))
            else:
                logger.warning('    ES Package not found in packages/')
            logger.info('    ES Instance Type: %s', options.es_search_head_instance_type)

        logger.info('  License Installation: %s', 'Enabled' if options.enable_license_install else 'Disabled')
        if options.enable_license_install:
            if options.license_path:
                logger.info('    License File: %s', path.basename(options.license_path))
            else:
                logger.warning('    License file not found in licenses/')
        logger.info('=' * 80)

    def validate(self) -> bool:
        is_valid = True

        if self.options.enable_enterprise_security and not self.options.es_package_path:
            logger.error('Enterprise Security is enabled but no ES package found in packages/')
            logger.error('Please download ES from https://splunkbase.splunk.com/app/263')
            is_valid = False

        if self.options.enable_license_install and not self.options.license_path:
            logger.warning('License installation is enabled but no license file found in licenses/')
            logger.warning('Deployment will continue with trial license')

        return is_valid

    def get_configuration(self) -> SplunkConfig:
        options = self.options
        return DEFAULT_CONFIG.with_overrides(
            enable_enterprise_security=options.enable_enterprise_security,
            enable_license_install=options.enable_license_install,
            indexer_count=options.indexer_count,
            replication_factor=options.replication_factor,
            search_factor=options.search_factor,
            indexer_instance_type=options.indexer_instance_type,
            search_head_instance_type=options.search_head_instance_type,
            es_search_head_instance_type=options.es_search_head_instance_type,
            es_package_local_path=options.es_package_path,
            license_package_local_path=options.license_path,
        ).validate()

    def get_options(self) -> DeploymentOptions:
        return self.options

    def should_skip_confirmation(self) -> bool:
        return bool(self.options.skip_confirmation)


USAGE_EXAMPLES = """
Deployment Examples:
====================

1. Basic deployment (medium size, trial license, no ES):
   npx cdk deploy --all

2. Deploy with Enterprise Security:
   npx cdk deploy --all --context enableES=true

3. Deploy with license installation:
   npx cdk deploy --all --context enableLicense=true

4. Select deployment size:
   npx cdk deploy --all --context deploymentSize=medium  # 3 indexers
   npx cdk deploy --all --context deploymentSize=large   # 6 indexers

5. Production deployment (large size with ES and license):
   npx cdk deploy --all \\
     --context deploymentSize=large \\
     --context enableES=true \\
     --context enableLicense=true

6. Skip confirmation message:
   npx cdk deploy --all --context skipConfirmation=true

7. Using environment variables:
   export DEPLOYMENT_SIZE=large
   export ENABLE_ES=true
   export ENABLE_LICENSE=true
   npx cdk deploy --all

Deployment sizes follow Splunk best practices:
  - Medium: 3 indexers, RF=3, SF=2
  - Large: 6 indexers, RF=3, SF=2
"""
