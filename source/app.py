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

#!/usr/bin/env python3
import logging
import os
import sys

from aws_cdk import App, Environment
from splunk_on_aws.config import ConfigurationError
from splunk_on_aws.deployment_options import USAGE_EXAMPLES, DeploymentOptionsManager
from splunk_on_aws.network_stack import NetworkStack
from splunk_on_aws.splunk_cluster_stack import SplunkClusterStack
from splunk_on_aws.splunk_data_ingestion_stack import SplunkDataIngestionStack
from splunk_on_aws.splunk_es_stack import SplunkEsStack
from splunk_on_aws.splunk_search_stack import SplunkSearchStack
from splunk_on_aws.util import es_package
from splunk_on_aws.util.manifest_reader import ManifestError

logger = logging.getLogger('splunk_on_aws')

DEFAULT_REGION = 'us-west-2'
STACK_PREFIX = 'SelfManagedSplunk'


def setup_logging(app: App, environ=os.environ) -> None:
    debug = app.node.try_get_context('debug') in (True, 'true') \
        or environ.get('SPLUNK_CDK_DEBUG', '').lower() == 'true'
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def build_stacks(app: App, options_manager: DeploymentOptionsManager, environ=os.environ) -> dict:
    """Create every stack of the deployment and wire their dependencies."""
    config = options_manager.get_configuration()
    env = Environment(
        account=environ.get('CDK_DEFAULT_ACCOUNT'),
        region=environ.get('CDK_DEFAULT_REGION') or DEFAULT_REGION,
    )

    # main stacks
    network_stack = NetworkStack(app, f'{STACK_PREFIX}-Network', config,
        env=env,
        description='Splunk Enterprise Network Infrastructure')

    cluster_stack = SplunkClusterStack(app, f'{STACK_PREFIX}-IndexerCluster', config,
        vpc=network_stack.vpc,
        security_group=network_stack.splunk_cluster_security_group,
        env=env,
        description='Splunk Enterprise Indexer Cluster (Cluster Manager + Indexers)')
    cluster_stack.add_dependency(network_stack)

    search_stack = SplunkSearchStack(app, f'{STACK_PREFIX}-SearchHead', config,
        vpc=network_stack.vpc,
        security_group=network_stack.splunk_cluster_security_group,
        cluster_manager_ip=cluster_stack.cluster_manager.instance_private_ip,
        splunk_admin_secret=cluster_stack.splunk_admin_secret,
        cluster_secret=cluster_stack.cluster_secret,
        env=env,
        description='Splunk Enterprise Search Head with Elastic IP')
    search_stack.add_dependency(network_stack)
    search_stack.add_dependency(cluster_stack)

    ingestion_stack = SplunkDataIngestionStack(app, f'{STACK_PREFIX}-DataIngestion', config,
        vpc=network_stack.vpc,
        indexer_asg=cluster_stack.indexer_asg,
        security_group=network_stack.splunk_cluster_security_group,
        domain_name=options_manager.get_string_option('domainName', 'HEC_DOMAIN_NAME'),
        hosted_zone_id=options_manager.get_string_option('hostedZoneId', 'HEC_HOSTED_ZONE_ID'),
        env=env,
        description='Splunk Data Ingestion Infrastructure (NLB for S2S and HEC with optional HTTPS)')
    # the ASG registration already orders the cluster stack after this one
    ingestion_stack.add_dependency(network_stack)

    stacks = {
        'network': network_stack,
        'cluster': cluster_stack,
        'search': search_stack,
        'ingestion': ingestion_stack,
    }

    if config.enable_enterprise_security:
        es_package.validate_config(config)
        es_stack = SplunkEsStack(app, f'{STACK_PREFIX}-ES', config,
            vpc=network_stack.vpc,
            security_group=network_stack.splunk_cluster_security_group,
            cluster_manager_ip=cluster_stack.cluster_manager.instance_private_ip,
            splunk_admin_secret=cluster_stack.splunk_admin_secret,
            cluster_secret=cluster_stack.cluster_secret,
            env=env,
            description='Splunk Enterprise Security Search Head with Elastic IP')
        es_stack.add_dependency(network_stack)
        es_stack.add_dependency(cluster_stack)
        es_stack.add_dependency(search_stack)
        stacks['es'] = es_stack
        logger.info('Enterprise Security stack will be deployed')
    else:
        logger.info('Enterprise Security is disabled. To enable: --context enableES=true')

    logger.info('Deployment Information:')
    logger.info('  Region: %s', env.region)
    logger.info('  Account: %s', env.account or 'current')
    logger.info('  Stacks to deploy: %d', len(stacks))
    return stacks


def main() -> int:
    app = App()
    setup_logging(app)

    options_manager = DeploymentOptionsManager(app)
    options_manager.display_summary()
    if not options_manager.validate():
        logger.error('Deployment validation failed. Please fix the errors above.')
        logger.info(USAGE_EXAMPLES)
        return 1

    if not options_manager.should_skip_confirmation():
        logger.info('To proceed with deployment, use the CDK deploy command.')
        logger.info('To skip this message, add: --context skipConfirmation=true')

    try:
        build_stacks(app, options_manager)
    except (ConfigurationError, ManifestError) as err:
        logger.error('Failed to create stacks: %s', err)
        return 1

    logger.info('Useful commands: npx cdk deploy --all | npx cdk list | npx cdk diff --all | npx cdk destroy --all')
    app.synth()
    return 0


if __name__ == '__main__':
    sys.exit(main())
