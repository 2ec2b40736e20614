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

from aws_cdk import (
    Stack,
    CfnOutput,
    aws_ec2 as ec2,
    aws_s3_assets as s3_assets,
)
from aws_cdk.aws_secretsmanager import ISecret
from constructs import Construct
from splunk_on_aws.cdk_infra.iam_roles import IamConst
from splunk_on_aws.cdk_infra.splunk_host import ROOT_DEVICE, PublicSplunkHostConst, gp3_volume
from splunk_on_aws.config import SplunkConfig, apply_common_tags
from splunk_on_aws.splunk_cluster_stack import secrets_console_url
from splunk_on_aws.util import es_package, license_helper, splunk_download
from splunk_on_aws.util.bootstrap import ES_DATA_MODEL_VOLUME, SplunkBootstrap


class SplunkEsStack(Stack):
    """Enterprise Security search head, attached to the indexer cluster like the ad-hoc search head."""

    @property
    def es_search_head(self):
        return self._host.instance

    @property
    def elastic_ip(self):
        return self._host.elastic_ip

    def __init__(self, scope: Construct, id: str,
        config: SplunkConfig,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
        cluster_manager_ip: str,
        splunk_admin_secret: ISecret,
        cluster_secret: ISecret,
        **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        iam = IamConst(self, 'iam_roles', [splunk_admin_secret, cluster_secret])

        # 1. ES app package, uploaded as a CDK asset
        es_asset = None
        package = es_package.check_local_package(config)
        if package:
            es_asset = s3_assets.Asset(self, 'ESPackageAsset', path=package.path)
            es_asset.grant_read(iam.splunk_role)

        # 2. search head with a dedicated data model volume
        self._host = PublicSplunkHostConst(self, 'EsSearchHead',
            vpc=vpc,
            security_group=security_group,
            role=iam.splunk_role,
            instance_type=config.es_search_head_instance_type,
            block_devices=[
                gp3_volume(ROOT_DEVICE, config.root_volume_size, config.enable_encryption),
                gp3_volume(ES_DATA_MODEL_VOLUME[0], config.es_data_model_volume_size, config.enable_encryption),
            ],
        )

        splunk_download.validate_config(config)
        bootstrap = SplunkBootstrap(config,
            admin_secret_arn=splunk_admin_secret.secret_arn,
            cluster_secret_arn=cluster_secret.secret_arn,
            region=self.region)
        self._host.instance.user_data.add_commands(*bootstrap.es_search_head_commands(
            cluster_manager_ip,
            es_package_s3_url=es_asset.s3_object_url if es_asset else None,
            es_package_filename=package.filename if package else None,
        ))

        apply_common_tags(self)

        CfnOutput(self, 'EsSearchHeadPrivateIp',
            value=self._host.instance.instance_private_ip,
            export_name=f'{self.stack_name}-EsSearchHeadIP')
        CfnOutput(self, 'EsWebUrl',
            value=f'http://{self.elastic_ip}:8000',
            description='ES Search Head Web UI URL')
        CfnOutput(self, 'EsSearchHeadElasticIP',
            value=self.elastic_ip,
            description='Elastic IP address of the ES Search Head')
        CfnOutput(self, 'EsAdminSecretConsoleUrl',
            value=secrets_console_url(splunk_admin_secret, self.region),
            description='Direct link to the Splunk admin password in AWS Secrets Manager')
        CfnOutput(self, 'EsSearchHeadSessionManagerCommand',
            value=f'aws ssm start-session --target {self._host.instance.instance_id}',
            description='Command to connect to ES Search Head via Session Manager')
        CfnOutput(self, 'EsConfiguration',
            value=(f'Instance Type: {config.es_search_head_instance_type} | '
                   f'System Storage: {config.root_volume_size}GB | '
                   f'Data Model Storage: {config.es_data_model_volume_size}GB'),
            description='Enterprise Security configuration summary')
        CfnOutput(self, 'EsPackageStatus',
            value='ES package will be automatically installed during deployment'
                if es_asset else 'ES package not found - manual installation required',
            description='Enterprise Security package installation status')
        CfnOutput(self, 'EsSearchHeadLicenseStatus',
            value='License enabled - ES Search Head configured as license peer to Cluster Manager'
                if license_helper.is_license_install_enabled(config)
                else 'Using 60-day trial license (500MB/day)',
            description='Splunk Enterprise license status for ES Search Head')
        CfnOutput(self, 'EsSearchHeadLicenseCheckCommand',
            value='sudo -u splunk /opt/splunk/bin/splunk list licenses -auth admin:<password>',
            description='Command to verify license status on ES Search Head')
