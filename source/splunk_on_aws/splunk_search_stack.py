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
)
from aws_cdk.aws_secretsmanager import ISecret
from constructs import Construct
from splunk_on_aws.cdk_infra.iam_roles import IamConst
from splunk_on_aws.cdk_infra.splunk_host import ROOT_DEVICE, PublicSplunkHostConst, gp3_volume
from splunk_on_aws.config import SplunkConfig, apply_common_tags
from splunk_on_aws.splunk_cluster_stack import secrets_console_url
from splunk_on_aws.util import license_helper, splunk_download
from splunk_on_aws.util.bootstrap import SplunkBootstrap


class SplunkSearchStack(Stack):

    @property
    def search_head(self):
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

        # 1. search head with a fixed public address
        self._host = PublicSplunkHostConst(self, 'SearchHead',
            vpc=vpc,
            security_group=security_group,
            role=iam.splunk_role,
            instance_type=config.search_head_instance_type,
            block_devices=[gp3_volume(ROOT_DEVICE, config.search_head_volume_size, config.enable_encryption)],
        )

        # 2. join the indexer cluster and register the indexers as search peers
        splunk_download.validate_config(config)
        bootstrap = SplunkBootstrap(config,
            admin_secret_arn=splunk_admin_secret.secret_arn,
            cluster_secret_arn=cluster_secret.secret_arn,
            region=self.region)
        self._host.instance.user_data.add_commands(*bootstrap.search_head_commands(cluster_manager_ip))

        apply_common_tags(self)

        CfnOutput(self, 'SearchHeadPrivateIp',
            value=self._host.instance.instance_private_ip,
            export_name=f'{self.stack_name}-SearchHeadIP',
            description='Private IP address of the Search Head instance')
        CfnOutput(self, 'SplunkWebUrl',
            value=f'http://{self.elastic_ip}:8000',
            description='Splunk Web UI URL (username: admin, password: check Secrets Manager)')
        CfnOutput(self, 'SearchHeadElasticIP',
            value=self.elastic_ip,
            description='Elastic IP address of the Search Head')
        CfnOutput(self, 'SearchHeadSessionManagerCommand',
            value=f'aws ssm start-session --target {self._host.instance.instance_id}',
            description='Command to connect to Search Head via Session Manager')
        CfnOutput(self, 'SearchHeadAdminSecretConsoleUrl',
            value=secrets_console_url(splunk_admin_secret, self.region),
            description='Direct link to the Splunk admin password in AWS Secrets Manager')
        CfnOutput(self, 'SearchHeadConfiguration',
            value=(f'Instance Type: {config.search_head_instance_type} | '
                   f'Storage: {config.search_head_volume_size}GB | Port: 8000'),
            description='Search Head configuration summary')
        CfnOutput(self, 'SearchHeadLicenseStatus',
            value='License enabled - Search Head configured as license peer to Cluster Manager'
                if license_helper.is_license_install_enabled(config)
                else 'Using 60-day trial license (500MB/day)',
            description='Splunk Enterprise license status for Search Head')
        CfnOutput(self, 'SearchHeadLicenseCheckCommand',
            value='sudo -u splunk /opt/splunk/bin/splunk list licenses -auth admin:<password>',
            description='Command to verify license status on Search Head')
