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

import json

from aws_cdk import (
    Duration,
    Stack,
    CfnOutput,
    aws_autoscaling as autoscaling,
    aws_ec2 as ec2,
    aws_s3_assets as s3_assets,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct
from splunk_on_aws.cdk_infra.iam_roles import IamConst
from splunk_on_aws.cdk_infra.indexer_instance_resolver import IndexerResolverConst
from splunk_on_aws.cdk_infra.splunk_host import ROOT_DEVICE, gp3_volume, splunk_ami
from splunk_on_aws.config import SplunkConfig, apply_common_tags
from splunk_on_aws.util import license_helper, splunk_download
from splunk_on_aws.util.bootstrap import COLD_VOLUME, HOT_VOLUME, SplunkBootstrap

EXCLUDE_CHARACTERS = ' %+~`#$&*()|[]{}:;<>?!\'/@"\\^='


def secrets_console_url(secret: secretsmanager.ISecret, region: str) -> str:
    return f'https://console.aws.amazon.com/secretsmanager/secret?name={secret.secret_name}&region={region}'


class SplunkClusterStack(Stack):

    @property
    def cluster_manager(self):
        return self._cluster_manager

    @property
    def indexer_asg(self):
        return self._indexer_asg

    @property
    def splunk_admin_secret(self):
        return self._admin_secret

    @property
    def cluster_secret(self):
        return self._cluster_secret

    def __init__(self, scope: Construct, id: str,
        config: SplunkConfig,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
        **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        #########################################
        #######                           #######
        #######   Secrets                 #######
        #######                           #######
        #########################################
        self._admin_secret = secretsmanager.Secret(self, 'SplunkAdminPassword',
            description='Splunk admin password',
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template=json.dumps({'username': 'admin'}),
                generate_string_key='password',
                password_length=16,
                exclude_characters=EXCLUDE_CHARACTERS,
            )
        )
        self._cluster_secret = secretsmanager.Secret(self, 'SplunkClusterSecret',
            description='Splunk indexer cluster pass4SymmKey',
            generate_secret_string=secretsmanager.SecretStringGenerator(
                password_length=32,
                exclude_characters=EXCLUDE_CHARACTERS,
            )
        )
        iam = IamConst(self, 'iam_roles', [self._admin_secret, self._cluster_secret])

        # optional license file, uploaded as a CDK asset
        license_asset = None
        if license_helper.is_license_install_enabled(config):
            license_file = license_helper.check_local_license(config)
            if license_file:
                license_asset = s3_assets.Asset(self, 'LicenseAsset', path=license_file.path)
                license_asset.grant_read(iam.splunk_role)
            else:
                license_helper.display_license_instructions(config)

        splunk_download.validate_config(config)
        bootstrap = SplunkBootstrap(config,
            admin_secret_arn=self._admin_secret.secret_arn,
            cluster_secret_arn=self._cluster_secret.secret_arn,
            region=self.region)

        #########################################
        #######                           #######
        #######   Cluster manager         #######
        #######                           #######
        #########################################
        manager_user_data = ec2.UserData.for_linux()
        self._cluster_manager = ec2.Instance(self, 'ClusterManager',
            vpc=vpc,
            instance_type=ec2.InstanceType(config.cluster_manager_instance_type),
            machine_image=splunk_ami(),
            security_group=security_group,
            role=iam.splunk_role,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            block_devices=[gp3_volume(ROOT_DEVICE, config.root_volume_size, config.enable_encryption)],
            user_data=manager_user_data,
        )
        manager_user_data.add_commands(*bootstrap.cluster_manager_commands(
            license_s3_url=license_asset.s3_object_url if license_asset else None))

        #########################################
        #######                           #######
        #######   Indexers                #######
        #######                           #######
        #########################################
        manager_ip = self._cluster_manager.instance_private_ip
        indexer_user_data = ec2.UserData.for_linux()
        indexer_user_data.add_commands(*bootstrap.indexer_commands(manager_ip))

        launch_template = ec2.LaunchTemplate(self, 'IndexerLaunchTemplate',
            machine_image=splunk_ami(),
            instance_type=ec2.InstanceType(config.indexer_instance_type),
            security_group=security_group,
            role=iam.splunk_role,
            user_data=indexer_user_data,
            block_devices=[
                gp3_volume(ROOT_DEVICE, config.root_volume_size, config.enable_encryption),
                gp3_volume(HOT_VOLUME[0], config.indexer_hot_volume_size, config.enable_encryption),
                gp3_volume(COLD_VOLUME[0], config.indexer_cold_volume_size, config.enable_encryption),
            ]
        )
        self._indexer_asg = autoscaling.AutoScalingGroup(self, 'IndexerASG',
            vpc=vpc,
            launch_template=launch_template,
            min_capacity=config.indexer_count,
            max_capacity=config.indexer_count,
            desired_capacity=config.indexer_count,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            health_checks=autoscaling.HealthChecks.ec2(grace_period=Duration.minutes(15)),
        )

        indexer_resolver = IndexerResolverConst(self, 'IndexerResolver', self._indexer_asg)

        apply_common_tags(self)

        #########################################
        #######                           #######
        #######   Outputs                 #######
        #######                           #######
        #########################################
        CfnOutput(self, 'ClusterManagerPrivateIp',
            value=manager_ip,
            export_name=f'{self.stack_name}-ClusterManagerIP')
        CfnOutput(self, 'SplunkAdminSecretArn',
            value=self._admin_secret.secret_arn,
            export_name=f'{self.stack_name}-AdminSecretArn')
        CfnOutput(self, 'SplunkAdminSecretConsoleUrl',
            value=secrets_console_url(self._admin_secret, self.region),
            description='Direct link to the Splunk admin password in AWS Secrets Manager')
        CfnOutput(self, 'ClusterManagerWebUrl',
            value=f'http://{manager_ip}:8000',
            description='Cluster Manager Web UI URL (accessible from within VPC)')
        CfnOutput(self, 'ClusterManagerSessionManagerCommand',
            value=f'aws ssm start-session --target {self._cluster_manager.instance_id}',
            description='Command to connect to Cluster Manager via Session Manager')

        self._license_outputs(config, license_asset)

        CfnOutput(self, 'IndexerAccessCommands',
            value=indexer_resolver.session_manager_commands,
            description='Commands to access Indexer instances via Session Manager')
        CfnOutput(self, 'IndexerListCommand',
            value=(
                'aws ec2 describe-instances '
                f'--filters "Name=tag:aws:autoscaling:groupName,Values={self._indexer_asg.auto_scaling_group_name}" '
                '"Name=instance-state-name,Values=running" '
                '--query "Reservations[*].Instances[*].{InstanceId:InstanceId,PrivateIp:PrivateIpAddress,'
                'AZ:Placement.AvailabilityZone}" --output table'
            ),
            description='Command to list all Indexer instances')
        CfnOutput(self, 'IndexerConfiguration',
            value=(f'Count: {config.indexer_count} | Instance Type: {config.indexer_instance_type} | '
                   f'Replication Factor: {config.replication_factor} | Search Factor: {config.search_factor}'),
            description='Indexer cluster configuration summary')
        CfnOutput(self, 'IndexerTroubleshootingGuide',
            value=' | '.join([
                'If Indexers fail to join cluster:',
                '1. Connect via: aws ssm start-session --target <indexer-instance-id>',
                '2. Check logs: tail -100 /var/log/cloud-init-output.log | grep -E "(cluster|ERROR)"',
                '3. Check cluster status: /opt/splunk/bin/splunk show cluster-member-info -auth admin:<password>',
                f'4. Manual fix: /opt/splunk/bin/splunk edit cluster-config -mode peer '
                f'-manager_uri https://{manager_ip}:8089 -replication_port {config.replication_port} '
                f'-secret <cluster-secret> -auth admin:<password>',
                '5. Restart Splunk: /opt/splunk/bin/splunk restart',
                '6. Verify: /opt/splunk/bin/splunk list cluster-config -auth admin:<password>',
            ]),
            description='Quick troubleshooting guide for Indexer cluster join issues')
        CfnOutput(self, 'ClusterHealthCheckCommand',
            value='/opt/splunk/bin/splunk show cluster-status -auth admin:<password>',
            description='Command to check overall cluster health (run on Cluster Manager)')
        CfnOutput(self, 'DataIngestionPorts',
            value='S2S: 9997 | HEC: 8088 | Management: 8089',
            description='Splunk data ingestion and management ports')

    def _license_outputs(self, config: SplunkConfig, license_asset) -> None:
        CfnOutput(self, 'LicenseInstallationStatus',
            value='Enabled - License will be installed on Cluster Manager'
                if license_helper.is_license_install_enabled(config)
                else 'Disabled - Using trial license (60 days, 500MB/day)',
            description='Status of Splunk Enterprise license installation')

        if not license_helper.is_license_install_enabled(config):
            return

        CfnOutput(self, 'LicenseFilePath',
            value=config.license_package_local_path or f'./{license_helper.DEFAULT_LICENSE_DIR}',
            description='Expected location of license file')
        CfnOutput(self, 'LicenseFileStatus',
            value=f'License file found and will be installed: {license_asset.s3_object_key}'
                if license_asset else 'License file not found - using trial license',
            description='License file detection status')
        CfnOutput(self, 'LicenseCheckCommand',
            value='sudo -u splunk /opt/splunk/bin/splunk list licenses -auth admin:<password>',
            description='Command to verify installed licenses (run on Cluster Manager)')
