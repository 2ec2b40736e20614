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
    aws_ec2 as ec2
)
from constructs import Construct
from splunk_on_aws.config import SplunkConfig, apply_common_tags


class NetworkStack(Stack):

    @property
    def vpc(self):
        return self._vpc

    @property
    def splunk_cluster_security_group(self):
        return self._cluster_sg

    @property
    def s2s_security_group(self):
        return self._s2s_sg

    def __init__(self, scope: Construct, id: str, config: SplunkConfig, **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        # 1. VPC across the configured AZs. A single NAT gateway keeps the cost down,
        # use nat_gateways=config.max_azs for a highly available egress path.
        self._vpc = ec2.Vpc(self, 'SplunkVpc',
            ip_addresses=ec2.IpAddresses.cidr(config.vpc_cidr),
            max_azs=config.max_azs,
            nat_gateways=1,
            subnet_configuration=[
                ec2.SubnetConfiguration(name='Public', subnet_type=ec2.SubnetType.PUBLIC, cidr_mask=24),
                ec2.SubnetConfiguration(name='Private', subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS, cidr_mask=24),
            ]
        )

        # 2. cluster internal traffic
        self._cluster_sg = ec2.SecurityGroup(self, 'SplunkClusterSG',
            vpc=self._vpc,
            description='Security group for Splunk cluster internal communication',
            allow_all_outbound=True,
        )
        self._cluster_sg.add_ingress_rule(self._cluster_sg, ec2.Port.tcp(8089), 'Splunk management port')
        self._cluster_sg.add_ingress_rule(self._cluster_sg, ec2.Port.tcp(9997), 'Splunk S2S port')
        # default replication port 9000 plus custom ones such as 9100 or 9887
        self._cluster_sg.add_ingress_rule(self._cluster_sg, ec2.Port.tcp_range(9000, 9999), 'Splunk replication ports')

        for peer in self._web_peers(config):
            self._cluster_sg.add_ingress_rule(peer, ec2.Port.tcp(8000), 'Direct Splunk Web UI access')

        # 3. data ingestion
        self._s2s_sg = ec2.SecurityGroup(self, 'S2sSecurityGroup',
            vpc=self._vpc,
            description='Security group for Splunk-to-Splunk data ingestion',
            allow_all_outbound=True,
        )
        self._s2s_sg.add_ingress_rule(ec2.Peer.any_ipv4(), ec2.Port.tcp(9997), 'S2S data ingestion')
        self._cluster_sg.add_ingress_rule(self._s2s_sg, ec2.Port.tcp(9997), 'S2S to Indexers')
        self._cluster_sg.add_ingress_rule(ec2.Peer.any_ipv4(), ec2.Port.tcp(8088), 'HEC data ingestion')

        # 4. S3 traffic bypasses the NAT gateway
        self._vpc.add_gateway_endpoint('S3Endpoint', service=ec2.GatewayVpcEndpointAwsService.S3)

        apply_common_tags(self)

        CfnOutput(self, 'VpcId', value=self._vpc.vpc_id, export_name=f'{self.stack_name}-VpcId')
        CfnOutput(self, 'SplunkClusterSecurityGroupId',
            value=self._cluster_sg.security_group_id,
            export_name=f'{self.stack_name}-SplunkClusterSGId')
        CfnOutput(self, 'DeploymentRegion', value=self.region, description='AWS Region where Splunk is deployed')
        CfnOutput(self, 'VpcCidr', value=config.vpc_cidr, description='VPC CIDR block for the Splunk deployment')
        CfnOutput(self, 'AvailabilityZones',
            value=', '.join(self._vpc.availability_zones),
            description='Availability Zones used for high availability')

    @staticmethod
    def _web_peers(config: SplunkConfig):
        if config.allowed_ip_ranges:
            return [ec2.Peer.ipv4(cidr) for cidr in config.allowed_ip_ranges]
        return [ec2.Peer.any_ipv4()]
