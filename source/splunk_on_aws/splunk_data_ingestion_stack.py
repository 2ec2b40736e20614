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

import logging
from typing import Optional

from aws_cdk import (
    Duration,
    Stack,
    CfnOutput,
    aws_certificatemanager as acm,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
    aws_route53 as route53,
)
from aws_cdk.aws_autoscaling import AutoScalingGroup
from constructs import Construct
from splunk_on_aws.config import SplunkConfig, apply_common_tags

logger = logging.getLogger(__name__)

S2S_PORT = 9997
HEC_PORT = 8088
HEC_HTTPS_PORT = 443
MANAGEMENT_PORT = 8089


class SplunkDataIngestionStack(Stack):
    """Internet-facing NLB that spreads S2S and HEC traffic over the indexers."""

    @property
    def nlb(self):
        return self._nlb

    @property
    def certificate(self):
        return self._certificate

    def __init__(self, scope: Construct, id: str,
        config: SplunkConfig,
        vpc: ec2.IVpc,
        indexer_asg: AutoScalingGroup,
        security_group: ec2.SecurityGroup,
        domain_name: Optional[str] = None,
        hosted_zone_id: Optional[str] = None,
        **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        self._nlb = elbv2.NetworkLoadBalancer(self, 'DataIngestionNLB',
            vpc=vpc,
            internet_facing=True,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            cross_zone_enabled=True,
        )

        #########################################
        #######                           #######
        #######   Target groups           #######
        #######                           #######
        #########################################
        s2s_target_group = self._target_group(vpc, 'S2STargetGroup', S2S_PORT)
        hec_target_group = self._target_group(vpc, 'HECTargetGroup', HEC_PORT)
        hec_https_target_group = self._target_group(vpc, 'HECHttpsTargetGroup', HEC_PORT)

        #########################################
        #######                           #######
        #######   Listeners               #######
        #######                           #######
        #########################################
        self._nlb.add_listener('S2SListener',
            port=S2S_PORT,
            protocol=elbv2.Protocol.TCP,
            default_target_groups=[s2s_target_group])
        self._nlb.add_listener('HECListener',
            port=HEC_PORT,
            protocol=elbv2.Protocol.TCP,
            default_target_groups=[hec_target_group])

        self._certificate = self._hec_certificate(domain_name, hosted_zone_id)
        if self._certificate:
            self._nlb.add_listener('HECHttpsListener',
                port=HEC_HTTPS_PORT,
                protocol=elbv2.Protocol.TLS,
                certificates=[elbv2.ListenerCertificate.from_certificate_manager(self._certificate)],
                default_target_groups=[hec_https_target_group])
        else:
            # TCP passthrough, TLS is terminated on the indexers if at all
            self._nlb.add_listener('HECHttpsListener',
                port=HEC_HTTPS_PORT,
                protocol=elbv2.Protocol.TCP,
                default_target_groups=[hec_https_target_group])

        # registering the ASG makes the cluster stack depend on this one
        for target_group in (s2s_target_group, hec_target_group, hec_https_target_group):
            target_group.add_target(indexer_asg)

        # NLB preserves client IPs, so S2S is open to any address. 8088 is already open in the network stack.
        security_group.add_ingress_rule(ec2.Peer.any_ipv4(), ec2.Port.tcp(S2S_PORT), 'Allow S2S from NLB')
        security_group.add_ingress_rule(ec2.Peer.ipv4(vpc.vpc_cidr_block), ec2.Port.tcp(MANAGEMENT_PORT),
                                        'Allow health checks from NLB')

        apply_common_tags(self)

        #########################################
        #######                           #######
        #######   Outputs                 #######
        #######                           #######
        #########################################
        dns_name = self._nlb.load_balancer_dns_name
        CfnOutput(self, 'NLBDnsName',
            value=dns_name,
            description='DNS name of the Network Load Balancer for data ingestion',
            export_name=f'{self.stack_name}-NLBDnsName')
        CfnOutput(self, 'S2SEndpoint',
            value=f'{dns_name}:{S2S_PORT}',
            description='Splunk-to-Splunk (S2S) data forwarding endpoint')
        CfnOutput(self, 'HECEndpoint',
            value=f'http://{dns_name}:{HEC_PORT}',
            description='HTTP Event Collector (HEC) endpoint')

        https_host = domain_name if self._certificate and not domain_name.startswith('arn:') else dns_name
        CfnOutput(self, 'HECHttpsEndpoint',
            value=f'https://{https_host}:{HEC_HTTPS_PORT}',
            description='HTTPS Event Collector (HEC) endpoint - SSL/TLS enabled')
        CfnOutput(self, 'HECTokenCommand',
            value='Get HEC token: /opt/splunk/bin/splunk http-event-collector list -auth admin:<password>',
            description='Command to retrieve HEC tokens from any indexer')
        CfnOutput(self, 'ForwarderConfiguration',
            value=f'Configure your forwarders with: [tcpout:splunk-aws] server = {dns_name}:{S2S_PORT}',
            description='Example forwarder configuration')
        CfnOutput(self, 'SecurityNote',
            value='HTTPS/TLS is configured for HEC on port 443. S2S on port 9997 still requires manual TLS configuration.'
                if self._certificate
                else 'For production use: 1) Provide domainName parameter for ACM certificate, '
                     'or 2) Configure TLS certificates manually on Splunk instances.',
            description='Security configuration status')
        if not self._certificate:
            CfnOutput(self, 'EnableHTTPS',
                value='To enable HTTPS: Deploy with --context domainName=your-domain.com '
                      '--context hostedZoneId=<zone-id> or domainName=arn:aws:acm:region:account:certificate/id',
                description='How to enable HTTPS for HEC')

    def _target_group(self, vpc: ec2.IVpc, id: str, port: int) -> elbv2.NetworkTargetGroup:
        # Splunk answers on the management port long before inputs are ready
        return elbv2.NetworkTargetGroup(self, id,
            port=port,
            protocol=elbv2.Protocol.TCP,
            vpc=vpc,
            target_type=elbv2.TargetType.INSTANCE,
            health_check=elbv2.HealthCheck(
                enabled=True,
                port=str(MANAGEMENT_PORT),
                protocol=elbv2.Protocol.TCP,
                interval=Duration.seconds(30),
                timeout=Duration.seconds(10),
                healthy_threshold_count=2,
                unhealthy_threshold_count=2,
            ),
            deregistration_delay=Duration.seconds(30),
        )

    def _hec_certificate(self, domain_name: Optional[str], hosted_zone_id: Optional[str]):
        if not domain_name:
            return None

        if domain_name.startswith('arn:'):
            return acm.Certificate.from_certificate_arn(self, 'HECCertificate', domain_name)

        if hosted_zone_id:
            zone = route53.HostedZone.from_hosted_zone_id(self, 'HECHostedZone', hosted_zone_id)
            return acm.Certificate(self, 'HECCertificate',
                domain_name=domain_name,
                validation=acm.CertificateValidation.from_dns(zone),
            )

        logger.warning("Domain '%s' given without hostedZoneId, HEC on port 443 falls back to TCP passthrough",
                       domain_name)
        return None
