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

from typing import Sequence

from aws_cdk import aws_iam as iam
from aws_cdk.aws_secretsmanager import ISecret
from constructs import Construct


class IamConst(Construct):
    """EC2 instance role shared by the Splunk hosts of one stack."""

    @property
    def splunk_role(self):
        return self._splunk_role

    def __init__(self, scope: Construct, id: str, secrets: Sequence[ISecret], **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        # Session Manager access and the CloudWatch agent
        self._splunk_role = iam.Role(self, 'SplunkInstanceRole',
            assumed_by=iam.ServicePrincipal('ec2.amazonaws.com'),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name('AmazonSSMManagedInstanceCore'),
                iam.ManagedPolicy.from_aws_managed_policy_name('CloudWatchAgentServerPolicy'),
            ]
        )
        # boot scripts read the admin password and cluster key
        for secret in secrets:
            secret.grant_read(self._splunk_role)
