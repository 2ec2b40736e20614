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

from aws_cdk import (
    CfnTag,
    Stack,
    aws_ec2 as ec2,
    aws_iam as iam,
)
from constructs import Construct

ROOT_DEVICE = '/dev/xvda'


def splunk_ami():
    return ec2.MachineImage.latest_amazon_linux2023(cpu_type=ec2.AmazonLinuxCpuType.X86_64)


def gp3_volume(device_name: str, size: int, encrypted: bool) -> ec2.BlockDevice:
    return ec2.BlockDevice(
        device_name=device_name,
        volume=ec2.BlockDeviceVolume.ebs(size,
            volume_type=ec2.EbsDeviceVolumeType.GP3,
            encrypted=encrypted,
        )
    )


class PublicSplunkHostConst(Construct):
    """A search head in a public subnet, reachable on a fixed Elastic IP."""

    @property
    def instance(self) -> ec2.Instance:
        return self._instance

    @property
    def elastic_ip(self) -> str:
        return self._eip.attr_public_ip

    def __init__(self, scope: Construct, id: str,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
        role: iam.IRole,
        instance_type: str,
        block_devices: Sequence[ec2.BlockDevice],
        **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        self._instance = ec2.Instance(self, 'Instance',
            vpc=vpc,
            instance_type=ec2.InstanceType(instance_type),
            machine_image=splunk_ami(),
            security_group=security_group,
            role=role,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            associate_public_ip_address=True,
            block_devices=list(block_devices),
        )

        self._eip = ec2.CfnEIP(self, 'EIP',
            domain='vpc',
            tags=[CfnTag(key='Name', value=f'{Stack.of(self).stack_name}-{id}-EIP')],
        )
        ec2.CfnEIPAssociation(self, 'EIPAssoc',
            allocation_id=self._eip.attr_allocation_id,
            instance_id=self._instance.instance_id,
        )
