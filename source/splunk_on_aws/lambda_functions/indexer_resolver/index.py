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
Custom resource handler that lists the indexer instances of an Auto Scaling
Group and returns ready-to-paste Session Manager commands for them.
"""

import json
import logging

import boto3

logger = logging.getLogger()
logger.setLevel(logging.INFO)

DEFAULT_PHYSICAL_ID = 'indexer-instances'
PENDING_STATES = ('Pending', 'Pending:Wait', 'Pending:Proceed')


class AutoScalingGroupNotFound(Exception):
    pass


def list_command(asg_name):
    return (
        'aws ec2 describe-instances '
        f'--filters "Name=tag:aws:autoscaling:groupName,Values={asg_name}" "Name=instance-state-name,Values=running" '
        '--query "Reservations[*].Instances[*].{InstanceId:InstanceId,PrivateIp:PrivateIpAddress,AZ:Placement.AvailabilityZone}" '
        '--output table'
    )


def session_commands(asg_name, reservations):
    commands = ['To access indexer instances via Session Manager:', '']

    instances = [i for r in reservations for i in r['Instances']]
    for num, instance in enumerate(instances, start=1):
        commands.append(f"# Indexer {num} (AZ: {instance['Placement']['AvailabilityZone']}, "
                        f"IP: {instance.get('PrivateIpAddress', 'n/a')})")
        commands.append(f"aws ssm start-session --target {instance['InstanceId']}")
        commands.append('')

    commands.append('# To list all indexer instances:')
    commands.append(list_command(asg_name))
    return '\n'.join(commands)


def pending_message(asg_instances):
    if asg_instances:
        launching = len([i for i in asg_instances if i['LifecycleState'] in PENDING_STATES])
        return (f'Indexer instances are launching ({launching} instances in progress). '
                'Please wait a few minutes and check the CloudFormation outputs again.')
    return 'No indexer instances found. The Auto Scaling Group may still be initializing.'


def resolve_commands(asg_name, asg_client, ec2_client):
    response = asg_client.describe_auto_scaling_groups(AutoScalingGroupNames=[asg_name])
    if not response['AutoScalingGroups']:
        raise AutoScalingGroupNotFound(f'Auto Scaling Group {asg_name} not found')

    asg_instances = response['AutoScalingGroups'][0]['Instances']
    instance_ids = [i['InstanceId'] for i in asg_instances if i['LifecycleState'] == 'InService']
    if not instance_ids:
        return pending_message(asg_instances)

    described = ec2_client.describe_instances(InstanceIds=instance_ids)
    return session_commands(asg_name, described['Reservations'])


def handler(event, context):
    logger.info('Event: %s', json.dumps(event))

    if event['RequestType'] == 'Delete':
        return {
            'PhysicalResourceId': event.get('PhysicalResourceId', DEFAULT_PHYSICAL_ID),
            'Data': {'Commands': ''},
        }

    props = event['ResourceProperties']
    asg_name = props['AutoScalingGroupName']
    region = props['Region']

    try:
        commands = resolve_commands(
            asg_name,
            boto3.client('autoscaling', region_name=region),
            boto3.client('ec2', region_name=region),
        )
    except Exception:
        logger.exception('Failed to resolve indexer instances for %s', asg_name)
        raise

    return {
        'PhysicalResourceId': f'indexer-instances-{asg_name}',
        'Data': {'Commands': commands},
    }
