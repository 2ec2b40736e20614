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

import pytest

from splunk_on_aws.lambda_functions.indexer_resolver import index

ASG_NAME = 'SelfManagedSplunk-IndexerCluster-IndexerASG-1234'


class FakeAutoScaling:

    def __init__(self, groups):
        self.groups = groups

    def describe_auto_scaling_groups(self, AutoScalingGroupNames):
        assert AutoScalingGroupNames == [ASG_NAME]
        return {'AutoScalingGroups': self.groups}


class FakeEc2:

    def __init__(self, reservations):
        self.reservations = reservations
        self.requested = None

    def describe_instances(self, InstanceIds):
        self.requested = InstanceIds
        return {'Reservations': self.reservations}


def asg_instance(instance_id, state='InService'):
    return {'InstanceId': instance_id, 'LifecycleState': state}


def ec2_instance(instance_id, az, ip):
    return {'InstanceId': instance_id, 'Placement': {'AvailabilityZone': az}, 'PrivateIpAddress': ip}


def event(request_type='Create', **extra):
    return dict({
        'RequestType': request_type,
        'ResourceProperties': {'AutoScalingGroupName': ASG_NAME, 'Region': 'us-west-2'},
    }, **extra)


def test_session_commands_for_running_indexers():
    asg = FakeAutoScaling([{'Instances': [asg_instance('i-1'), asg_instance('i-2'), asg_instance('i-3', 'Pending')]}])
    ec2 = FakeEc2([{'Instances': [ec2_instance('i-1', 'us-west-2a', '10.0.3.11'),
                                  ec2_instance('i-2', 'us-west-2b', '10.0.4.12')]}])

    commands = index.resolve_commands(ASG_NAME, asg, ec2)

    assert ec2.requested == ['i-1', 'i-2']
    assert '# Indexer 1 (AZ: us-west-2a, IP: 10.0.3.11)' in commands
    assert 'aws ssm start-session --target i-2' in commands
    assert f'Values={ASG_NAME}' in commands


def test_instances_still_launching():
    asg = FakeAutoScaling([{'Instances': [asg_instance('i-1', 'Pending'), asg_instance('i-2', 'Pending:Wait')]}])
    assert 'launching (2 instances in progress)' in index.resolve_commands(ASG_NAME, asg, FakeEc2([]))


def test_empty_group():
    asg = FakeAutoScaling([{'Instances': []}])
    assert index.resolve_commands(ASG_NAME, asg, FakeEc2([])).startswith('No indexer instances found')


def test_missing_group():
    with pytest.raises(index.AutoScalingGroupNotFound):
        index.resolve_commands(ASG_NAME, FakeAutoScaling([]), FakeEc2([]))


def test_handler_create(monkeypatch):
    clients = {
        'autoscaling': FakeAutoScaling([{'Instances': [asg_instance('i-1')]}]),
        'ec2': FakeEc2([{'Instances': [ec2_instance('i-1', 'us-west-2c', '10.0.5.13')]}]),
    }
    monkeypatch.setattr(index.boto3, 'client', lambda service, region_name: clients[service])

    response = index.handler(event(), None)

    assert response['PhysicalResourceId'] == f'indexer-instances-{ASG_NAME}'
    assert 'aws ssm start-session --target i-1' in response['Data']['Commands']


def test_handler_propagates_errors(monkeypatch):
    clients = {'autoscaling': FakeAutoScaling([]), 'ec2': FakeEc2([])}
    monkeypatch.setattr(index.boto3, 'client', lambda service, region_name: clients[service])

    with pytest.raises(index.AutoScalingGroupNotFound):
        index.handler(event('Update'), None)


def test_handler_delete_does_not_call_aws(monkeypatch):
    def no_client(*args, **kwargs):
        raise AssertionError('no AWS call expected on delete')
    monkeypatch.setattr(index.boto3, 'client', no_client)

    response = index.handler(event('Delete', PhysicalResourceId='indexer-instances-old'), None)
    assert response == {'PhysicalResourceId': 'indexer-instances-old', 'Data': {'Commands': ''}}
    assert index.handler(event('Delete'), None)['PhysicalResourceId'] == index.DEFAULT_PHYSICAL_ID
