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
from aws_cdk import App

from splunk_on_aws.config import DEFAULT_CONFIG
from splunk_on_aws.network_stack import NetworkStack
from splunk_on_aws.splunk_cluster_stack import SplunkClusterStack

ADMIN_ARN = 'arn:aws:secretsmanager:us-west-2:111111111111:secret:admin-AbCdEf'
CLUSTER_ARN = 'arn:aws:secretsmanager:us-west-2:111111111111:secret:cluster-AbCdEf'


@pytest.fixture
def config():
    return DEFAULT_CONFIG


@pytest.fixture
def app():
    return App()


@pytest.fixture
def license_file(tmp_path):
    licenses = tmp_path / 'licenses'
    licenses.mkdir()
    license_path = licenses / 'splunk-enterprise.xml'
    license_path.write_text('<license/>')
    return license_path


@pytest.fixture
def es_package_file(tmp_path):
    packages = tmp_path / 'packages'
    packages.mkdir()
    package_path = packages / 'splunk-es-8.1.1.tgz'
    package_path.write_bytes(b'not really a tarball')
    return package_path


@pytest.fixture
def network_stack(app, config):
    return NetworkStack(app, 'Network', config)


@pytest.fixture
def cluster_stack(app, config, network_stack):
    return SplunkClusterStack(app, 'IndexerCluster', config,
        vpc=network_stack.vpc,
        security_group=network_stack.splunk_cluster_security_group)


def user_data_script(template, resource_type, key='UserData'):
    """Flatten the Fn::Base64/Fn::Join user data of the only resource of a type into one string."""
    resources = template.find_resources(resource_type)
    assert len(resources) == 1
    props = next(iter(resources.values()))['Properties']
    if resource_type == 'AWS::EC2::LaunchTemplate':
        props = props['LaunchTemplateData']
    return _flatten(props[key])


def _flatten(node):
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return ''.join(_flatten(item) for item in node)
    if isinstance(node, dict):
        if 'Fn::Base64' in node:
            return _flatten(node['Fn::Base64'])
        if 'Fn::Join' in node:
            separator, parts = node['Fn::Join']
            return separator.join(_flatten(part) for part in parts)
        if 'Fn::Sub' in node:
            # asset URLs: "s3://cdk-...-assets-${AWS::AccountId}-${AWS::Region}/<hash>"
            sub = node['Fn::Sub']
            return sub if isinstance(sub, str) else sub[0]
        # Ref / GetAtt / ImportValue placeholders
        return '<token>'
    return str(node)


def web_ingress_cidrs(template):
    """CIDRs allowed on the Splunk Web port, inline or standalone rules."""
    rules = [resource['Properties'] for resource in template.find_resources('AWS::EC2::SecurityGroupIngress').values()]
    for group in template.find_resources('AWS::EC2::SecurityGroup').values():
        rules += group['Properties'].get('SecurityGroupIngress', [])
    return [rule.get('CidrIp') for rule in rules if rule.get('FromPort') == 8000]
