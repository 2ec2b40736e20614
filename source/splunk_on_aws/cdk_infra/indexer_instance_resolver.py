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

import os.path as path

from aws_cdk import (
    Duration,
    Stack,
    CustomResource,
    aws_iam as iam,
    aws_lambda as _lambda,
    custom_resources as cr,
)
from aws_cdk.aws_autoscaling import IAutoScalingGroup
from constructs import Construct
from splunk_on_aws.util.manifest_reader import load_yaml_local

HANDLER_DIR = path.join(path.dirname(path.dirname(__file__)), 'lambda_functions', 'indexer_resolver')


class IndexerResolverConst(Construct):

    @property
    def session_manager_commands(self):
        return self._resource.get_att_string('Commands')

    def __init__(self, scope: Construct, id: str, auto_scaling_group: IAutoScalingGroup, **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        #########################################
        #######                           #######
        #######   Instance lookup Lambda  #######
        #######                           #######
        #########################################
        get_instances_fn = _lambda.Function(self, 'GetInstancesFunction',
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler='index.handler',
            timeout=Duration.seconds(30),
            code=_lambda.Code.from_asset(HANDLER_DIR, exclude=['__pycache__', '*.pyc', '__init__.py']),
            environment={'PYTHONUNBUFFERED': '1'},
        )
        for statmnt in load_yaml_local('indexer-resolver-iam-role.yaml'):
            get_instances_fn.add_to_role_policy(iam.PolicyStatement.from_json(statmnt))

        #########################################
        #######                           #######
        #######   Custom resource         #######
        #######                           #######
        #########################################
        provider = cr.Provider(self, 'Provider', on_event_handler=get_instances_fn)

        self._resource = CustomResource(self, 'Resource',
            service_token=provider.service_token,
            properties={
                'AutoScalingGroupName': auto_scaling_group.auto_scaling_group_name,
                'Region': Stack.of(self).region,
            }
        )
        # lookup runs once the indexers have been launched
        self._resource.node.add_dependency(auto_scaling_group)
