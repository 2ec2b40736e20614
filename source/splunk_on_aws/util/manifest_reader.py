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

"""Load resource files shipped under ``app_resources`` and substitute ``{{var}}`` placeholders."""

import logging
import os.path as path
import re

import yaml

logger = logging.getLogger(__name__)

RESOURCE_DIR = path.join(path.dirname(path.dirname(__file__)), 'app_resources')

_PLACEHOLDER = re.compile(r'{{\s*[A-Za-z0-9_]+\s*}}')


class ManifestError(Exception):
    """A resource file is missing, unparsable or still holds unresolved placeholders."""


def resource_path(resource_file):
    if path.isabs(resource_file):
        return resource_file
    return path.join(RESOURCE_DIR, resource_file)


def _read_local(resource_file):
    file_to_parse = resource_path(resource_file)
    if not path.exists(file_to_parse):
        logger.error("The file %s does not exist", file_to_parse)
        raise ManifestError(f"The file {file_to_parse} does not exist")

    with open(file_to_parse, 'r') as stream:
        return stream.read()


def _replace_var(filedata, fields):
    for searchwrd, replwrd in (fields or {}).items():
        filedata = filedata.replace(searchwrd, str(replwrd))
    return filedata


def _parse_yaml(filedata, source, multi_resource):
    try:
        if multi_resource:
            return list(yaml.safe_load_all(filedata))
        return yaml.safe_load(filedata)
    except yaml.YAMLError as e:
        logger.error("Cannot read yaml config file %s, check formatting.", source)
        raise ManifestError(f"Cannot read yaml config file {source}") from e


def load_yaml_local(yaml_file, multi_resource=False):
    filedata = _read_local(yaml_file)
    return _parse_yaml(filedata, yaml_file, multi_resource)


def load_yaml_replace_var_local(yaml_file, fields, multi_resource=False):
    filedata = _replace_var(_read_local(yaml_file), fields)
    return _parse_yaml(filedata, yaml_file, multi_resource)


def load_script_replace_var_local(script_file, fields=None):
    """Return a shell fragment as a list of lines with every placeholder resolved.

    ``fields`` maps the literal placeholder (``"{{clusterManagerIp}}"``) to its value.
    Values may be CDK tokens; they are substituted as their string encoding and
    resolved by CloudFormation at deploy time.
    """
    filedata = _replace_var(_read_local(script_file), fields)

    leftover = sorted(set(_PLACEHOLDER.findall(filedata)))
    if leftover:
        raise ManifestError(
            f"Unresolved placeholders in {script_file}: {', '.join(leftover)}")

    return filedata.rstrip('\n').split('\n')
