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
Boot scripts for every Splunk role in the deployment.

Each role script is assembled from the shell fragments under
``app_resources/bootstrap``. All roles share the same opening sequence
(OS packages, data volumes, Splunk download, secrets, first start with a
seeded admin user); the role-specific part then runs the cluster protocol:

* the cluster manager enables manager mode with the configured
  replication/search factors and optionally installs the license,
* indexers poll the manager's management port until it answers, then retry
  the peer join a fixed number of times with a fixed back-off,
* search heads join in searchhead mode, poll the manager's peer list until
  the expected number of indexers is present and register each one as a
  distributed search server.

The returned lists are handed to ``UserData.add_commands``.
"""

import logging
from typing import List, Optional

from splunk_on_aws.config import SplunkConfig
from splunk_on_aws.util import es_package, license_helper, splunk_download
from splunk_on_aws.util.manifest_reader import load_script_replace_var_local

logger = logging.getLogger(__name__)

SPLUNK_HOME = '/opt/splunk'
HOT_VOLUME = ('/dev/xvdb', f'{SPLUNK_HOME}/var/lib/splunk')
COLD_VOLUME = ('/dev/xvdc', f'{SPLUNK_HOME}/cold')
ES_DATA_MODEL_VOLUME = ('/dev/xvdb', f'{SPLUNK_HOME}/var/lib/splunk')

LICENSE_FILE = '/tmp/splunk.license'

ES_INDEXES = (
    'main', 'summary', 'risk', 'notable', 'threat_intel',
    'firewall', 'proxy', 'endpoint', 'authentication',
)
ES_DATA_MODELS = ('Authentication', 'Network_Traffic', 'Web', 'Endpoint')


def _fragment(name, **fields):
    return load_script_replace_var_local(
        f'bootstrap/{name}.sh',
        fields={'{{%s}}' % key: value for key, value in fields.items()})


class SplunkBootstrap:

    # cluster manager readiness poll: 30 x 10s
    MANAGER_WAIT_ATTEMPTS = 30
    MANAGER_WAIT_INTERVAL = 10

    # peer join: 3 attempts, 30s apart, 60s settle after the restart
    JOIN_MAX_RETRIES = 3
    JOIN_BACKOFF = 30
    JOIN_RESTART_WAIT = 60

    # search head waits up to 10 minutes for the indexers
    PEER_WAIT_MAX = 600
    PEER_WAIT_INTERVAL = 30

    RESTART_WAIT = 30

    def __init__(self, config: SplunkConfig, admin_secret_arn: str, cluster_secret_arn: str, region: str) -> None:
        self.config = config
        self.admin_secret_arn = admin_secret_arn
        self.cluster_secret_arn = cluster_secret_arn
        self.region = region

    # %% shared opening sequence

    def _common(self, systemd_managed: bool, volumes=(), packages=('wget', 'jq')) -> List[str]:
        commands = _fragment('os-prep', packages=' '.join(packages))
        for device, mount_point in volumes:
            commands += _fragment('mount-volume', device=device, mountPoint=mount_point)
        commands += splunk_download.generate_download_script(self.config)
        commands += _fragment('fetch-secrets',
            adminSecretArn=self.admin_secret_arn,
            clusterSecretArn=self.cluster_secret_arn,
            region=self.region)
        commands += _fragment('first-start', systemdManaged=1 if systemd_managed else 0)
        return commands

    def _license_peer(self, license_manager_ip: str) -> List[str]:
        if not license_helper.is_license_install_enabled(self.config):
            return []
        return license_helper.generate_license_peer_script(license_manager_ip)

    def _restart(self, reason: str, wait_seconds: int) -> List[str]:
        return _fragment('restart', reason=reason, waitSeconds=wait_seconds)

    def _distributed_search(self, cluster_manager_ip: str) -> List[str]:
        return _fragment('distributed-search',
            clusterManagerIp=cluster_manager_ip,
            expectedIndexers=self.config.indexer_count,
            maxWaitSeconds=self.PEER_WAIT_MAX,
            waitIntervalSeconds=self.PEER_WAIT_INTERVAL)

    # %% roles

    def cluster_manager_commands(self, license_s3_url: Optional[str] = None) -> List[str]:
        commands = self._common(systemd_managed=True)
        commands += _fragment('cluster-manager',
            replicationFactor=self.config.replication_factor,
            searchFactor=self.config.search_factor)

        if license_s3_url:
            commands += _fragment('license-download', licenseS3Url=license_s3_url, licenseFile=LICENSE_FILE)
            commands += license_helper.generate_install_script(LICENSE_FILE)
            commands += license_helper.generate_license_manager_script()
            commands += self._restart('Final restart after license installation', self.RESTART_WAIT)
        return commands

    def indexer_commands(self, cluster_manager_ip: str) -> List[str]:
        commands = self._common(systemd_managed=True, volumes=(HOT_VOLUME, COLD_VOLUME))
        commands += _fragment('wait-for-manager',
            clusterManagerIp=cluster_manager_ip,
            maxAttempts=self.MANAGER_WAIT_ATTEMPTS,
            intervalSeconds=self.MANAGER_WAIT_INTERVAL,
            replicationPort=self.config.replication_port)
        commands += _fragment('cluster-peer-join',
            replicationPort=self.config.replication_port,
            maxRetries=self.JOIN_MAX_RETRIES,
            backoffSeconds=self.JOIN_BACKOFF,
            restartWaitSeconds=self.JOIN_RESTART_WAIT)
        commands += _fragment('indexer-inputs', hecToken=self.config.hec_default_token)
        commands += self._license_peer(cluster_manager_ip)
        commands += self._restart('Final Splunk restart', self.RESTART_WAIT)
        commands += _fragment('indexer-verify')
        return commands

    def search_head_commands(self, cluster_manager_ip: str) -> List[str]:
        commands = self._common(systemd_managed=False)
        commands += _fragment('search-head-join', component='Search Head', clusterManagerIp=cluster_manager_ip)
        commands += self._license_peer(cluster_manager_ip)
        commands += self._restart('Restarting Splunk to apply cluster configuration', self.RESTART_WAIT)
        commands += self._distributed_search(cluster_manager_ip)
        commands += self._restart('Final Splunk restart', self.RESTART_WAIT)
        commands.append('echo "=== Search Head initialization complete ==="')
        return commands

    def es_search_head_commands(self, cluster_manager_ip: str,
                                es_package_s3_url: Optional[str] = None,
                                es_package_filename: Optional[str] = None) -> List[str]:
        commands = self._common(systemd_managed=False, volumes=(ES_DATA_MODEL_VOLUME,),
                                packages=('wget', 'unzip', 'jq'))
        commands += _fragment('search-head-join', component='ES Search Head', clusterManagerIp=cluster_manager_ip)
        commands += _fragment('es-indexes', indexes=' '.join(ES_INDEXES))
        commands += _fragment('es-datamodels', stanzas='\n\n'.join(
            f'[{model}]\nacceleration = 1\nacceleration.earliest_time = -7d' for model in ES_DATA_MODELS))
        commands += self._distributed_search(cluster_manager_ip)
        commands += self._license_peer(cluster_manager_ip)
        commands += self._restart('Restarting Splunk after distributed search configuration', self.RESTART_WAIT)

        if es_package_s3_url and es_package_filename:
            local_file = f'/tmp/{es_package_filename}'
            commands += es_package.generate_download_script(es_package_s3_url, local_file)
            commands += es_package.generate_install_script(local_file)
            commands += es_package.generate_health_check_script()
        else:
            logger.warning('No ES package supplied, the ES search head will print manual install steps')
            commands += es_package.generate_manual_install_notice()

        commands += _fragment('es-summary')
        return commands
