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
Runs the boot script fragments under bash against stubbed system binaries.

``splunk``, ``curl``, ``sudo`` and ``sleep`` are replaced by small scripts on
PATH that append every invocation to a call log, so the retry and poll loops
can be checked by what they actually do rather than by their text.
"""

import json
import os
import shutil
import subprocess
from textwrap import dedent

import pytest

from splunk_on_aws.util.bootstrap import SplunkBootstrap, _fragment

pytestmark = pytest.mark.skipif(shutil.which('bash') is None, reason='bash is required')

MANAGER_IP = '10.0.2.10'
REPLICATION_PORT = 9100

COMMON_STUBS = {
    'sudo': '[ "$1" = "-u" ] && shift 2\nexec "$@"',
    'sleep': 'echo "sleep $*" >> "$CALLS"',
    'groupadd': 'exit 0',
    'useradd': 'exit 0',
    'chown': 'exit 0',
}

# bumps the counter file named by $1 and prints the new value
COUNTER = 'bump() { n=$(( $(cat "$STATE/$1" 2>/dev/null || echo 0) + 1 )); echo $n > "$STATE/$1"; echo $n; }\n'


class Host:
    """A throwaway PATH with stubbed binaries, a call log and a fake SPLUNK_HOME."""

    def __init__(self, root):
        self.root = root
        self.bin = root / 'bin'
        self.bin.mkdir()
        self.calls = root / 'calls.log'
        self.calls.touch()
        self.splunk_home = root / 'splunk'
        self.splunk_home.mkdir()
        for name, body in COMMON_STUBS.items():
            self.stub(name, body)

    def stub(self, name, body):
        script = self.bin / name
        script.write_text('#!/usr/bin/env bash\n' + COUNTER + body + '\n')
        script.chmod(0o755)

    def run(self, commands, **env):
        environ = dict(os.environ,
            PATH=f'{self.bin}{os.pathsep}{os.environ.get("PATH", "")}',
            CALLS=str(self.calls),
            STATE=str(self.root),
            SPLUNK_HOME=str(self.splunk_home),
            SPLUNK_BIN=str(self.bin / 'splunk'),
            ADMIN_PASSWORD='Adm1nPassw0rd',
            CLUSTER_SECRET='cluster-key',
            CLUSTER_MANAGER_IP=MANAGER_IP,
            **env)
        script = '\n'.join(['set -e'] + commands)
        return subprocess.run(['bash', '-c', script], env=environ,
                              stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                              universal_newlines=True, timeout=60)

    def called(self, prefix):
        return [line for line in self.calls.read_text().splitlines() if line.startswith(prefix)]


@pytest.fixture
def host(tmp_path):
    return Host(tmp_path)


class TestAdminWait:

    @staticmethod
    def splunk_stub(ready_on):
        return dedent(f'''\
            echo "splunk $*" >> "$CALLS"
            if [ "$1 $2" = "list user" ]; then
              [ $(bump admin) -ge {ready_on} ] && exit 0
              exit 1
            fi
            exit 0''')

    def test_times_out_and_stops_the_boot(self, host):
        host.stub('splunk', self.splunk_stub(ready_on=99))
        result = host.run(_fragment('first-start', systemdManaged=1))

        assert result.returncode == 1, result.stdout
        assert 'Waiting for admin user to be ready... (12/12)' in result.stdout
        assert 'ERROR: Admin user creation failed after multiple attempts, cannot proceed' in result.stdout
        assert len(host.called('splunk list user')) == 12
        assert host.called('sleep') == ['sleep 5'] * 12
        assert host.called('splunk enable boot-start') == []

    def test_continues_once_admin_answers(self, host):
        host.stub('splunk', self.splunk_stub(ready_on=2))
        result = host.run(_fragment('first-start', systemdManaged=1))

        assert result.returncode == 0, result.stdout
        assert 'Admin user verified successfully' in result.stdout
        assert host.called('sleep') == ['sleep 5']
        assert host.called('splunk enable boot-start') == [
            'splunk enable boot-start -systemd-managed 1 -user splunk -group splunk']
        assert not (host.splunk_home / 'etc/system/local/user-seed.conf').exists()


class TestWaitForManager:

    @staticmethod
    def script():
        return _fragment('wait-for-manager',
            clusterManagerIp=MANAGER_IP,
            maxAttempts=SplunkBootstrap.MANAGER_WAIT_ATTEMPTS,
            intervalSeconds=SplunkBootstrap.MANAGER_WAIT_INTERVAL,
            replicationPort=REPLICATION_PORT)

    @staticmethod
    def curl_stub(ready_on):
        return dedent(f'''\
            echo "curl $*" >> "$CALLS"
            [ $(bump curl) -ge {ready_on} ] && exit 0
            exit 7''')

    def test_polls_until_manager_answers(self, host):
        host.stub('curl', self.curl_stub(ready_on=4))
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'Waiting for Cluster Manager... (attempt 3/30)' in result.stdout
        assert f'Cluster Manager is ready at https://{MANAGER_IP}:8089' in result.stdout
        assert host.called('curl') == [f'curl -k -s https://{MANAGER_IP}:8089/services/server/info'] * 4
        assert host.called('sleep') == ['sleep 10'] * 3
        assert 'ERROR' not in result.stdout

    def test_gives_up_after_max_attempts_and_continues(self, host):
        host.stub('curl', self.curl_stub(ready_on=99))
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'ERROR: Cluster Manager not ready after 30 attempts' in result.stdout
        assert (f'edit cluster-config -mode peer -manager_uri https://{MANAGER_IP}:8089 '
                f'-replication_port {REPLICATION_PORT}') in result.stdout
        assert len(host.called('curl')) == 30
        assert len(host.called('sleep')) == 30


class TestClusterPeerJoin:

    @staticmethod
    def script():
        return _fragment('cluster-peer-join',
            replicationPort=REPLICATION_PORT,
            maxRetries=SplunkBootstrap.JOIN_MAX_RETRIES,
            backoffSeconds=SplunkBootstrap.JOIN_BACKOFF,
            restartWaitSeconds=SplunkBootstrap.JOIN_RESTART_WAIT)

    @staticmethod
    def splunk_stub(succeed_on, failure_output='Could not contact manager. Check that the manager is up.',
                    failure_code=1):
        return dedent(f'''\
            echo "splunk $*" >> "$CALLS"
            if [ "$1 $2" = "edit cluster-config" ]; then
              if [ $(bump join) -ge {succeed_on} ]; then
                echo "The cluster-config property has been edited."
                exit 0
              fi
              echo "{failure_output}"
              exit {failure_code}
            fi
            exit 0''')

    def test_joins_on_last_attempt(self, host):
        host.stub('splunk', self.splunk_stub(succeed_on=3))
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'Attempting to join cluster (attempt 3/3)...' in result.stdout
        assert 'WARNING: Failed to contact Cluster Manager on attempt 2' in result.stdout
        assert 'Successfully configured cluster settings' in result.stdout
        assert 'manual intervention required' not in result.stdout

        joins = host.called('splunk edit cluster-config')
        assert len(joins) == 3
        assert joins[0] == (f'splunk edit cluster-config -mode peer -manager_uri https://{MANAGER_IP}:8089 '
                            f'-replication_port {REPLICATION_PORT} -secret cluster-key -auth admin:Adm1nPassw0rd')
        assert host.called('splunk restart') == ['splunk restart']
        assert host.called('sleep') == ['sleep 30', 'sleep 30', 'sleep 60']

    def test_every_attempt_fails(self, host):
        host.stub('splunk', self.splunk_stub(succeed_on=99))
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'WARNING: Failed to contact Cluster Manager on attempt 3' in result.stdout
        assert 'ERROR: Failed to join cluster after 3 attempts, manual intervention required' in result.stdout
        assert 'Continuing with remaining configurations...' in result.stdout
        assert len(host.called('splunk edit cluster-config')) == 3
        assert host.called('splunk restart') == []
        assert host.called('sleep') == ['sleep 30', 'sleep 30']

    def test_exit_code_zero_alone_is_not_a_join(self, host):
        host.stub('splunk', self.splunk_stub(succeed_on=99, failure_output='Unexpected reply', failure_code=0))
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'WARNING: Unexpected output on attempt 3, exit code: 0' in result.stdout
        assert 'manual intervention required' in result.stdout
        assert host.called('splunk restart') == []


def peers_json(*ips):
    return json.dumps({'entry': [{'content': {'host_port_pair': f'{ip}:8089'}} for ip in ips]})


class TestDistributedSearch:

    EXISTING = '10.0.2.12'
    BROKEN = '10.0.2.13'

    @staticmethod
    def script(expected_indexers=3):
        return _fragment('distributed-search',
            clusterManagerIp=MANAGER_IP,
            expectedIndexers=expected_indexers,
            maxWaitSeconds=SplunkBootstrap.PEER_WAIT_MAX,
            waitIntervalSeconds=SplunkBootstrap.PEER_WAIT_INTERVAL)

    @pytest.fixture
    def peers_api(self, host):
        """Serve peers.<n>.json on the n-th call, peers.json otherwise."""
        host.stub('curl', dedent('''\
            echo "curl $*" >> "$CALLS"
            n=$(bump curl)
            if [ -f "$STATE/peers.$n.json" ]; then cat "$STATE/peers.$n.json"; else cat "$STATE/peers.json"; fi'''))
        host.stub('jq', '''grep -o '"host_port_pair": *"[^"]*"' | cut -d'"' -f4''')
        host.stub('splunk', dedent(f'''\
            echo "splunk $*" >> "$CALLS"
            case "$1 $2" in
              "add search-server")
                case "$3" in
                  https://{self.EXISTING}:8089|https://{self.BROKEN}:8089) echo "Peer add failed"; exit 1 ;;
                esac
                exit 0 ;;
              "list search-server")
                echo "Server at URI \\"{self.EXISTING}:8089\\" with status as \\"Up\\"" ;;
            esac
            exit 0'''))

        def serve(*ips, call=None):
            name = f'peers.{call}.json' if call else 'peers.json'
            (host.root / name).write_text(peers_json(*ips))
        return serve

    def test_registered_peer_counts_as_added(self, host, peers_api):
        peers_api('10.0.2.11', self.EXISTING, '10.0.2.14')
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'Found 3 indexers in the cluster' in result.stdout
        assert f'Search server {self.EXISTING} already configured' in result.stdout
        assert 'Added/verified 3 search servers' in result.stdout
        assert 'Failed to add' not in result.stdout
        assert host.called('sleep') == []
        assert [line.split()[3] for line in host.called('splunk add search-server')] == [
            'https://10.0.2.11:8089', f'https://{self.EXISTING}:8089', 'https://10.0.2.14:8089']

    def test_waits_for_expected_indexers(self, host, peers_api):
        peers_api('10.0.2.11', call=1)
        peers_api('10.0.2.11', '10.0.2.14', '10.0.2.15')
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'Currently 1/3 indexers in cluster. Waiting...' in result.stdout
        assert 'Found 3 indexers in the cluster' in result.stdout
        assert host.called('sleep') == ['sleep 30']
        assert 'Added/verified 3 search servers' in result.stdout

    def test_proceeds_with_available_indexers_after_timeout(self, host, peers_api):
        peers_api('10.0.2.11', self.BROKEN)
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'WARNING: Only found 2 indexers after waiting 600 seconds' in result.stdout
        assert len(host.called('sleep')) == 20
        assert f'ERROR: Failed to add {self.BROKEN} as search server' in result.stdout
        assert 'Added/verified 1 search servers' in result.stdout
        assert 'WARNING: Failed to add 1 search servers' in result.stdout

    @pytest.mark.skipif(shutil.which('jq') is None, reason='jq is required')
    def test_peer_addresses_parsed_from_manager_api(self, host, peers_api):
        (host.bin / 'jq').unlink()
        peers_api('10.0.2.11', '10.0.2.14', '10.0.2.15')
        result = host.run(self.script())

        assert result.returncode == 0, result.stdout
        assert 'Added/verified 3 search servers' in result.stdout
        assert host.called('curl')[0] == (
            f'curl -k -s -u admin:Adm1nPassw0rd https://{MANAGER_IP}:8089/services/cluster/manager/peers'
            '?output_mode=json&count=0')
