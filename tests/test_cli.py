"""
Tests for the command line client

Run with: python -m pytest tests/test_cli.py -v
"""

import pytest

from etcd_client import cli
from etcd_client.client import Client

from tests.conftest import NODE_A, NODE_B, NODE_C, FakeCluster


@pytest.fixture
def run(cluster: FakeCluster, test_settings, monkeypatch):
    """Run the CLI against the fake cluster and return the exit status."""
    def factory(uri=None):
        return Client(uri=uri, transport=cluster, settings=test_settings)

    monkeypatch.setattr(cli, "Client", factory)

    def runner(*argv: str) -> int:
        return cli.main(["--uri", NODE_A, *argv])
    return runner


class TestParseArgs:
    """Test argument parsing."""

    def test_set_with_ttl(self):
        args = cli.parse_args(["set", "/foo", "bar", "--ttl", "5"])

        assert args.command == "set"
        assert (args.key, args.value, args.ttl) == ("/foo", "bar", 5)

    def test_watch_defaults(self):
        args = cli.parse_args(["watch", "/foo"])

        assert args.index is None
        assert args.forever is False

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])


@pytest.mark.integration
class TestCommands:
    """Test running sub-commands."""

    def test_set_then_get(self, run, capsys):
        assert run("set", "/foo", "bar") == 0
        assert run("get", "/foo") == 0

        assert capsys.readouterr().out == "bar\n"

    def test_set_prints_previous(self, run, capsys, cluster: FakeCluster):
        cluster.put("/foo", "old")

        run("set", "/foo", "new")

        assert capsys.readouterr().out == "old\n"

    def test_get_missing(self, run, capsys):
        assert run("get", "/nope") == 1
        assert "not found" in capsys.readouterr().err

    def test_get_directory(self, run, capsys, cluster: FakeCluster):
        cluster.put("/foo/qux", "fizz")
        cluster.put("/foo/bar", "baz")

        run("get", "/foo")

        assert capsys.readouterr().out == "/foo/bar=baz\n/foo/qux=fizz\n"

    def test_update(self, run, capsys, cluster: FakeCluster):
        cluster.put("/foo", "v1")

        assert run("update", "/foo", "v2", "wrong") == 1
        assert run("update", "/foo", "v2", "v1") == 0
        assert cluster.data["/foo"]["value"] == "v2"

    def test_delete(self, run, capsys, cluster: FakeCluster):
        cluster.put("/foo", "bar")

        assert run("delete", "/foo") == 0
        assert run("delete", "/foo") == 1
        assert capsys.readouterr().out == "bar\n"

    def test_info(self, run, capsys, cluster: FakeCluster):
        cluster.put("/foo", "bar", ttl=5)

        run("info", "/foo")

        out = capsys.readouterr().out
        assert "key=/foo" in out
        assert "value=bar" in out
        assert "ttl=5" in out
        assert "expiration=2013-09-14T12:00:00.123456+00:00" in out

    def test_watch_once(self, run, capsys, cluster: FakeCluster):
        event = cluster.put("/foo/bar", "baz")

        assert run("watch", "/foo", "--index", str(event["index"])) == 0

        out = capsys.readouterr().out
        assert "key=/foo/bar" in out
        assert "action=set" in out

    def test_machines(self, run, capsys):
        run("machines")
        assert capsys.readouterr().out.split() == [NODE_A, NODE_B, NODE_C]

    def test_leader(self, run, capsys, cluster: FakeCluster):
        cluster.leader = NODE_B
        run("leader")
        assert capsys.readouterr().out == f"{NODE_B}\n"

    def test_cluster_down(self, run, capsys, cluster: FakeCluster):
        cluster.down = {NODE_A, NODE_B, NODE_C}

        assert run("get", "/foo") == 1
        assert capsys.readouterr().err.startswith("ERROR: could not connect")

    def test_transport_closed_when_connect_fails(self, run, cluster: FakeCluster):
        closed = []
        cluster.close = lambda: closed.append(True)
        cluster.down = {NODE_A, NODE_B, NODE_C}

        assert run("machines") == 1
        assert closed == [True]

    def test_transport_closed_after_command(self, run, cluster: FakeCluster):
        closed = []
        cluster.close = lambda: closed.append(True)

        assert run("leader") == 0
        assert closed == [True]


class TestFormatInfo:
    """Test KeyInfo formatting."""

    def test_minimal(self):
        from etcd_client.protocol.info import KeyInfo

        line = cli.format_info(KeyInfo(key="/foo", value="bar", index=1))
        assert line == "key=/foo value=bar index=1"
