import pytest

from mapfetch.workflows.address_classifier import BLOCK_RULES, is_blocked, matching_rules


def test_reference_hosts():
    assert is_blocked("8.8.8.8") is False
    assert is_blocked("169.254.169.254") is True
    assert is_blocked("metadata.google.internal") is True
    assert is_blocked("example.com") is False


@pytest.mark.parametrize(
    "host",
    [
        "127.0.0.1",
        "127.255.1.2",
        "10.1.2.3",
        "172.16.0.1",
        "172.31.255.255",
        "192.168.1.1",
        "169.254.10.10",
        "0.0.0.0",
        "100.64.0.1",
        "100.127.255.255",
        "192.0.0.8",
        "192.0.2.1",
        "198.51.100.7",
        "203.0.113.9",
        "198.18.0.1",
        "198.19.255.1",
    ],
)
def test_blocked_ipv4(host):
    assert is_blocked(host) is True


@pytest.mark.parametrize(
    "host",
    ["8.8.8.8", "1.1.1.1", "172.15.0.1", "172.32.0.1", "100.128.0.1", "198.20.0.1", "192.0.3.1", "11.0.0.1"],
)
def test_public_ipv4(host):
    assert is_blocked(host) is False


@pytest.mark.parametrize(
    "host",
    [
        "::1",
        "::",
        "fc00::1",
        "fd12:3456::1",
        "fe80::1",
        "febf::1",
        "::ffff:0:7f00:1",
        "64:ff9b::808:808",
        "100::1",
        "2001:db8::1",
        "2001:0:4136:e378::1",
    ],
)
def test_blocked_ipv6(host):
    assert is_blocked(host) is True


@pytest.mark.parametrize("host", ["2606:4700::1111", "2a00:1450:4001::200e", "fec0::1"])
def test_public_ipv6(host):
    assert is_blocked(host) is False


def test_ipv4_mapped_addresses_use_embedded_address():
    assert is_blocked("::ffff:127.0.0.1") is True
    assert is_blocked("::ffff:7f00:1") is True
    assert is_blocked("::ffff:10.0.0.1") is True
    assert is_blocked("::ffff:8.8.8.8") is False
    assert [rule.category for rule in matching_rules("::ffff:7f00:1")] == ["loopback"]


@pytest.mark.parametrize(
    "host",
    [
        "localhost",
        "LOCALHOST",
        "localhost.localdomain",
        "app.localhost",
        "printer.local",
        "db.internal",
        "wiki.intranet",
        "hr.corp",
        "nas.home",
        "router.lan",
        "box.localdomain",
        "kubernetes.default",
        "kubernetes.default.svc",
        "api.ns.svc.cluster.local",
        "metadata.aws",
        "db.internal.",
    ],
)
def test_blocked_hostnames(host):
    assert is_blocked(host) is True


@pytest.mark.parametrize(
    "host",
    ["notlocalhost.com", "metadata-service.com", "local.example.com", "internal.example.org", "corporate.com"],
)
def test_public_hostnames(host):
    assert is_blocked(host) is False


def test_rule_order_does_not_change_outcome():
    hosts = ["169.254.169.254", "metadata.google.internal", "fd00::1", "example.com", "10.0.0.1"]
    for host in hosts:
        forward = set(matching_rules(host, BLOCK_RULES))
        backward = set(matching_rules(host, tuple(reversed(BLOCK_RULES))))
        assert forward == backward


def test_metadata_host_matches_every_applicable_rule():
    categories = {rule.category for rule in matching_rules("169.254.169.254")}
    assert categories == {"link_local", "cloud_metadata"}
