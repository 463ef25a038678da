from etcdmate.etcd.models import BootstrapDirective, ClusterState, Member, find_member, roster_names


def test_member_from_api_tolerates_missing_url_lists():
    m = Member.from_api({"id": "abc", "name": ""})
    assert m == Member(id="abc", name="", client_url="", peer_url="")


def test_member_from_api_uses_first_url_only():
    m = Member.from_api({
        "id": "abc",
        "name": "i-1",
        "clientURLs": ["https://10.0.0.1:2379", "https://10.0.0.1:4001"],
        "peerURLs": ["https://10.0.0.1:2380", "https://10.0.0.1:7001"],
    })
    assert m.client_url == "https://10.0.0.1:2379"
    assert m.peer_url == "https://10.0.0.1:2380"


def test_directive_for_roster_keeps_order():
    roster = [Member(name="i-b", peer_url="http://b:2380"), Member(name="i-a", peer_url="http://a:2380")]
    d = BootstrapDirective.for_roster(roster, ClusterState.NEW)
    assert d.initial_cluster_value == "i-b=http://b:2380,i-a=http://a:2380"
    assert d.state.value == "new"


def test_roster_lookup_by_name():
    roster = [Member(name="i-a"), Member(name="i-b")]
    assert roster_names(roster) == ["i-a", "i-b"]
    assert find_member(roster, "i-b") == Member(name="i-b")
    assert find_member(roster, "i-z") is None
