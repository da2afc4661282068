from types import SimpleNamespace

from carelink.utils.audit import client_ip, review_action


def _request(headers=None, host="10.1.2.3"):
    return SimpleNamespace(headers=headers or {}, client=SimpleNamespace(host=host) if host else None)


def test_client_ip_prefers_first_forwarded_hop():
    assert client_ip(_request({"x-forwarded-for": " 198.51.100.4 , 10.0.0.1"})) == "198.51.100.4"
    assert client_ip(_request()) == "10.1.2.3"
    assert client_ip(_request(host=None)) is None
    assert client_ip(None) is None


def test_review_action_names():
    assert review_action("verified") == "VERIFICATION_VERIFIED"
    assert review_action("rejected") == "VERIFICATION_REJECTED"
