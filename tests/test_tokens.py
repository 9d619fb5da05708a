from datetime import timedelta

import pytest

from gatehouse.auth.tokens import VerificationTokenIssuer


def test_issue_fixed_length_token_expiring_in_an_hour(clock):
    issued = VerificationTokenIssuer(clock=clock).issue()

    assert len(issued.token) == 64
    int(issued.token, 16)
    assert issued.expires_at == clock.now + timedelta(hours=1)
    assert issued.token not in repr(issued)


def test_tokens_do_not_repeat(clock):
    issuer = VerificationTokenIssuer(clock=clock)
    assert len({issuer.issue().token for _ in range(50)}) == 50


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        VerificationTokenIssuer(timedelta(0))
