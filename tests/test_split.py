import pytest

from giftsplit.services.split import format_money, split_evenly
from giftsplit.services.tokens import generate_invitation_token


def test_split_gives_remainder_to_first_participants():
    assert split_evenly(1000, 3) == [334, 333, 333]
    assert split_evenly(1001, 4) == [251, 250, 250, 250]


def test_split_preserves_total_and_spread():
    for total, count in [(0, 5), (1, 7), (99_999, 13), (5_000_000, 100)]:
        shares = split_evenly(total, count)
        assert len(shares) == count
        assert sum(shares) == total
        assert max(shares) - min(shares) <= 1
        assert shares == sorted(shares, reverse=True)


def test_split_is_deterministic():
    assert split_evenly(12_345, 6) == split_evenly(12_345, 6)


@pytest.mark.parametrize("total,count", [(1000, 0), (1000, -2), (-1, 3)])
def test_split_rejects_invalid_input(total, count):
    with pytest.raises(ValueError):
        split_evenly(total, count)


def test_format_money():
    assert format_money(1000, "usd") == "USD $10.00"
    assert format_money(5, "eur") == "EUR $0.05"


def test_invitation_tokens_are_url_safe_and_unpadded():
    tokens = {generate_invitation_token() for _ in range(50)}
    assert len(tokens) == 50
    for token in tokens:
        assert "=" not in token
        assert len(token) == 32
        assert all(ch.isalnum() or ch in "-_" for ch in token)
