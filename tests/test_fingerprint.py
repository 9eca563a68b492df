from siteaudit.workflows.fingerprint import (
    fnv1a_64,
    hamming_distance,
    near_duplicate_pairs,
    simhash64,
    tokenize,
)


def test_fnv1a_known_vectors() -> None:
    assert fnv1a_64("") == 0xCBF29CE484222325
    assert fnv1a_64("a") == 0xAF63DC4C8601EC8C


def test_tokenize_drops_single_characters() -> None:
    assert tokenize("A quick, QUICK fox 2 x9!") == ["quick", "quick", "fox", "x9"]
    assert tokenize("one two three", max_tokens=2) == ["one", "two"]


def test_empty_text_has_zero_fingerprint() -> None:
    assert simhash64("") == 0
    assert simhash64("a b c ! ?") == 0


def test_simhash_is_deterministic() -> None:
    text = "Budget planning for small teams with clear monthly targets"
    assert simhash64(text) == simhash64(text)
    assert 0 <= simhash64(text) < 2**64


def test_small_edit_keeps_fingerprint_close() -> None:
    # Every bit sum is at least 10 away from zero, so one extra token cannot flip it
    base = "alpha " * 40 + "beta " * 30 + "gamma " * 20
    edited = base + "delta"
    assert hamming_distance(simhash64(base), simhash64(edited)) <= 3


def test_unrelated_text_is_far_apart() -> None:
    left = "quarterly revenue forecast spreadsheet pipeline conversion marketing budget allocation"
    right = "glacier hiking trail weather backpack summit altitude camping lantern compass"
    assert hamming_distance(simhash64(left), simhash64(right)) > 3


def test_hamming_distance() -> None:
    assert hamming_distance(0, 0) == 0
    assert hamming_distance(0b1011, 0b0001) == 2
    assert hamming_distance(2**64 - 1, 0) == 64


def test_near_duplicate_pairs_respects_type_and_zero() -> None:
    items = [
        {"url": "/guides/a", "type": "guide", "fingerprint": 0b1111},
        {"url": "/guides/b", "type": "guide", "fingerprint": 0b1110},
        {"url": "/finance/x", "type": "calculator", "fingerprint": 0b1111},
        {"url": "/guides/empty", "type": "guide", "fingerprint": 0},
        {"url": "/guides/far", "type": "guide", "fingerprint": 2**64 - 1},
    ]
    pairs = near_duplicate_pairs(items, max_distance=3)
    assert pairs == [{"a": "/guides/a", "b": "/guides/b", "distance": 1, "type": "guide"}]


def test_near_duplicate_pairs_limit() -> None:
    items = [{"url": f"/g/{i}", "type": "guide", "fingerprint": 1} for i in range(5)]
    assert len(near_duplicate_pairs(items, max_distance=0, limit=3)) == 3
