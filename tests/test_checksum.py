import re

from search_ai.services.checksum import checksum


def test_known_values():
    assert checksum("") == "0"
    assert checksum("a") == "2p"
    assert checksum("ab") == "2e9"


def test_hashes_utf16_code_units():
    # U+1F600 is the surrogate pair D83D DE00
    assert checksum("\U0001F600") == "11zz7"


def test_deterministic_and_compact():
    text = "Linen Blazer Relaxed fit\nNotched lapels\nTwo-button closure" * 20
    assert checksum(text) == checksum(text)
    assert re.fullmatch(r"[0-9a-z]+", checksum(text))
    assert len(checksum(text)) <= 7


def test_distinct_product_texts_differ():
    texts = [f"Shirt {n} Shirt number {n}\nButton-down shirt.\nCotton," for n in range(500)]
    texts += [f"https://cdn.example.com/shirt-{n}.jpg" for n in range(500)]
    assert len({checksum(t) for t in texts}) == len(texts)
