"""
Tests for the dictionary gate: local lookups, variants and the remote fallback.
"""

import asyncio
import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.dictionary import DictionaryService, DictionaryVariant


def check(gate, word, variant=None):
    return asyncio.run(gate.is_valid(word, variant))


def test_single_letters(offline_dictionary):
    assert check(offline_dictionary, 'A')
    assert check(offline_dictionary, 'i')
    assert not check(offline_dictionary, 'B')
    assert not check(offline_dictionary, 'O')


def test_junk_is_invalid(offline_dictionary):
    assert not check(offline_dictionary, '')
    assert not check(offline_dictionary, 'C4T')
    assert not check(offline_dictionary, '  ')


def test_common_words_accepted_everywhere(offline_dictionary):
    for variant in DictionaryVariant:
        assert check(offline_dictionary, 'cat', variant)
        assert check(offline_dictionary, 'GO', variant)


def test_variants_differ(offline_dictionary):
    assert check(offline_dictionary, 'COLOUR', 'SOWPODS')
    assert not check(offline_dictionary, 'COLOUR', 'TWL')
    assert check(offline_dictionary, 'QI', 'TWL')
    assert not check(offline_dictionary, 'QI', 'ENABLE')


def test_variant_aliases():
    assert DictionaryVariant.parse('A') is DictionaryVariant.TWL
    assert DictionaryVariant.parse('b') is DictionaryVariant.SOWPODS
    assert DictionaryVariant.parse('C') is DictionaryVariant.ENABLE
    assert DictionaryVariant.parse('enable') is DictionaryVariant.ENABLE
    with pytest.raises(ValueError):
        DictionaryVariant.parse('klingon')


def test_unknown_word_without_remote_is_invalid(offline_dictionary):
    assert not check(offline_dictionary, 'ZEPHYR')


def test_wordlist_file_extends_variant(tmp_path):
    (tmp_path / 'twl.txt').write_text('# extra words\nzephyr\nquixotic\n')
    gate = DictionaryService(wordlist_dir=str(tmp_path), remote_enabled=False)
    assert check(gate, 'ZEPHYR', 'TWL')
    assert not check(gate, 'ZEPHYR', 'SOWPODS')


def _response(data):
    response = MagicMock()
    response.json.return_value = data
    response.raise_for_status.return_value = None
    return response


def test_remote_fallback_hit():
    gate = DictionaryService(wordlist_dir='', remote_enabled=True, timeout=1)
    with patch('app.dictionary.requests.get', return_value=_response([{'word': 'zephyr', 'score': 1}])) as get:
        assert check(gate, 'ZEPHYR')
        assert check(gate, 'zephyr')
    # second lookup served from cache
    assert get.call_count == 1


def test_remote_fallback_miss():
    gate = DictionaryService(wordlist_dir='', remote_enabled=True, timeout=1)
    with patch('app.dictionary.requests.get', return_value=_response([{'word': 'zephyrs'}])):
        assert not check(gate, 'ZEPHYX')
    with patch('app.dictionary.requests.get', return_value=_response([])):
        assert not check(gate, 'QWRTY')


def test_remote_error_fails_closed():
    gate = DictionaryService(wordlist_dir='', remote_enabled=True, timeout=1)
    with patch('app.dictionary.requests.get', side_effect=requests.ConnectionError('down')):
        assert not check(gate, 'ZEPHYR')
    bad_json = MagicMock()
    bad_json.raise_for_status.return_value = None
    bad_json.json.side_effect = ValueError('not json')
    with patch('app.dictionary.requests.get', return_value=bad_json):
        assert not check(gate, 'ZEPHYR')


def test_remote_timeout_fails_closed():
    gate = DictionaryService(wordlist_dir='', remote_enabled=True, timeout=0.05)

    def slow_fetch(word):
        time.sleep(0.3)
        return True

    with patch.object(gate, '_fetch', side_effect=slow_fetch):
        started = time.monotonic()
        assert not check(gate, 'ZEPHYR')
        assert time.monotonic() - started < 1.0


def test_local_hit_skips_remote():
    gate = DictionaryService(wordlist_dir='', remote_enabled=True)
    with patch('app.dictionary.requests.get') as get:
        assert check(gate, 'HELLO')
    get.assert_not_called()


def test_remote_cache_is_bounded():
    gate = DictionaryService(wordlist_dir='', remote_enabled=True, timeout=1, cache_size=3)
    with patch('app.dictionary.requests.get', return_value=_response([])) as get:
        for word in ('QWA', 'QWB', 'QWC', 'QWD', 'QWE'):
            assert not check(gate, word)
        assert len(gate._remote_cache) == 3
        assert list(gate._remote_cache) == ['QWC', 'QWD', 'QWE']
        # a cache hit refreshes the entry, so the oldest other one is evicted next
        check(gate, 'QWC')
        check(gate, 'QWF')
        assert list(gate._remote_cache) == ['QWE', 'QWC', 'QWF']
    assert get.call_count == 6


def test_remote_cache_disabled():
    gate = DictionaryService(wordlist_dir='', remote_enabled=True, timeout=1, cache_size=0)
    with patch('app.dictionary.requests.get', return_value=_response([{'word': 'zephyr'}])) as get:
        assert check(gate, 'ZEPHYR')
        assert check(gate, 'ZEPHYR')
    assert get.call_count == 2
    assert len(gate._remote_cache) == 0
