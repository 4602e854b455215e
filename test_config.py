"""
Tests for the configuration module.
"""

import importlib
import logging

import pytest

from integral_hog import config


@pytest.mark.parametrize('name, expected', [
    ('debug', 'DEBUG'),
    ('INFO', 'INFO'),
    ('Error', 'ERROR'),
    ('loud', 'WARNING'),
    ('', 'WARNING'),
])
def test_parse_log_level(name, expected):
    assert config.parse_log_level(name) == expected


def test_unknown_log_level_does_not_break_import(monkeypatch):
    monkeypatch.setenv('INTEGRAL_HOG_LOG_LEVEL', 'chatty')
    try:
        reloaded = importlib.reload(config)
        assert reloaded.LOG_LEVEL == 'WARNING'
        assert logging.getLogger('integral_hog').level == logging.WARNING
    finally:
        monkeypatch.delenv('INTEGRAL_HOG_LOG_LEVEL')
        importlib.reload(config)


def test_num_threads_is_positive():
    assert config.NUM_THREADS >= 1
