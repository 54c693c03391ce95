# tests/core/test_logging_and_progress.py
import logging

import pytest

from pagehealth.core.managers.progress_manager import ProgressManager
from pagehealth.core.utils.configure_logging import LogWithTqdm, configure_from_settings
from pagehealth.core.utils.run_timers import RunTimers


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    noisy = logging.getLogger("aiohttp.access")
    noisy_level = noisy.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    noisy.setLevel(noisy_level)
    logging.getLogger("pagehealth.auditor").setLevel(logging.NOTSET)


def test_configure_from_settings(restore_logging):
    configure_from_settings({
        "level": "DEBUG",
        "modules": {"pagehealth.auditor": "WARNING"},
        "silenced": {"aiohttp.access": "ERROR"},
    })

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], LogWithTqdm)
    assert logging.getLogger("pagehealth.auditor").level == logging.WARNING
    assert logging.getLogger("aiohttp.access").level == logging.ERROR


def test_configure_from_empty_settings_defaults_to_info(restore_logging):
    configure_from_settings(None)
    assert logging.getLogger().level == logging.INFO


def test_progress_manager_counts_failures():
    progress = ProgressManager(total=3, desc="Health check")
    progress.advance("markup")
    progress.advance("security", failed=True)
    assert progress.failures == 1
    assert progress.pbar.n == 2

    progress.close()
    assert progress.pbar is None
    # Closed bars ignore further updates
    progress.advance("seo")
    progress.close()


def test_run_timers_laps():
    timer = RunTimers()
    assert timer.duration == 0.0

    timer.start()
    first = timer.lap("markup")
    timer.stop()

    assert first >= 0
    assert timer.laps == {"markup": first}
    assert timer.duration >= 0
