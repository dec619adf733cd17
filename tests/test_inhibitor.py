import logging
import os
from unittest.mock import patch

import pytest

from conftest import is_open, transport_error
from xscreensaver_systemd.inhibitor import InhibitLock, SleepInhibitor


@pytest.fixture
def inhibitor(system, controller, configuration):
	return SleepInhibitor(system, controller, configuration)


def test_acquire(inhibitor, system, lock_fd):
	system.replies.append(lock_fd)
	assert inhibitor.state == SleepInhibitor.UNLOCKED

	assert inhibitor.acquire()
	assert inhibitor.state == SleepInhibitor.LOCKED
	assert inhibitor.lock.fd == lock_fd

	(call,) = system.calls
	assert call == (
		'org.freedesktop.login1',
		'/org/freedesktop/login1',
		'org.freedesktop.login1.Manager',
		'Inhibit',
		'ssss',
		('sleep', 'xscreensaver', 'lock screen on suspend', 'delay'),
	)


def test_acquire_failure(inhibitor, system, caplog):
	system.replies.append(transport_error())
	assert not inhibitor.acquire()
	assert inhibitor.state == SleepInhibitor.UNLOCKED
	assert 'AccessDenied' in caplog.text


@pytest.mark.parametrize('reply', [None, -1, 'fd', True])
def test_acquire_bad_reply(inhibitor, system, reply):
	system.replies.append(reply)
	assert not inhibitor.acquire()
	assert inhibitor.state == SleepInhibitor.UNLOCKED


def test_acquire_while_locked_keeps_lock(inhibitor, system, lock_fd, caplog):
	system.replies.append(lock_fd)
	inhibitor.acquire()
	with caplog.at_level(logging.WARNING):
		assert inhibitor.acquire()
	assert len(system.calls) == 1
	assert inhibitor.lock.fd == lock_fd
	assert 'already holding' in caplog.text


def test_enter_sleep(inhibitor, system, controller, lock_fd):
	system.replies.append(lock_fd)
	inhibitor.acquire()
	lock = inhibitor.lock

	inhibitor.on_prepare_for_sleep(True)

	assert controller.actions == ['suspend']
	assert inhibitor.state == SleepInhibitor.UNLOCKED
	assert not lock.held
	assert not is_open(lock_fd)


def test_enter_sleep_waits_for_lock_screen(inhibitor, system, controller, configuration, lock_fd):
	configuration.suspend_settle_time = 1
	system.replies.append(lock_fd)
	inhibitor.acquire()

	with patch('xscreensaver_systemd.inhibitor.time.sleep') as mock_sleep:
		inhibitor.on_prepare_for_sleep(True)
	mock_sleep.assert_called_once_with(1)


def test_enter_sleep_suspend_failure_still_releases(inhibitor, system, controller, configuration, lock_fd):
	configuration.suspend_settle_time = 1
	controller.results['suspend'] = False
	system.replies.append(lock_fd)
	inhibitor.acquire()

	with patch('xscreensaver_systemd.inhibitor.time.sleep') as mock_sleep:
		inhibitor.on_prepare_for_sleep(True)
	mock_sleep.assert_not_called()
	assert inhibitor.state == SleepInhibitor.UNLOCKED
	assert not is_open(lock_fd)


def test_enter_sleep_without_lock(inhibitor, controller, caplog):
	with caplog.at_level(logging.WARNING):
		inhibitor.on_prepare_for_sleep(True)
	assert controller.actions == ['suspend']
	assert inhibitor.state == SleepInhibitor.UNLOCKED
	assert 'not holding an inhibitor lock' in caplog.text


def test_exit_sleep(inhibitor, system, controller, lock_fd):
	system.replies.append(lock_fd)

	inhibitor.on_prepare_for_sleep(False)

	assert controller.actions.count('deactivate') == 1
	assert controller.actions == ['display_on', 'deactivate']
	assert len(system.calls) == 1
	assert inhibitor.state == SleepInhibitor.LOCKED


def test_exit_sleep_without_display_on(inhibitor, system, controller, configuration, lock_fd):
	configuration.display_on_after_resume = False
	system.replies.append(lock_fd)
	inhibitor.on_prepare_for_sleep(False)
	assert controller.actions == ['deactivate']


def test_exit_sleep_reacquire_failure(inhibitor, system, controller, caplog):
	system.replies.append(transport_error())
	inhibitor.on_prepare_for_sleep(False)
	assert controller.actions.count('deactivate') == 1
	assert inhibitor.state == SleepInhibitor.UNLOCKED
	assert 'next suspend will not wait' in caplog.text


def test_full_cycle(inhibitor, system, controller, lock_fd):
	system.replies.append(lock_fd)
	inhibitor.acquire()
	inhibitor.on_prepare_for_sleep(True)
	assert not is_open(lock_fd)

	(r, w) = os.pipe()
	try:
		system.replies.append(r)
		inhibitor.on_prepare_for_sleep(False)
		assert inhibitor.state == SleepInhibitor.LOCKED
		assert inhibitor.lock.fd == r
		inhibitor.close()
		assert not is_open(r)
	finally:
		os.close(w)


def test_lock_release_is_idempotent(lock_fd):
	with InhibitLock(lock_fd) as lock:
		assert lock.held
	assert not lock.held
	assert not is_open(lock_fd)
	lock.release()
	assert 'released' in repr(lock)


def test_lock_state_cleared_when_close_fails(lock_fd):
	lock = InhibitLock(lock_fd)
	with patch('xscreensaver_systemd.inhibitor.os.close', side_effect=OSError(9, 'Bad file descriptor')):
		with pytest.raises(OSError):
			lock.release()
	assert not lock.held


def test_failed_close_does_not_leave_stale_lock(inhibitor, system, controller, lock_fd, caplog):
	system.replies.append(lock_fd)
	inhibitor.acquire()

	with patch('xscreensaver_systemd.inhibitor.os.close', side_effect=OSError(9, 'Bad file descriptor')):
		inhibitor.on_prepare_for_sleep(True)
	assert inhibitor.state == SleepInhibitor.UNLOCKED
	assert 'Failed to close inhibitor lock' in caplog.text

	(r, w) = os.pipe()
	try:
		system.replies.append(r)
		inhibitor.on_prepare_for_sleep(False)
		assert len(system.calls) == 2
		assert inhibitor.lock.fd == r
		assert 'already holding' not in caplog.text
		inhibitor.close()
	finally:
		os.close(w)
