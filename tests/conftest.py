import os

import pytest

import xscreensaver_systemd
from xscreensaver_systemd import daemon
from xscreensaver_systemd.config import Configuration


class FakeTransport:
	"""Scripted stand-in for a bus connection."""

	def __init__(self, name, timeout=None):
		self.name = name
		self.timeout = timeout
		self.pending = []
		self.calls = []
		self.replies = []
		self.signal_receivers = {}
		self.screensaver = None
		self.closed = False

	def call_method(self, bus_name, object_path, interface, member, signature, *args):
		self.calls.append((bus_name, object_path, interface, member, signature, args))
		reply = self.replies.pop(0)
		if isinstance(reply, Exception):
			raise reply
		return reply

	def add_signal_receiver(self, interface, member, callback, path=None):
		self.signal_receivers[(interface, member)] = callback

	def serve_screensaver(self, callback):
		self.screensaver = callback

	def process(self):
		if not self.pending:
			return False
		self.pending.pop(0)()
		return True

	def get_timeout(self):
		if self.pending:
			return 0
		return self.timeout

	def close(self):
		self.closed = True

	# Queue a signal, delivered on the next process().
	def emit(self, interface, member, signature, *args):
		callback = self.signal_receivers[(interface, member)]
		self.pending.append(lambda: callback(member, signature, args))


class FakeController:
	def __init__(self):
		self.actions = []
		self.results = {}

	def run(self, action):
		self.actions.append(action)
		return self.results.get(action, True)

	def suspend(self):
		return self.run('suspend')

	def deactivate(self):
		return self.run('deactivate')

	def display_on(self):
		return self.run('display_on')


class FakeClock:
	def __init__(self, now=1000.0):
		self.now = now

	def __call__(self):
		return self.now

	def advance(self, seconds):
		self.now += seconds


@pytest.fixture
def configuration():
	c = Configuration()
	c.suspend_settle_time = 0
	return c


@pytest.fixture
def controller():
	return FakeController()


@pytest.fixture
def clock():
	return FakeClock()


@pytest.fixture
def system():
	return FakeTransport('system')


@pytest.fixture
def session():
	return FakeTransport('session')


@pytest.fixture
def lock_fd():
	"""A real descriptor to stand in for the one logind passes us."""
	(r, w) = os.pipe()
	yield r
	os.close(w)
	try:
		os.close(r)
	except OSError:
		pass


def is_open(fd):
	try:
		os.fstat(fd)
		return True
	except OSError:
		return False


def transport_error(message='org.freedesktop.DBus.Error.AccessDenied'):
	return xscreensaver_systemd.TransportError('Failed to call Inhibit(): %s' % message)


@pytest.fixture
def loop(system, session, controller, configuration, clock, lock_fd, monkeypatch):
	"""An event loop wired to fake transports, holding the initial lock.
	Waiting advances the fake clock; wait timeouts are kept in loop.waits."""
	monkeypatch.setattr('xscreensaver_systemd.controller.LockController', lambda commands: controller)
	system.replies.append(lock_fd)

	loop = daemon.setup(system, session, configuration, None, clock=clock)
	loop.waits = []
	def wait(timeout):
		loop.waits.append(timeout)
		clock.advance(timeout)
	loop.wait = wait
	return loop
