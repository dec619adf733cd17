# xscreensaver_systemd.inhibitor - systemd-logind delay lock
# Used to reliably lock the screen before the system goes to sleep.
# See https://systemd.io/INHIBITOR_LOCKS/ ("Taking Delay Locks").

import os
import time

import xscreensaver_systemd
from xscreensaver_systemd.logging import log

LOGIND_NAME = 'org.freedesktop.login1'
LOGIND_PATH = '/org/freedesktop/login1'
LOGIND_MANAGER_INTERFACE = 'org.freedesktop.login1.Manager'

INHIBIT_WHAT = 'sleep'
INHIBIT_WHO = 'xscreensaver'
INHIBIT_WHY = 'lock screen on suspend'
INHIBIT_MODE = 'delay'

# An owned delay lock.  Suspend is held back until release() closes
# the file descriptor logind gave us.
class InhibitLock:
	def __init__(self, fd):
		self.fd = fd
		self.held = True

	def release(self):
		if self.held:
			try:
				os.close(self.fd)
			finally:
				self.held = False

	def __enter__(self):
		return self

	def __exit__(self, *exc_info):
		self.release()

	def __repr__(self):
		return '<InhibitLock fd=%d%s>' % (self.fd, '' if self.held else ' released')


class SleepInhibitor:
	UNLOCKED = 'unlocked'
	LOCKED = 'locked'

	def __init__(self, transport, controller, configuration):
		self.log = log.getChild('inhibitor')
		self.transport = transport
		self.controller = controller
		self.configuration = configuration

		# The InhibitLock we are holding, if any.
		self.lock = None

	@property
	def state(self):
		return self.LOCKED if self.lock is not None else self.UNLOCKED

	# Take a delay lock from logind.  Returns False on failure; whether
	# that is fatal is up to the caller.
	def acquire(self):
		if self.lock is not None:
			self.log.warning('Asked to take an inhibitor lock, but we are already holding one?')
			return True

		try:
			fd = self.transport.call_method(
				LOGIND_NAME,
				LOGIND_PATH,
				LOGIND_MANAGER_INTERFACE,
				'Inhibit',
				'ssss',
				INHIBIT_WHAT,
				INHIBIT_WHO,
				INHIBIT_WHY,
				INHIBIT_MODE,
			)
		except xscreensaver_systemd.TransportError as e:
			self.log.error('%s', e)
			return False

		if not isinstance(fd, int) or isinstance(fd, bool) or fd < 0:
			self.log.error('Failed to read Inhibit() reply: %r', fd)
			return False

		self.lock = InhibitLock(fd)
		self.log.debug('Took inhibitor lock (fd %d).', fd)
		return True

	def release(self):
		assert self.lock is not None
		self.log.debug('Releasing inhibitor lock.')
		try:
			self.lock.release()
		except OSError as e:
			# The descriptor is unusable either way; forget it, so that
			# the next wake-up takes a fresh lock.
			self.log.error('Failed to close inhibitor lock: %s', e)
		finally:
			self.lock = None

	def on_prepare_for_sleep(self, before_sleep):
		self.log.debug('System is %s sleep', 'entering' if before_sleep else 'exiting')
		if before_sleep:
			self.handle_enter_sleep()
		else:
			self.handle_exit_sleep()

	def handle_enter_sleep(self):
		# Lock the screen, and give the lock screen a moment to come
		# up before letting the system go to sleep.
		if self.controller.suspend():
			time.sleep(self.configuration.suspend_settle_time)

		# Release the inhibitor lock
		# This must be done only after the above
		if self.lock is not None:
			self.release()
		else:
			self.log.warning('System is going to sleep but we are not holding an inhibitor lock?')

	def handle_exit_sleep(self):
		if self.configuration.display_on_after_resume:
			self.controller.display_on()

		# Bring up the unlock prompt right away.
		self.controller.deactivate()

		# Arm for the next suspend.  If this fails we will not be able
		# to lock before the next sleep; nothing to do but wait for
		# the next wake-up.
		if not self.acquire():
			self.log.error('Failed to take a new inhibitor lock; the next suspend will not wait for the lock screen.')

	def close(self):
		if self.lock is not None:
			self.release()
