# xscreensaver_systemd.controller - lock controller
# Runs xscreensaver-command / xset to act on the lock screen and the
# display.  Failures are logged, never raised: a broken lock screen
# must not stop us from handling the next event.

import subprocess

from xscreensaver_systemd.logging import log

class LockController:
	def __init__(self, commands):
		self.log = log.getChild('controller')

		# Map from action name to command line.
		self.commands = commands

	# Run the command for an action, synchronously.
	# Returns True if it ran and exited with status 0.
	def run(self, action):
		command = self.commands[action]
		self.log.debug('Running %r for action %r.', command, action)
		try:
			status = subprocess.call(command, stdin=subprocess.DEVNULL)
		except OSError as e:
			self.log.warning('Failed to run %s: %s', command[0], e)
			return False

		if status != 0:
			self.log.warning('%s exited with %d', command[0], status)
			return False
		return True

	def suspend(self):
		return self.run('suspend')

	def deactivate(self):
		return self.run('deactivate')

	def display_on(self):
		return self.run('display_on')
