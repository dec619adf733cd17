# xscreensaver_systemd.config - settings, and loading the user's configuration

import importlib.util
import os
import shlex
import sys

import xscreensaver_systemd
from xscreensaver_systemd.logging import log

class Configuration:
	def __init__(self):
		self.reset()

	def reset(self):
		xscreensaver_command = os.getenv('XSCREENSAVER_COMMAND', 'xscreensaver-command')
		xset_command = os.getenv('XSET_COMMAND', 'xset')

		# Command lines for the lock controller actions.  Older xscreensaver
		# releases lack -suspend; use -lock there.
		self.commands = {
			'suspend': [xscreensaver_command, '-suspend'],
			'deactivate': [xscreensaver_command, '-deactivate'],
			'display_on': [xset_command, 'dpms', 'force', 'on'],
		}

		# While anything is inhibiting the screen saver, poke it this
		# often (in seconds).  The event loop also never sleeps longer
		# than this.
		self.heartbeat_interval = 50

		# Time given to the lock screen to come up after a successful
		# "suspend" action, before the delay lock is released.
		self.suspend_settle_time = 1

		# Force the display on when the system resumes.
		self.display_on_after_resume = True

	# Public API follows:

	def set_command(self, action, command):
		'''Called from the user's configuration to override the command
		line run for an action.  Accepts a list or a shell-style string.'''
		if action not in self.commands:
			raise xscreensaver_systemd.UserError('Unknown action: %r' % (action,))
		if isinstance(command, str):
			command = shlex.split(command)
		if not command:
			raise xscreensaver_systemd.UserError('Empty command for action %r' % (action,))
		self.commands[action] = list(command)

	def validate(self):
		if not isinstance(self.heartbeat_interval, (int, float)) or self.heartbeat_interval <= 0:
			raise xscreensaver_systemd.UserError('Invalid heartbeat interval - must be a positive number')
		if not isinstance(self.suspend_settle_time, (int, float)) or self.suspend_settle_time < 0:
			raise xscreensaver_systemd.UserError('Invalid suspend settle time - must not be negative')

	def __str__(self):
		return 'heartbeat: %ss, settle: %ss, display on after resume: %s' % (
			self.heartbeat_interval,
			self.suspend_settle_time,
			self.display_on_after_resume,
		)


configuration = Configuration()

def get_config_files():
	config_dirs = os.getenv('XDG_CONFIG_DIRS', '/etc/xdg').split(':')
	config_dirs = [os.getenv('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))] + config_dirs
	return [d + '/xscreensaver-systemd/config.py' for d in config_dirs if d]

# (Re-)Load the configuration file, if there is one.
def load():
	configuration.reset()

	for config_file in get_config_files():
		if os.path.exists(config_file):
			log.debug('Loading configuration from %r.', config_file)

			# https://docs.python.org/3/library/importlib.html#importing-a-source-file-directly
			module_name = 'xscreensaver_systemd_user_config'
			spec = importlib.util.spec_from_file_location(module_name, config_file)
			module = importlib.util.module_from_spec(spec)
			sys.modules[module_name] = module
			spec.loader.exec_module(module)

			if not hasattr(module, 'config'):
				raise xscreensaver_systemd.UserError('%r does not define a config function' % (config_file,))
			module.config(configuration)
			break
	else:
		log.debug('No configuration file found, using defaults.')

	configuration.validate()
	log.debug('Configuration: %s', configuration)
	return configuration
