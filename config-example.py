# Sample xscreensaver-systemd configuration file.
# Copy to ~/.config/xscreensaver-systemd/config.py and adjust.

# The configuration file defines a function, config, which receives
# the settings object and may change any of its fields.  It is run
# once, when the daemon starts.

def config(c):
	# xscreensaver releases before 6.0 have no -suspend command;
	# lock the screen instead.
	# c.set_command('suspend', 'xscreensaver-command -lock')

	# Turning the display on after resume is unnecessary (and slow)
	# on some setups.
	# c.display_on_after_resume = False

	# Programs inhibiting the screen saver (video players and the
	# like) keep it from activating by poking it this often (seconds).
	c.heartbeat_interval = 50

	# Give the lock screen this long (seconds) to appear before the
	# system is allowed to go to sleep.
	c.suspend_settle_time = 1
