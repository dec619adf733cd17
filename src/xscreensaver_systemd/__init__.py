# xscreensaver_systemd.__init__ - core definitions and entry point
# Locks the screen before the system goes to sleep, and lets other
# programs (video players, browsers) keep the screen from blanking.

import sys

# -----------------------------------------------------------------------------
# Exceptions

# Represents an expected failure mode, which is unlikely to be due to
# a bug in xscreensaver-systemd.  In this case, we do not need to print
# an exception stack trace; just print the error message and quit.
class UserError(Exception):
	pass

# Failure to talk to a message bus.  Fatal when it happens during
# start-up, or when a connection is lost.
class TransportError(UserError):
	pass

# A signal or method call arrived with arguments we cannot use.
# The message is skipped; the daemon keeps running.
class MalformedMessage(Exception):
	pass

# -----------------------------------------------------------------------------
# Import submodules
# Placed after the declarations above, so that they can be used by the
# imported modules.

import xscreensaver_systemd.config
import xscreensaver_systemd.daemon
import xscreensaver_systemd.logging
from xscreensaver_systemd.logging import log

# -----------------------------------------------------------------------------
# Entry point

help_text = '''
Usage: xscreensaver-systemd [OPTIONS]

Locks the screen via xscreensaver before the system suspends, and
implements the org.freedesktop.ScreenSaver inhibit service.

Options:
  -v, --verbose   Log more details.  May be repeated.
  -h, --help      Print this message.
'''

def main():
	args = sys.argv[1:]

	verbosity = 0
	for arg in args:
		match arg:
			case '-h' | '--help':
				sys.stdout.write(help_text)
				return 0

			case '-v' | '--verbose':
				verbosity += 1

			case _ if arg.startswith('-') and arg.strip('v') == '-':
				verbosity += len(arg) - 1

			case _:
				log.critical('Unknown argument: %r', arg)
				sys.stderr.write(help_text)
				return 2

	if verbosity:
		xscreensaver_systemd.logging.set_verbosity(verbosity)

	try:
		xscreensaver_systemd.config.load()
		xscreensaver_systemd.daemon.start()
		return 0

	except UserError as e:
		log.critical('Fatal error: %s', e)
		return 1
