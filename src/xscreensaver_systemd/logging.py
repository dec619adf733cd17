# xscreensaver_systemd.logging - logging implementation

import logging
import os

# Define a severity level more verbose than DEBUG
TRACE = logging.DEBUG - 5

logging.addLevelName(TRACE, 'TRACE')

# Define a class which implements the severity level as a method
class Logger(logging.getLoggerClass()):
	def trace(self, *args, **kwargs):
		self.log(TRACE, *args, **kwargs)

logging.setLoggerClass(Logger)

# Indexed by verbosity + 3; verbosity 0 is INFO.
levels = [
	logging.CRITICAL,
	logging.ERROR,
	logging.WARNING,
	logging.INFO,
	logging.DEBUG,
	TRACE,
]

def level_for(verbosity):
	index = 3 + verbosity
	return levels[max(0, min(index, len(levels) - 1))]

logging.basicConfig(
	format=os.getenv('XSCREENSAVER_SYSTEMD_LOG_FORMAT', '%(name)s: %(message)s'),
	level=level_for(int(os.getenv('XSCREENSAVER_SYSTEMD_VERBOSE', '0'))),
)
log = logging.getLogger('xscreensaver-systemd')

# Called for each -v on the command line.
def set_verbosity(verbosity):
	log.setLevel(level_for(verbosity))
