# xscreensaver_systemd.registry - org.freedesktop.ScreenSaver inhibitors
# Keeps track of the programs (video players, browsers, ...) which
# asked for the screen saver to be held off, and until when.

import os
import random
import time

from xscreensaver_systemd.logging import log

class InhibitEntry:
	def __init__(self, cookie, application_name, reason, since):
		self.cookie = cookie
		self.application_name = application_name
		self.reason = reason
		self.since = since

	def __str__(self):
		return '%s (%s) [cookie 0x%08x]' % (
			self.application_name,
			self.reason,
			self.cookie,
		)


class InhibitRegistry:
	def __init__(self, clock=time.monotonic):
		self.log = log.getChild('registry')
		self.clock = clock

		# Map from cookie to InhibitEntry.
		self.inhibitors = {}

		# Used to make cookies only if the OS has no random source.
		self.fallback_random = None

	def new_cookie(self):
		try:
			return int.from_bytes(os.urandom(4), 'little')
		except NotImplementedError:
			if self.fallback_random is None:
				self.log.warning('No OS random source; using a seeded generator for cookies.')
				self.fallback_random = random.Random(time.time_ns() ^ os.getpid())
			return self.fallback_random.getrandbits(32)

	def inhibit(self, application_name, reason):
		# Collisions are possible in principle, but vanishingly
		# unlikely with a handful of live cookies; not checked.
		cookie = self.new_cookie()
		entry = InhibitEntry(cookie, application_name, reason, self.clock())
		self.inhibitors[cookie] = entry
		self.log.info('Inhibited by %s; %d inhibitor(s).', entry, self.count)
		return cookie

	def uninhibit(self, cookie):
		entry = self.inhibitors.pop(cookie, None)
		if entry is None:
			# Late or duplicate release; nothing to do.
			self.log.debug('UnInhibit for unknown cookie 0x%08x ignored.', cookie)
			return
		self.log.info('Uninhibited by %s after %ds; %d inhibitor(s).',
					  entry, self.clock() - entry.since, self.count)

	@property
	def count(self):
		return len(self.inhibitors)

	def is_inhibited(self):
		return self.count > 0

	def entries(self):
		return list(self.inhibitors.values())
