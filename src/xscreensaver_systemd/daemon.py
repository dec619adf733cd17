# xscreensaver_systemd.daemon - event loop and lifecycle
# One thread: drain both bus connections, wait for more I/O, and keep
# the screen saver at bay for as long as somebody is inhibiting it.

import signal
import time

import xscreensaver_systemd
import xscreensaver_systemd.config
import xscreensaver_systemd.controller
import xscreensaver_systemd.inhibitor
import xscreensaver_systemd.registry
from xscreensaver_systemd.logging import log

# Endpoints: which connection a message arrived on.
SLEEP = 'sleep'      # logind, on the system bus
INHIBIT = 'inhibit'  # org.freedesktop.ScreenSaver, on the session bus

# -----------------------------------------------------------------------------
# State

# Everything the message handlers may look at or change.
class HandlerContext:
	def __init__(self, inhibitor, registry, controller):
		self.inhibitor = inhibitor
		self.registry = registry
		self.controller = controller

		# Monotonic time of the last heartbeat "deactivate", or None.
		self.last_heartbeat = None

	def __str__(self):
		return 'sleep lock: %s, inhibitors: %d' % (
			self.inhibitor.state,
			self.registry.count,
		)

# -----------------------------------------------------------------------------
# Message handlers
# Called with the context, the D-Bus signature of the message, and its
# arguments.  Raise MalformedMessage if the arguments are unusable.

def handle_prepare_for_sleep(ctx, signature, args):
	if signature != 'b':
		raise xscreensaver_systemd.MalformedMessage(
			'PrepareForSleep: expected signature "b", got %r' % (signature,))
	(before_sleep,) = args
	ctx.inhibitor.on_prepare_for_sleep(bool(before_sleep))

def handle_inhibit(ctx, signature, args):
	if signature != 'ss':
		raise xscreensaver_systemd.MalformedMessage(
			'Inhibit: expected signature "ss", got %r' % (signature,))
	(application_name, reason) = args
	return ctx.registry.inhibit(str(application_name), str(reason))

def handle_uninhibit(ctx, signature, args):
	if signature != 'u':
		raise xscreensaver_systemd.MalformedMessage(
			'UnInhibit: expected signature "u", got %r' % (signature,))
	(cookie,) = args
	ctx.registry.uninhibit(int(cookie))

handlers = {
	(SLEEP, 'PrepareForSleep'): handle_prepare_for_sleep,
	(INHIBIT, 'Inhibit'): handle_inhibit,
	(INHIBIT, 'UnInhibit'): handle_uninhibit,
}

# -----------------------------------------------------------------------------
# Scheduling

# Merge the two connections' timeouts (0: don't wait, None: wait
# forever, or seconds), never waiting longer than limit.
def combine_timeouts(a, b, limit):
	if a is None:
		timeout = b
	elif b is None:
		timeout = a
	else:
		timeout = min(a, b)

	if timeout is None or timeout > limit:
		timeout = limit
	return timeout

# -----------------------------------------------------------------------------
# Event loop

class EventLoop:
	def __init__(self, ctx, transports, wait, heartbeat_interval, clock=time.monotonic):
		self.log = log.getChild('loop')
		self.ctx = ctx

		# Map from endpoint to Transport.  Drained in this order.
		self.transports = transports

		# wait(timeout) blocks until there is I/O, or timeout elapses.
		self.wait = wait

		self.heartbeat_interval = heartbeat_interval
		self.clock = clock
		self.stopping = False

	def dispatch(self, endpoint, member, signature, args):
		handler = handlers.get((endpoint, member))
		if handler is None:
			self.log.warning('Ignoring unexpected %s message %r', endpoint, member)
			return None

		self.log.trace('Dispatching %s %s(%s) %r', endpoint, member, signature, args)
		try:
			result = handler(self.ctx, signature, args)
		except xscreensaver_systemd.MalformedMessage as e:
			self.log.warning('Dropping malformed message: %s', e)
			if endpoint == SLEEP:
				# Signals get no reply, so there is no one to tell.
				return None
			raise

		self.log.debug('State: %s', self.ctx)
		return result

	# Returns a callback suitable for the transports, bound to an endpoint.
	def dispatcher(self, endpoint):
		def callback(member, signature, args):
			return self.dispatch(endpoint, member, signature, args)
		return callback

	def heartbeat(self):
		if not self.ctx.registry.is_inhibited():
			return

		now = self.clock()
		if self.ctx.last_heartbeat is not None and \
		   now - self.ctx.last_heartbeat < self.heartbeat_interval:
			return

		self.log.debug('Inhibited by %s; deactivating screen saver.',
					   ', '.join(str(entry) for entry in self.ctx.registry.entries()))
		self.ctx.controller.deactivate()
		self.ctx.last_heartbeat = now

	# Longest we may sleep without missing a heartbeat.
	def get_wait_limit(self):
		if not self.ctx.registry.is_inhibited():
			return self.heartbeat_interval
		if self.ctx.last_heartbeat is None:
			return 0
		due = self.ctx.last_heartbeat + self.heartbeat_interval
		return max(0, min(due - self.clock(), self.heartbeat_interval))

	def run_once(self):
		for transport in self.transports.values():
			while transport.process():
				pass  # Keep going

		timeouts = [transport.get_timeout() for transport in self.transports.values()]
		timeout = combine_timeouts(*timeouts, limit=self.get_wait_limit())
		self.log.trace('Waiting for up to %ss.', timeout)
		self.wait(timeout)

		self.heartbeat()

	def run(self):
		self.log.debug('Starting event loop.')
		while not self.stopping:
			self.run_once()

# -----------------------------------------------------------------------------
# Lifecycle

def signal_stop(loop, signum):
	def handler():
		log.info('Got signal %r - stopping.', signal.strsignal(signum))
		loop.stopping = True
	return handler

# Set everything up.  Any failure here is fatal.
def setup(system, session, configuration, wait, clock=time.monotonic):
	controller = xscreensaver_systemd.controller.LockController(configuration.commands)
	inhibitor = xscreensaver_systemd.inhibitor.SleepInhibitor(system, controller, configuration)
	registry = xscreensaver_systemd.registry.InhibitRegistry(clock=clock)
	ctx = HandlerContext(inhibitor, registry, controller)

	loop = EventLoop(
		ctx,
		{SLEEP: system, INHIBIT: session},
		wait,
		configuration.heartbeat_interval,
		clock=clock,
	)

	if not inhibitor.acquire():
		raise xscreensaver_systemd.UserError('Could not take the initial inhibitor lock.')

	try:
		system.add_signal_receiver(
			xscreensaver_systemd.inhibitor.LOGIND_MANAGER_INTERFACE,
			'PrepareForSleep',
			loop.dispatcher(SLEEP),
			path=xscreensaver_systemd.inhibitor.LOGIND_PATH,
		)
		session.serve_screensaver(loop.dispatcher(INHIBIT))
	except Exception:
		inhibitor.close()
		raise

	return loop

# Daemon entry point.  Runs until stopped by a signal, or until a bus
# connection is lost (TransportError).
def start():
	# Imported here, so that the rest of the daemon can be loaded
	# without D-Bus / GLib bindings.
	import xscreensaver_systemd.transport as transport

	configuration = xscreensaver_systemd.config.configuration
	waiter = transport.GLibWaiter()

	system = transport.connect_system()
	try:
		session = transport.connect_session()
		try:
			loop = setup(system, session, configuration, waiter)
			try:
				# Stop gracefully when receiving a SIGINT/SIGTERM.
				waiter.on_signal(signal.SIGINT, signal_stop(loop, signal.SIGINT))
				waiter.on_signal(signal.SIGTERM, signal_stop(loop, signal.SIGTERM))

				log.info('Started.')
				loop.run()
			finally:
				loop.ctx.inhibitor.close()
		finally:
			session.close()
	finally:
		system.close()

	log.debug('Daemon is exiting.')
