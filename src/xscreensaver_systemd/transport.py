# xscreensaver_systemd.transport - D-Bus connections
# Wraps a dbus-python connection behind the small interface the event
# loop needs, and implements the org.freedesktop.ScreenSaver service
# objects.  Connections are attached to the default GLib main context,
# which the event loop iterates by hand; nothing runs on other threads.

import dbus
import dbus.service
from dbus.mainloop.glib import DBusGMainLoop
from gi.repository import GLib

import xscreensaver_systemd
from xscreensaver_systemd.logging import log

SCREENSAVER_NAME = 'org.freedesktop.ScreenSaver'
SCREENSAVER_INTERFACE = 'org.freedesktop.ScreenSaver'

# Some clients use the short path, some the long one.
SCREENSAVER_PATHS = (
	'/ScreenSaver',
	'/org/freedesktop/ScreenSaver',
)

# Interface used by the event loop.  Also implemented by the fakes in
# the test suite.
class Transport:
	# Which bus this is ('system' or 'session').  Used in log messages.
	name = None

	# Call a method and wait for the reply.  Raises TransportError.
	def call_method(self, bus_name, object_path, interface, member, signature, *args):
		raise NotImplementedError()

	# Call callback(member, signature, args) for each matching signal.
	def add_signal_receiver(self, interface, member, callback, path=None):
		raise NotImplementedError()

	# Own the screen saver service name and route its method calls to
	# callback(member, signature, args).
	def serve_screensaver(self, callback):
		raise NotImplementedError()

	# Dispatch one unit of pending work.  Returns False once there is
	# nothing left to do right away.  Raises TransportError if the
	# connection is gone.
	def process(self):
		raise NotImplementedError()

	# How long this connection can wait for I/O before it needs to be
	# processed again: 0 (don't wait), None (indefinitely), or a
	# number of seconds.
	def get_timeout(self):
		raise NotImplementedError()

	def close(self):
		pass


class InvalidArgsException(dbus.exceptions.DBusException):
	_dbus_error_name = 'org.freedesktop.DBus.Error.InvalidArgs'


class ScreenSaverObject(dbus.service.Object):
	def __init__(self, bus, object_path, callback):
		super().__init__(bus, object_path)
		self.callback = callback

	def call(self, member, message, args):
		try:
			return self.callback(member, message.get_signature(), args)
		except xscreensaver_systemd.MalformedMessage as e:
			raise InvalidArgsException(str(e)) from e

	@dbus.service.method(SCREENSAVER_INTERFACE, in_signature='ss', out_signature='u',
						 message_keyword='message')
	def Inhibit(self, application_name, reason, message=None):
		return dbus.UInt32(self.call('Inhibit', message, (application_name, reason)))

	@dbus.service.method(SCREENSAVER_INTERFACE, in_signature='u', out_signature='',
						 message_keyword='message')
	def UnInhibit(self, cookie, message=None):
		self.call('UnInhibit', message, (cookie,))


class DBusTransport(Transport):
	def __init__(self, name, bus_class, context=None):
		self.name = name
		self.log = log.getChild('transport.' + name)
		self.context = context or GLib.MainContext.default()
		self.disconnected = False
		self.bus_name = None
		self.objects = []

		self.mainloop = DBusGMainLoop()
		try:
			self.bus = bus_class(mainloop=self.mainloop, private=True)
		except dbus.exceptions.DBusException as e:
			raise xscreensaver_systemd.TransportError(
				'Failed to connect to %s bus: %s' % (name, e)) from e

		# We want to hear about it, not have libdbus call _exit().
		self.bus.set_exit_on_disconnect(False)
		self.bus.call_on_disconnection(self.on_disconnected)
		self.log.debug('Connected to the %s bus.', name)

	def on_disconnected(self, _bus):
		self.log.debug('Disconnected from the %s bus.', self.name)
		self.disconnected = True

	def call_method(self, bus_name, object_path, interface, member, signature, *args):
		self.log.trace('Calling %s.%s%r', interface, member, args)
		try:
			reply = self.bus.call_blocking(
				bus_name, object_path, interface, member, signature, args)
		except dbus.exceptions.DBusException as e:
			raise xscreensaver_systemd.TransportError(
				'Failed to call %s(): %s' % (member, e.get_dbus_message())) from e

		# Hand over ownership of passed file descriptors to the caller.
		if isinstance(reply, dbus.types.UnixFd):
			reply = reply.take()
		return reply

	def add_signal_receiver(self, interface, member, callback, path=None):
		def receive(*args, message=None):
			self.log.trace('Got signal %s.%s%r', interface, member, args)
			callback(member, message.get_signature(), args)

		try:
			self.bus.add_signal_receiver(
				receive,
				signal_name=member,
				dbus_interface=interface,
				path=path,
				message_keyword='message',
			)
		except dbus.exceptions.DBusException as e:
			raise xscreensaver_systemd.TransportError(
				'Failed to add match for %s.%s: %s' % (interface, member, e)) from e

	def serve_screensaver(self, callback):
		try:
			self.bus_name = dbus.service.BusName(
				SCREENSAVER_NAME, self.bus, do_not_queue=True)
		except dbus.exceptions.DBusException as e:
			raise xscreensaver_systemd.TransportError(
				'Failed to acquire the %s service name: %s' % (SCREENSAVER_NAME, e)) from e

		for object_path in SCREENSAVER_PATHS:
			self.objects.append(ScreenSaverObject(self.bus, object_path, callback))
		self.log.debug('Serving %s on %r.', SCREENSAVER_NAME, SCREENSAVER_PATHS)

	def process(self):
		if self.disconnected:
			raise xscreensaver_systemd.TransportError('Lost connection to the %s bus' % (self.name,))
		return self.context.iteration(False)

	def get_timeout(self):
		if self.context.pending():
			return 0
		return None

	def close(self):
		for obj in self.objects:
			obj.remove_from_connection()
		self.objects = []
		self.bus_name = None
		if not self.disconnected:
			self.bus.close()


def connect_system():
	return DBusTransport('system', dbus.SystemBus)

def connect_session():
	return DBusTransport('session', dbus.SessionBus)


# Blocks until there is I/O on any connection attached to the
# context, or until the timeout (in seconds, or None for no limit)
# elapses.
class GLibWaiter:
	def __init__(self, context=None):
		self.context = context or GLib.MainContext.default()

	def __call__(self, timeout):
		timed_out = []
		def on_timeout(*_args):
			timed_out.append(True)
			return GLib.SOURCE_REMOVE

		source = None
		if timeout is not None:
			source = GLib.timeout_source_new(int(timeout * 1000))
			source.set_callback(on_timeout)
			source.attach(self.context)

		self.context.iteration(True)

		if source is not None and not timed_out:
			source.destroy()

	# Call callback() from the loop thread when the process receives
	# the given signal.  Wakes up a blocked wait.
	def on_signal(self, signum, callback):
		def handler(*_args):
			callback()
			return GLib.SOURCE_CONTINUE
		GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signum, handler)
