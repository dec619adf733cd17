from setuptools import setup

setup(
	name='xscreensaver-systemd',
	version='1.0',
	description='Lock xscreensaver on suspend, and implement the screen saver inhibit service',
	packages=['xscreensaver_systemd'],
	package_dir={'':'src'},
	python_requires='>=3.10',
	install_requires=[
		'dbus-python',
		'PyGObject',
	],
	extras_require={
		'test': [
			'pytest',
		],
	},
	entry_points={
		'console_scripts': [
			'xscreensaver-systemd=xscreensaver_systemd:main',
		]
	}
)
