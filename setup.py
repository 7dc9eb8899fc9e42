"""
Packaging for the nodebot connector.

    pip install -e .[test]
    pytest src integrate
"""

from setuptools import setup

setup(
    name='nodebot-connector-py',
    version='0.1.0',
    description='Connects flows to microcontroller boards over serial, TCP, UDP and MQTT-bridged transports.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['nodebot', 'nodebot.board', 'nodebot.conduit', 'nodebot.config', 'nodebot.connector',
              'nodebot.nodes', 'nodebot.support'],
    python_requires='>=3.8',
    install_requires=[
        'pyserial>=3.4',
        'pyserial-asyncio>=0.6',
        'paho-mqtt>=2.0',
        'configobj>=5.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'PyHamcrest>=2.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'nodebot = nodebot.__main__:main',
        ],
    },
    zip_safe=False,
)
