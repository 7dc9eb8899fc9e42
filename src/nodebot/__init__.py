"""
Connects a flow to microcontroller boards.

A connection node brings up a transport to its board - a local serial port, a TCP client or listener,
a UDP socket, or a serial port bridged over an MQTT broker - binds a board to the transport,
and reports its progress as networkReady, networkError, ioReady and ioError events.
Peripheral nodes issue pin and device commands once the board is ready.
"""
