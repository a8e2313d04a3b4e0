"""
WebSocket transport for the TalkBack relay: the relay server and the
producer/observer client.
"""
