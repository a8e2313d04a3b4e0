#!/usr/bin/env python3
"""
WebSocket Relay Server for TalkBack.

This script starts the relay server that elects one producer and relays
its audio to every observer, together with the status API.
"""

import sys
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from talkback_relay.__main__ import main

if __name__ == "__main__":
    main()
