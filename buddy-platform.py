#!/usr/bin/env python3
"""
buddy-platform: session and credential manager for the Buddy platform

Registers this machine as a device, logs users in and out, and shows the
persisted session.

Usage:
    python buddy-platform.py --app-id ID --app-key KEY status
    python buddy-platform.py login --username alice

This file is a thin wrapper around the buddy_platform package.
For the client itself, see the buddy_platform/ and cli/ directories.
"""

import asyncio
from cli.commands import main

if __name__ == "__main__":
    asyncio.run(main())
