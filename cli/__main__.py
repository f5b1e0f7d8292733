"""
Entry point for running the buddy-platform CLI as a module.

Usage:
    python -m cli status
    python -m cli register
    python -m cli login --username alice
    python -m cli clear --device-only
"""

import asyncio
from .commands import main

if __name__ == "__main__":
    asyncio.run(main())
