"""
Entry point for running the assistant as a module:
    python -m code_assistant [--relay-only]
"""

import asyncio

from .main import main


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
