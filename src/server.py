"""Protean Engine runner for the dispatch domain.

Starts the Engine that delivers dispatch events asynchronously to the
notification event handlers and the read-model projectors.

Usage:
    python src/server.py
"""

import asyncio

from protean.server.engine import Engine


def _get_domain():
    """Import and initialize the dispatch domain."""
    from dispatch.domain import dispatch

    dispatch.init()
    return dispatch


async def run():
    engine = Engine(_get_domain())
    await engine.run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
