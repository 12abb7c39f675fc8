"""Readiness probes for supervised processes."""

import asyncio


async def port_is_open(host: str, port: int, timeout: float = 1.0) -> bool:
    """Check if something accepts TCP connections on host:port."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        # Peer reset after a successful connect still means the port was open
        pass
    return True
