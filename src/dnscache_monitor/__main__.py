"""Entry point for dnscache-monitor."""
import asyncio
import sys
from .config import logger
from .monitor import MonitorInitError, check_resolution_available, main as monitor_main

__all__ = ['main']


def main():
    """Main entry point for the dnscache-monitor console script."""
    try:
        check_resolution_available()
        asyncio.run(monitor_main())
    except KeyboardInterrupt:
        pass
    except MonitorInitError as e:
        logger.critical(f"Startup failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
