#!/usr/bin/env python3
"""
DNS Sync Manager - Main Entry Point

This is the main entry point for the DNS Sync Manager.
It can be run directly or imported as a module.
"""

from dns_sync_manager.cli.main import main

if __name__ == "__main__":
    main()
