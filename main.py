#!/usr/bin/env python3
"""
Main entry point for the Data Library table manager and grid editor
"""

from src.cli.main_cli import main

if __name__ == "__main__":
    main()
