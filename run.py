"""
procmon - Main Runner Script
============================

Properly run the monitor from the project root without installing it.
Handles Python path setup automatically.

Usage:
    python run.py install    # Install into the host scheduler (root)
    python run.py run        # Run one monitoring cycle
    python run.py test       # Diagnostics plus one cycle
    python run.py status     # Show current status
    python run.py loop       # Background loop (normally started by install)
    python run.py stop       # Stop the background loop
    python run.py help       # Show help
"""

import sys
import os

# Add project root to Python path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)


def main():
    """Main entry point"""
    from procmon.cli import main as cli_main
    sys.exit(cli_main(sys.argv[1:]))


if __name__ == "__main__":
    main()
