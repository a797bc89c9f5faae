"""
Run the SideQuest inspection CLI.

Usage:
    python -m sidequest show <campaign_id>
"""

import sys

from .cli import main

sys.exit(main())
