"""Entry point for 'python -m rotauth' command.

This module allows the rotauth CLI to be invoked using
'python -m rotauth'.
"""

from rotauth.cli import main

if __name__ == "__main__":
    main()
