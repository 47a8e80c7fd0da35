"""
Studio package __main__ entry point.

Allows running with: python -m studio
"""

from studio.app.runner import main

if __name__ == "__main__":
    main()
