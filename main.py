"""
Main entry point for the Grammar Police macOS app.
This module launches the menu bar application using rumps.
"""

from grammar_police.app import main

if __name__ == "__main__":
    main()
