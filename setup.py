#!/usr/bin/env python3
"""Setup script for the Grammar Police macOS app."""

import sys
from typing import Any, Dict, List, Tuple

from setuptools import find_packages, setup  # type: ignore

VERSION = "0.1.0"

# py2app configuration
APP = ["src/grammar_police/app.py"]
DATA_FILES: List[Tuple[str, List[str]]] = []
OPTIONS: Dict[str, Any] = {
    "iconfile": "assets/icon.icns",
    "plist": {
        "CFBundleName": "Grammar Police",
        "CFBundleDisplayName": "Grammar Police",
        "CFBundleGetInfoString": "Corrects and translates selected text while keeping protected words intact",
        "CFBundleIdentifier": "com.grammarpolice.app",
        "CFBundleVersion": VERSION,
        "CFBundleShortVersionString": VERSION,
        "NSHumanReadableCopyright": "Copyright © 2025 MIT License",
        "NSAppleEventsUsageDescription": "Grammar Police sends copy and paste keystrokes to the frontmost app.",
        "LSUIElement": True,  # Makes it a background app (no dock icon)
    },
    "packages": [
        "rumps",
        "grammar_police",
        "requests",
        "certifi",
        "pyperclip",
        "pynput",
        "watchdog",
    ],
    "site_packages": False,
    "resources": [],
    "frameworks": [],
    "dylib_excludes": [],
}

MACOS_REQUIRES = [
    "rumps>=0.4.0",
    "pyobjc-framework-Cocoa>=9.0",
    "pyobjc-framework-ApplicationServices>=9.0",
    "pynput>=1.7.6",
]

if __name__ == "__main__":
    py2app_args: Dict[str, Any] = {}
    if "py2app" in sys.argv:
        py2app_args = {
            "app": APP,
            "data_files": DATA_FILES,
            "options": {"py2app": OPTIONS},
            "setup_requires": ["py2app"],
        }

    setup(
        name="grammar-police",
        version=VERSION,
        description="Menu bar app that corrects grammar in any text field with a language model",
        python_requires=">=3.9",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=[
            "requests>=2.28.0",
            "pyperclip>=1.8.2",
            "watchdog>=3.0.0",
        ],
        extras_require={
            "macOS": MACOS_REQUIRES,
            "test": [
                "pytest>=7.0.0",
            ],
            "dev": [
                "isort>=5.0.0",
                "pytest>=7.0.0",
            ],
        },
        entry_points={"gui_scripts": ["grammar-police = grammar_police.app:main"]},
        **py2app_args,
    )
