# src/unity_explorer/cli/__init__.py
