# src/chaosdyn/runtime/__init__.py
