"""
engine/__init__.py

Import from the submodules directly (engine.engine, engine.scoring, ...):
alerts.gate depends on engine.models, so this package must stay import-light.
"""
