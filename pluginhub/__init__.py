"""
PluginHub - one content-addressed store for editor extensions, linked into every editor.
"""

__version__ = "0.1.0"
