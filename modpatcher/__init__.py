"""modpatcher — patch an Android app for native mods and manage those mods."""

__version__ = "0.1.0"
