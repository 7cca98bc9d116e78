"""Binary streams, MD5, disc-image patching and camera maths for a level editor."""

__version__ = "0.1.0"