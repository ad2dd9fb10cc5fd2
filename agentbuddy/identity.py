"""Agent Buddy identity constants."""

__version__ = "0.3.0"
__codename__ = "AGENT BUDDY"
__tagline__ = "Say it. Watch it happen."

BANNER = r"""
   ___                    __    ___            __    __
  / _ |___ ____ ___  ____/ /_  / _ )__ _____  / /___/ /_ __
 / __ / _ `/ -_) _ \/ __/ __/ / _  / // / _ \/ __/ _  / // /
/_/ |_\_, /\__/_//_/\__/\__/ /____/\_,_/\_,_/\__/\_,_/\_, /
     /___/                                           /___/
"""
