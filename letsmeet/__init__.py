"""
Let's Meet: availability matching service.

Users publish when they are free for an activity; two users free for the same
activity at the same date and time are paired into a match that both confirm.
"""

__version__ = "0.1.0"
