"""
wheelcast.domain — value types shared by the stores, the realtime channel
and the HTTP routes. Nothing in here imports from other wheelcast modules.
"""
