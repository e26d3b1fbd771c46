"""wheelcast.core — logging and error plumbing shared by every module."""
