"""Runtime wiring for switchfile: settings, background scans, and the session.

The sibling-ordering core lives one level up and never imports from here
except for the scan scheduler it can optionally be given.
"""
