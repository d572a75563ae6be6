"""Refresh pipeline — download a post and run the external publish steps.

The core only sees the ``Refresher`` protocol; the steps themselves
(conversion, thumbnails, homepage, rsync) are operator-supplied commands.
"""
