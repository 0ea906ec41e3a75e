"""Secure link access control: tokenized, time- and use-bounded links to one case or property."""
