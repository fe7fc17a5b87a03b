"""REST clients for the identity provider and the document store."""
