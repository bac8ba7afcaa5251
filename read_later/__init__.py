"""Feed reader, page-to-markdown converter and local article library."""
